"""Command groups of the errexpand CLI.

  errexpand config   Configuration management (show, set, reset)
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from . import config, config_manager

console = Console()

# ── Configuration group ──────────────────────────────────────
config_grp = typer.Typer(
    help="⚙️  Configuration: expansion defaults and import search paths.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def print_success(message: str):
    """Print success message."""
    typer.echo(typer.style(f"✅ {message}", fg=typer.colors.GREEN))


def print_error(message: str):
    """Print error message."""
    typer.echo(typer.style(f"❌ {message}", fg=typer.colors.RED), err=True)


@config_grp.command("show")
def show_config():
    """Show the effective configuration."""
    expand_cfg = config_manager.load_expand_config()
    build_cfg = config_manager.load_build_config()
    build = config.BuildContext.default()

    table = Table(title=f"errexpand configuration ({config_manager.CONFIG_FILE})")
    table.add_column("Section", style="cyan")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key in config.SETTING_KEYS:
        value = expand_cfg.get(key)
        table.add_row("expand", key, "" if value is None else str(value))
    effective = {
        "goroot": str(build.goroot) if build.goroot else "",
        "gopath": ":".join(str(p) for p in build.gopath),
        "goos": build.goos,
        "goarch": build.goarch,
    }
    for key in config_manager.BUILD_KEYS:
        origin = "" if key in build_cfg else " [dim](detected)[/dim]"
        table.add_row("build", key, f"{effective[key]}{origin}")
    console.print(table)


@config_grp.command("set")
def set_config(
    key: str = typer.Argument(..., help="Setting name, e.g. formatter or goroot."),
    value: str = typer.Argument(..., help="New value."),
):
    """Store a default in the config file."""
    if key == "formatter" and value not in config.FORMATTERS:
        print_error(f"Unknown formatter '{value}' (choose from {', '.join(config.FORMATTERS)})")
        raise typer.Exit(code=1)
    if key == "failure_ident" and not value.isidentifier():
        print_error(f"'{value}' is not a valid Go identifier")
        raise typer.Exit(code=1)
    try:
        saved = config_manager.save_setting(key, value)
    except KeyError:
        known = ", ".join(config.SETTING_KEYS + config_manager.BUILD_KEYS)
        print_error(f"Unknown setting '{key}' (known: {known})")
        raise typer.Exit(code=1)
    if not saved:
        print_error(f"Could not write {config_manager.CONFIG_FILE}")
        raise typer.Exit(code=1)
    print_success(f"{key} = {value}")


@config_grp.command("reset")
def reset_config():
    """Remove stored settings and go back to the defaults."""
    if not config_manager.clear_config():
        print_error(f"Could not write {config_manager.CONFIG_FILE}")
        raise typer.Exit(code=1)
    print_success("Configuration reset to defaults")
