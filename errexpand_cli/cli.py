"""Typer-based CLI for errexpand."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from . import __version__, config
from .cli_groups import config_grp, print_error
from .diff_engine import DiffEngine
from .errors import ExpandError
from .expander import Expander
from .position import parse_position

OUTPUT_FORMATS = ("source", "json", "diff")

app = typer.Typer(
    help="🔧 errexpand: turn a Go call into an 'if err != nil' check.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register config commands
app.add_typer(config_grp, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"errexpand v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log resolution details to stderr."),
):
    """errexpand: expand error checks in Go source at a cursor position."""
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("errexpand_cli").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.command("expand")
def expand(
    position: str = typer.Argument(..., help="FILE:#OFFSET or FILE:#START,#END (byte offsets)."),
    output_format: str = typer.Option("source", "--format", "-f", help="Output: source, json or diff."),
    write: bool = typer.Option(False, "--write", "-w", help="Overwrite FILE with the expanded source."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the output here instead of stdout."),
    errcallback: Optional[str] = typer.Option(
        None, "--errcallback", help="Statement run before returning, e.g. 'log.Print(err)'."
    ),
    exact: bool = typer.Option(False, "--exact", help="Require START,END to select exactly one node."),
    formatter: Optional[str] = typer.Option(None, "--formatter", help="auto, gofmt or builtin."),
    goroot: Optional[str] = typer.Option(None, "--goroot", help="GOROOT used to resolve imports."),
    gopath: Optional[str] = typer.Option(None, "--gopath", help="GOPATH used to resolve imports."),
):
    """Expand the call at POSITION into an error check."""
    if output_format not in OUTPUT_FORMATS:
        raise typer.BadParameter(f"choose from {', '.join(OUTPUT_FORMATS)}", param_hint="--format")
    try:
        path, start, end = parse_position(position)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="POSITION")
    try:
        settings = config.Settings.load(error_callback=errcallback, formatter=formatter)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    build = config.BuildContext.default().with_overrides(goroot=goroot, gopath=gopath)

    try:
        result = Expander(settings=settings, build=build).expand(path, start, end, exact=exact)
    except ExpandError as exc:
        print_error(str(exc))
        raise typer.Exit(code=1)

    engine = DiffEngine()
    if output_format == "json":
        rendered = json.dumps(result.edit.to_dict(), indent=2) + "\n"
    else:
        for warning in result.warnings:
            typer.echo(f"⚠️  {warning}", err=True)
        if output_format == "diff":
            rendered = engine.create_diff(result.original, result.formatted, path.name)
        else:
            rendered = result.formatted

    if write:
        engine.write(path, result.formatted)
        if output_format == "source" and output is None:
            return
    if output is not None:
        engine.write(output, rendered)
    else:
        typer.echo(rendered, nl=False)


if __name__ == "__main__":
    app()
