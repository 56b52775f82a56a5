"""Configuration manager for errexpand using TOML files."""

from __future__ import annotations

from typing import Any, Dict

import toml

from .config import BASE_DIR, DEFAULT_FAILURE_IDENT, DEFAULT_FAILURE_TYPE, DEFAULT_FORMATTER, SETTING_KEYS

CONFIG_FILE = BASE_DIR / "config.toml"

BUILD_KEYS = ("goroot", "gopath", "goos", "goarch")

DEFAULT_EXPAND_CONFIG: Dict[str, Any] = {
    "failure_ident": DEFAULT_FAILURE_IDENT,
    "failure_type": DEFAULT_FAILURE_TYPE,
    "formatter": DEFAULT_FORMATTER,
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError):
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(CONFIG_FILE, "w") as f:
            toml.dump(config, f)
        return True
    except OSError:
        return False


def load_expand_config() -> Dict[str, Any]:
    """Load the ``[expand]`` section merged over the defaults."""
    merged = DEFAULT_EXPAND_CONFIG.copy()
    merged.update(load_full_config().get("expand", {}))
    return merged


def load_build_config() -> Dict[str, Any]:
    """Load the ``[build]`` section (GOROOT, GOPATH, GOOS, GOARCH overrides)."""
    return dict(load_full_config().get("build", {}))


def save_setting(key: str, value: str) -> bool:
    """Store one setting in its section.

    Args:
        key: A key from ``SETTING_KEYS`` (``[expand]``) or ``BUILD_KEYS`` (``[build]``)
        value: Value to store

    Returns:
        True if saved successfully, False otherwise
    """
    if key in SETTING_KEYS:
        section = "expand"
    elif key in BUILD_KEYS:
        section = "build"
    else:
        raise KeyError(key)
    config = load_full_config()
    config.setdefault(section, {})[key] = value
    return _save_full_config(config)


def clear_config() -> bool:
    """Remove the ``[expand]`` and ``[build]`` sections, resetting to defaults."""
    config = load_full_config()
    config.pop("expand", None)
    config.pop("build", None)
    return _save_full_config(config)
