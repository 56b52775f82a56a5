"""Configuration for errexpand: settings, build context and file locations."""

from __future__ import annotations

import logging
import os
import platform
import shutil
import subprocess
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("ERREXPAND_HOME", str(Path.home() / ".errexpand"))).expanduser()

# Files starting with this prefix are scratch copies written by editor
# integrations and are never part of the package.
TEMP_PREFIX = "errexpand"

DEFAULT_FAILURE_IDENT = "err"
DEFAULT_FAILURE_TYPE = "error"
DEFAULT_FORMATTER = "auto"
FORMATTERS = ("auto", "gofmt", "builtin")

SETTING_KEYS = ("failure_ident", "failure_type", "error_callback", "formatter")

_GOOS_BY_PLATFORM = {"linux": "linux", "darwin": "darwin", "win32": "windows", "cygwin": "windows"}
_GOARCH_BY_MACHINE = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "armv7l": "arm",
    "armv6l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
}


@dataclass(frozen=True)
class Settings:
    """Knobs of the transformation itself."""
    failure_ident: str = DEFAULT_FAILURE_IDENT
    failure_type: str = DEFAULT_FAILURE_TYPE
    error_callback: Optional[str] = None
    formatter: str = DEFAULT_FORMATTER

    def __post_init__(self):
        if self.formatter not in FORMATTERS:
            raise ValueError(f"unknown formatter '{self.formatter}' (choose from {', '.join(FORMATTERS)})")
        if not self.failure_ident.isidentifier():
            raise ValueError(f"failure identifier '{self.failure_ident}' is not a valid identifier")

    @classmethod
    def load(cls, **overrides: Any) -> "Settings":
        """Defaults, then ``[expand]`` from the config file, then *overrides*."""
        from .config_manager import load_expand_config

        values: Dict[str, Any] = {k: v for k, v in load_expand_config().items() if k in SETTING_KEYS}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass(frozen=True)
class BuildContext:
    """Where imported packages are searched for, and for which platform.

    Passed explicitly through every resolution call; nothing reads
    process-wide build state.
    """
    goroot: Optional[Path] = None
    gopath: Tuple[Path, ...] = ()
    goos: str = "linux"
    goarch: str = "amd64"

    @classmethod
    def default(cls) -> "BuildContext":
        from .config_manager import load_build_config

        cfg = load_build_config()
        goroot = cfg.get("goroot") or os.environ.get("GOROOT") or _go_env("GOROOT")
        gopath_raw = cfg.get("gopath") or os.environ.get("GOPATH") or str(Path.home() / "go")
        return cls(
            goroot=Path(goroot).expanduser() if goroot else None,
            gopath=split_gopath(gopath_raw),
            goos=cfg.get("goos") or os.environ.get("GOOS") or _GOOS_BY_PLATFORM.get(sys.platform, sys.platform),
            goarch=cfg.get("goarch") or os.environ.get("GOARCH")
            or _GOARCH_BY_MACHINE.get(platform.machine().lower(), "amd64"),
        )

    def with_overrides(self, goroot: Optional[str] = None, gopath: Optional[str] = None) -> "BuildContext":
        ctx = self
        if goroot:
            ctx = replace(ctx, goroot=Path(goroot).expanduser())
        if gopath:
            ctx = replace(ctx, gopath=split_gopath(gopath))
        return ctx


def split_gopath(value: str) -> Tuple[Path, ...]:
    return tuple(Path(p).expanduser() for p in value.split(os.pathsep) if p)


def _go_env(name: str) -> Optional[str]:
    go = shutil.which("go")
    if go is None:
        return None
    try:
        out = subprocess.run([go, "env", name], capture_output=True, text=True, timeout=10, check=True)
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("go env %s failed: %s", name, exc)
        return None
    return out.stdout.strip() or None