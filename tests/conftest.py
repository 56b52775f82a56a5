"""Pytest configuration and fixtures for errexpand tests."""

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pytest

from errexpand_cli.checker import Checker
from errexpand_cli.config import BuildContext, Settings
from errexpand_cli.expander import Expander
from errexpand_cli.parser import GoParser

FIXTURES = Path(__file__).parent / "fixtures"
GOROOT = FIXTURES / "goroot"
CASES = FIXTURES / "cases"


@dataclass
class GoCase:
    """A copied ``<name>.got`` tree and the expected output, if any."""
    name: str
    root: Path
    path: Path
    want: Optional[str]

    @property
    def source(self) -> bytes:
        return self.path.read_bytes()

    def offset(self, needle: str, delta: int = 0) -> int:
        """Byte offset of the first *needle* in the case file, plus *delta*."""
        return self.source.index(needle.encode("utf-8")) + delta


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the config file at a throwaway location for every test."""
    config_file = tmp_path_factory.mktemp("errexpand_home") / "config.toml"
    monkeypatch.setattr("errexpand_cli.config_manager.CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def build_context() -> BuildContext:
    """Build context resolving the standard library from the fixture GOROOT."""
    return BuildContext(goroot=GOROOT, gopath=(), goos="linux", goarch="amd64")


@pytest.fixture
def make_expander(build_context: BuildContext):
    """Factory for expanders using the built-in formatter."""
    def make(gopath: Optional[Path] = None, **overrides) -> Expander:
        settings = Settings(formatter="builtin", **overrides)
        build = build_context.with_overrides(gopath=str(gopath) if gopath else None)
        return Expander(settings=settings, build=build)
    return make


@pytest.fixture
def go_case(tmp_path: Path):
    """Copy a fixture case into tmp_path so tests may rewrite it."""
    def load(name: str) -> GoCase:
        root = tmp_path / f"{name}.got"
        shutil.copytree(CASES / f"{name}.got", root)
        want_file = CASES / f"{name}.want" / "src" / name / f"{name}.go"
        want = want_file.read_text(encoding="utf-8") if want_file.exists() else None
        return GoCase(name=name, root=root, path=root / "src" / name / f"{name}.go", want=want)
    return load


@pytest.fixture
def parse_go(tmp_path: Path):
    """Write Go source to tmp_path and parse it."""
    parser = GoParser()

    def parse(text: str, name: str = "main.go"):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return parser.parse_file(path)
    return parse


@pytest.fixture
def check_go(parse_go, build_context: BuildContext):
    """Parse and check a single file; returns (checker, ctx, source)."""
    def check(text: str, name: str = "main.go"):
        source = parse_go(text, name)
        checker = Checker(build_context)
        checker.check([source])
        return checker, checker.context_of(source), source
    return check
