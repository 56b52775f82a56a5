"""Locate and load the source files of imported Go packages.

Import paths are resolved the way the go tool does for source imports:
vendor directories walking up from the importing file, the enclosing
module's ``go.mod``, ``$GOROOT/src`` and finally every ``$GOPATH/src``.
Files excluded for the target platform (file-name suffixes and build
constraints) are skipped; ``_test.go`` files are never loaded.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .config import BuildContext
from .errors import ParseError
from .models import SourceFile
from .parser import GoParser

logger = logging.getLogger(__name__)

KNOWN_OS: Set[str] = {
    "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos", "ios",
    "js", "linux", "nacl", "netbsd", "openbsd", "plan9", "solaris", "wasip1",
    "windows", "zos",
}
KNOWN_ARCH: Set[str] = {
    "386", "amd64", "amd64p32", "arm", "armbe", "arm64", "arm64be", "loong64",
    "mips", "mipsle", "mips64", "mips64le", "mips64p32", "mips64p32le", "ppc",
    "ppc64", "ppc64le", "riscv", "riscv64", "s390", "s390x", "sparc", "sparc64",
    "wasm",
}
UNIX_OS: Set[str] = {
    "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos", "ios",
    "linux", "netbsd", "openbsd", "solaris",
}

# GOOS values that also satisfy another GOOS's file-name suffix.
_OS_IMPLIES = {"android": "linux", "illumos": "solaris", "ios": "darwin"}

_MAX_WORKERS = 8
_TOKEN_RE = re.compile(r"\(|\)|&&|\|\||!|[\w.\-]+")


class Importer:
    """Finds package directories and parses their files for one request."""

    def __init__(self, build: BuildContext) -> None:
        self.build = build
        self._module_cache: Dict[Path, Optional[Tuple[str, Path]]] = {}

    # ------------------------------------------------------------------
    # Package lookup
    # ------------------------------------------------------------------

    def find_package_dir(self, import_path: str, src_dir: Path) -> Optional[Path]:
        for candidate in self._candidates(import_path, src_dir):
            if candidate.is_dir() and any(candidate.glob("*.go")):
                return candidate
        return None

    def _candidates(self, import_path: str, src_dir: Path):
        if import_path.startswith("./") or import_path.startswith("../"):
            yield (src_dir / import_path).resolve()
            return
        current = src_dir.resolve()
        while True:
            yield current / "vendor" / import_path
            if current.parent == current:
                break
            current = current.parent
        module = self._enclosing_module(src_dir.resolve())
        if module is not None:
            mod_path, mod_root = module
            if import_path == mod_path:
                yield mod_root
            elif import_path.startswith(mod_path + "/"):
                yield mod_root / import_path[len(mod_path) + 1:]
        if self.build.goroot is not None:
            yield self.build.goroot / "src" / import_path
        for entry in self.build.gopath:
            yield entry / "src" / import_path

    def _enclosing_module(self, directory: Path) -> Optional[Tuple[str, Path]]:
        if directory in self._module_cache:
            return self._module_cache[directory]
        found: Optional[Tuple[str, Path]] = None
        gomod = directory / "go.mod"
        if gomod.is_file():
            for line in gomod.read_text(encoding="utf-8", errors="ignore").splitlines():
                parts = line.split()
                if len(parts) >= 2 and parts[0] == "module":
                    found = (parts[1].strip('"'), directory)
                    break
        elif directory.parent != directory:
            found = self._enclosing_module(directory.parent)
        self._module_cache[directory] = found
        return found

    # ------------------------------------------------------------------
    # File loading
    # ------------------------------------------------------------------

    def package_files(self, directory: Path) -> List[Path]:
        """Go files of *directory* that belong to the build, sorted by name."""
        selected = []
        for path in sorted(directory.glob("*.go")):
            name = path.name
            if name.startswith((".", "_")) or name.endswith("_test.go"):
                continue
            if not self.match_file_name(name):
                logger.debug("skipping %s: file name excludes %s/%s", path, self.build.goos, self.build.goarch)
                continue
            selected.append(path)
        return selected

    def load_package(self, directory: Path) -> List[SourceFile]:
        """Parse the package files of *directory* in parallel.

        Results keep sorted file-name order whatever order the workers
        finish in, so resolution stays deterministic.
        """
        paths = self.package_files(directory)
        if not paths:
            return []
        with ThreadPoolExecutor(max_workers=min(_MAX_WORKERS, len(paths))) as pool:
            parsed = list(pool.map(_parse_lenient, paths))
        files = [f for f in parsed if f is not None and self.match_build_constraints(f.source)]

        # A directory may hold stray "package main" or documentation files;
        # keep the majority package.
        names = Counter(f.package_name for f in files if f.package_name)
        if len(names) > 1:
            keep = names.most_common(1)[0][0]
            logger.debug("%s holds packages %s; keeping %s", directory, sorted(names), keep)
            files = [f for f in files if f.package_name == keep]
        return files

    # ------------------------------------------------------------------
    # Build constraints
    # ------------------------------------------------------------------

    def match_file_name(self, name: str) -> bool:
        stem = name[:-3] if name.endswith(".go") else name
        if stem.endswith("_test"):
            stem = stem[:-len("_test")]
        parts = stem.split("_")
        if len(parts) < 2:
            return True
        last = parts[-1]
        if last in KNOWN_ARCH:
            if last != self.build.goarch:
                return False
            if len(parts) >= 3 and parts[-2] in KNOWN_OS:
                return self._os_matches(parts[-2])
            return True
        if last in KNOWN_OS:
            return self._os_matches(last)
        return True

    def _os_matches(self, goos: str) -> bool:
        return goos == self.build.goos or _OS_IMPLIES.get(self.build.goos) == goos

    def _tag_set(self) -> Set[str]:
        tags = {self.build.goos, self.build.goarch, "gc"}
        if self.build.goos in _OS_IMPLIES:
            tags.add(_OS_IMPLIES[self.build.goos])
        if self.build.goos in UNIX_OS:
            tags.add("unix")
        return tags

    def match_build_constraints(self, source: bytes) -> bool:
        plus_lines: List[str] = []
        for raw in source.decode("utf-8", errors="ignore").splitlines():
            line = raw.strip()
            if not line:
                continue
            if line.startswith("//go:build"):
                return self._eval_expr(line[len("//go:build"):])
            if line.startswith("// +build"):
                plus_lines.append(line[len("// +build"):])
                continue
            if line.startswith("//"):
                continue
            # the header ends at the first non-comment line
            break
        return all(self._eval_plus_line(line) for line in plus_lines)

    def _eval_tag(self, tag: str) -> bool:
        if tag.startswith("go1."):
            return True
        return tag in self._tag_set()

    def _eval_plus_line(self, line: str) -> bool:
        for option in line.split():
            terms = option.split(",")
            if all(
                (not self._eval_tag(t[1:])) if t.startswith("!") else self._eval_tag(t)
                for t in terms if t
            ):
                return True
        return False

    def _eval_expr(self, expr: str) -> bool:
        tokens = _TOKEN_RE.findall(expr)
        pos = 0

        def parse_or() -> bool:
            nonlocal pos
            value = parse_and()
            while pos < len(tokens) and tokens[pos] == "||":
                pos += 1
                rhs = parse_and()
                value = value or rhs
            return value

        def parse_and() -> bool:
            nonlocal pos
            value = parse_unary()
            while pos < len(tokens) and tokens[pos] == "&&":
                pos += 1
                rhs = parse_unary()
                value = value and rhs
            return value

        def parse_unary() -> bool:
            nonlocal pos
            if pos >= len(tokens):
                return False
            tok = tokens[pos]
            pos += 1
            if tok == "!":
                return not parse_unary()
            if tok == "(":
                value = parse_or()
                if pos < len(tokens) and tokens[pos] == ")":
                    pos += 1
                return value
            return self._eval_tag(tok)

        if not tokens:
            return True
        return parse_or()


def _parse_lenient(path: Path) -> Optional[SourceFile]:
    try:
        return GoParser().parse_file(path, strict=False)
    except ParseError as exc:
        logger.warning("could not load %s: %s", path, exc)
        return None
