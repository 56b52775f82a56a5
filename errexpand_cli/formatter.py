"""Whole-buffer re-formatting of the spliced file."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from .config import DEFAULT_FORMATTER, FORMATTERS
from .errors import ParseError, ReformatError
from .parser import GoParser, walk

logger = logging.getLogger(__name__)

BUILTIN_NOTICE = "gofmt was not used; the expanded file was checked and its whitespace normalized only"


class Formatter:
    """Re-formats Go source with ``gofmt`` or the built-in normalizer.

    ``auto`` uses ``gofmt`` when it is on ``PATH``. The built-in formatter
    validates the buffer with the parser and normalizes whitespace only;
    it relies on the replacement having been rendered in gofmt style, and
    spacing inside the original call text is left as written.
    """

    def __init__(self, mode: str = DEFAULT_FORMATTER, gofmt_path: Optional[str] = None):
        if mode not in FORMATTERS:
            raise ValueError(f"unknown formatter '{mode}' (choose from {', '.join(FORMATTERS)})")
        self.mode = mode
        self.gofmt_path = gofmt_path or shutil.which("gofmt")

    @property
    def backend(self) -> str:
        if self.mode == "gofmt" or (self.mode == "auto" and self.gofmt_path):
            return "gofmt"
        return "builtin"

    def format(self, text: str) -> str:
        """Format a complete Go file.

        Raises:
            ReformatError: the buffer is not valid Go (carries the buffer)
        """
        if self.backend == "gofmt":
            return self._gofmt(text)
        return self._builtin(text)

    def _gofmt(self, text: str) -> str:
        if not self.gofmt_path:
            raise ReformatError("formatting source: gofmt not found on PATH", buffer=text)
        logger.debug("formatting with %s", self.gofmt_path)
        try:
            proc = subprocess.run(
                [self.gofmt_path],
                input=text,
                capture_output=True,
                text=True,
                encoding="utf-8",
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise ReformatError(f"formatting source: {exc}", buffer=text) from exc
        if proc.returncode != 0:
            raise ReformatError(f"formatting source: {proc.stderr.strip()}", buffer=text)
        return proc.stdout

    def _builtin(self, text: str) -> str:
        data = text.encode("utf-8")
        try:
            parsed = GoParser().parse_bytes(data, Path("<buffer>"), strict=True)
        except ParseError as exc:
            raise ReformatError(f"formatting source: {exc}", buffer=text) from exc
        raw_strings = [
            (n.start_byte, n.end_byte)
            for n in walk(parsed.root)
            if n.type == "raw_string_literal" and b"\n" in data[n.start_byte:n.end_byte]
        ]
        out: List[bytes] = []
        offset = 0
        blank_run = 0
        for line in data.split(b"\n"):
            line_end = offset + len(line)
            starts_inside = _inside(raw_strings, offset)
            if not _inside(raw_strings, line_end):
                line = line.rstrip(b" \t\r")
            if not line and not starts_inside:
                blank_run += 1
            else:
                blank_run = 0
            if blank_run <= 1:
                out.append(line)
            offset = line_end + 1
        return b"\n".join(out).strip(b"\n").decode("utf-8") + "\n"


def _inside(ranges: List[Tuple[int, int]], offset: int) -> bool:
    return any(start < offset < end for start, end in ranges)
