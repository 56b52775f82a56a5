"""DiffEngine for splicing a replacement into its file and describing the edit."""

from __future__ import annotations

import difflib
import logging
import os
import tempfile
from pathlib import Path
from typing import List

from .config import TEMP_PREFIX
from .errors import RenderError
from .models import EditResult, ReplacementPlan, SourceFile
from .render import Renderer, strip_comments

logger = logging.getLogger(__name__)


def line_indent(data: bytes, offset: int) -> str:
    """Leading whitespace of the line containing *offset*."""
    line_start = data.rfind(b"\n", 0, offset) + 1
    end = line_start
    while end < offset and data[end:end + 1] in (b" ", b"\t"):
        end += 1
    return data[line_start:end].decode("utf-8")


class DiffEngine:
    """Handles splicing, edit descriptions and writing results safely."""

    def splice(self, source: SourceFile, plan: ReplacementPlan) -> str:
        """Replace the plan's subject with its rendered nodes.

        Bytes outside the subject are copied verbatim. The renderer drops
        comments inside the call, so the rendered call text is swapped for
        the original call text (first occurrence) in every node.

        Args:
            source: The file the plan was made for
            plan: Replacement for ``[plan.start, plan.end)``

        Returns:
            The new, not yet formatted, file contents
        """
        data = source.source
        indent = line_indent(data, plan.start)
        renderer = Renderer(indent)
        rendered_call = strip_comments(plan.call)
        head = data[:plan.start].decode("utf-8")
        pieces: List[str] = []
        for node in plan.nodes:
            try:
                text = renderer.stmt(node)
            except RenderError as exc:
                raise RenderError(str(exc), buffer=head + ("\n" + indent).join(pieces)) from exc
            pieces.append(text.replace(rendered_call, plan.call.text, 1))
        return head + ("\n" + indent).join(pieces) + data[plan.end:].decode("utf-8")

    def structured_edit(
        self,
        source: SourceFile,
        plan: ReplacementPlan,
        formatted: str,
    ) -> EditResult:
        """Describe the edit as replaced original lines.

        ``replacement_lines`` are the formatted lines between the unchanged
        prefix and suffix. If formatting touched lines outside the subject,
        the edit covers the whole file instead.
        """
        original_lines = source.source.decode("utf-8").splitlines()
        new_lines = formatted.splitlines()
        start_line = source.line_of(plan.start)
        end_line = source.line_of(plan.end)
        tail = len(original_lines) - end_line
        warnings = list(plan.warnings)

        keep = len(new_lines) - tail
        if (
            keep >= start_line - 1
            and new_lines[:start_line - 1] == original_lines[:start_line - 1]
            and new_lines[keep:] == original_lines[end_line:]
        ):
            return EditResult(start_line, end_line, new_lines[start_line - 1:keep], warnings)

        logger.info("formatting changed lines outside the subject; describing the whole file")
        warnings.append("formatting changed lines outside the expanded statement; the edit covers the whole file")
        return EditResult(1, len(original_lines), new_lines, warnings)

    def create_diff(self, original: str, modified: str, filename: str = "file") -> str:
        """Create unified diff between two versions.

        Args:
            original: Original content
            modified: Modified content
            filename: Name of file for diff header

        Returns:
            Unified diff string
        """
        diff = difflib.unified_diff(
            original.splitlines(keepends=True),
            modified.splitlines(keepends=True),
            fromfile=f"a/{filename}",
            tofile=f"b/{filename}",
        )
        return "".join(diff)

    def write(self, path: Path, content: str) -> None:
        """Replace *path* with *content* atomically.

        The scratch file carries the tool's prefix so it is never mistaken
        for a package file.
        """
        fd, tmp_name = tempfile.mkstemp(prefix=f"{TEMP_PREFIX}-", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            if path.exists():
                os.chmod(tmp_name, path.stat().st_mode & 0o7777)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("wrote %s", path)
