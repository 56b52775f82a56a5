"""Map a position specifier to the syntax nodes enclosing it."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional, Tuple

from .errors import AmbiguousSelection, PositionNotFound
from .models import CallSite, NodePath, SourceFile
from .parser import FUNCTION_NODES, STATEMENT_NODES, ancestors, statements, walk

logger = logging.getLogger(__name__)

_POSITION_RE = re.compile(r"^(?P<file>.+):#(?P<start>\d+)(?:,#(?P<end>\d+))?$")

_WHITESPACE = b" \t\r\n\f\v"

# Containers whose statements are searched when the cursor is not on a call.
_BLOCK_NODES = frozenset({"block", "statement_list", "expression_case", "default_case", "type_case", "communication_case"})


def parse_position(spec: str) -> Tuple[Path, int, Optional[int]]:
    """Split ``FILE:#START`` or ``FILE:#START,#END`` into its parts.

    Raises:
        ValueError: if *spec* is not in either form or END precedes START
    """
    match = _POSITION_RE.match(spec.strip())
    if match is None:
        raise ValueError(f"invalid position '{spec}' (expected FILE:#OFFSET or FILE:#START,#END)")
    start = int(match.group("start"))
    end = int(match.group("end")) if match.group("end") is not None else None
    if end is not None and end < start:
        raise ValueError(f"invalid position '{spec}': end offset precedes start offset")
    return Path(match.group("file")), start, end


def node_path(node: Any, exact: bool = False) -> NodePath:
    """The path from *node* up to the file root."""
    return NodePath(nodes=(node,) + tuple(ancestors(node)), exact=exact)


def repair_cursor(source: SourceFile, start: int, end: int) -> Tuple[int, int]:
    """Move an interval that starts just after a call back inside it.

    Editors tend to report the position after the closing parenthesis (or
    after the trailing whitespace). The start is walked back over
    whitespace and one ``)``, but only when a call expression ends exactly
    there; the end moves by the same amount.
    """
    data = source.source
    on_token = start < len(data) and data[start:start + 1] not in _WHITESPACE
    if on_token and data[start - 1:start] != b")":
        return start, end
    back = start
    while back > 0 and data[back - 1] in _WHITESPACE:
        back -= 1
    if back == 0 or data[back - 1:back] != b")":
        return start, end
    if not _call_ends_at(source.root, back):
        return start, end
    shift = start - (back - 1)
    logger.debug("cursor #%d moved to #%d inside the preceding call", start, start - shift)
    return start - shift, end - shift


def _call_ends_at(root: Any, offset: int) -> bool:
    node = root.named_descendant_for_byte_range(offset - 1, offset)
    while node is not None and node.end_byte == offset:
        if node.type == "call_expression":
            return True
        node = node.parent
    return False


def resolve_position(source: SourceFile, start: int, end: Optional[int] = None, exact: bool = False) -> NodePath:
    """Return the NodePath of the smallest node containing ``[start, end)``.

    Args:
        source: Parsed file
        start: Start byte offset
        end: End byte offset (defaults to *start*: a cursor)
        exact: Require the interval to coincide with a node's range

    Raises:
        PositionNotFound: offset outside the file, or no node there
        AmbiguousSelection: *exact* and the interval is not one node
    """
    end = start if end is None else end
    size = len(source.source)
    if start < 0 or end < start or end > size:
        raise PositionNotFound(f"offset #{start} is outside {source.path} ({size} bytes)")
    start, end = repair_cursor(source, start, end)
    node = source.root.named_descendant_for_byte_range(start, end)
    if node is None:
        raise PositionNotFound(f"no syntax at {source.path}:#{start}")
    matched = end > start and node.start_byte == start and node.end_byte == end
    if exact and end > start and not matched:
        raise AmbiguousSelection(
            f"ambiguous selection #{start},#{end} within {node.type} at line {node.start_point[0] + 1}"
        )
    return replace(node_path(node, exact=matched), offset=start)


def find_call_site(path: NodePath, source: SourceFile, offset: int) -> CallSite:
    """Pick the call expression a NodePath designates.

    On a path through a call, the outermost call before the enclosing
    statement or function is taken. When the cursor lands in a block
    instead, the call of the statement on the cursor's line is used, then
    the closest call before the cursor, then the block's first call.
    """
    call = None
    for node in path:
        if node.type == "call_expression":
            call = node
        elif node.type in FUNCTION_NODES or node.type in STATEMENT_NODES:
            break
    if call is None and path.innermost.type in _BLOCK_NODES:
        call = _call_in_block(path.innermost, source, offset)
    if call is None:
        raise PositionNotFound(f"no function call at {source.path}:#{offset}")
    return CallSite(node=call, start=call.start_byte, end=call.end_byte, text=source.text(call))


def _first_call(node: Any) -> Optional[Any]:
    for candidate in walk(node):
        if candidate.type == "call_expression":
            return candidate
    return None


def _call_in_block(block: Any, source: SourceFile, offset: int) -> Optional[Any]:
    line = source.line_of(offset)
    before = None
    for stmt in statements(block):
        call = _first_call(stmt)
        if call is None:
            continue
        if source.line_of(stmt.start_byte) <= line <= source.line_of(stmt.end_byte):
            return call
        if stmt.end_byte <= offset:
            before = call
    return before or _first_call(block)
