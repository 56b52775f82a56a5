"""Go source parser built on Tree-sitter.

Tree-sitter produces a concrete syntax tree that keeps every token and
byte offset, which is what the splice driver needs to copy untouched
source verbatim. Parsing is error-tolerant; callers decide whether an
error node is fatal (the file being edited) or merely logged (files of
imported packages).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, List, Optional

import tree_sitter_go
from tree_sitter import Language, Parser as TSParser

from .errors import ParseError
from .models import SourceFile

logger = logging.getLogger(__name__)

GO_LANGUAGE = Language(tree_sitter_go.language())

FUNCTION_NODES = frozenset({"function_declaration", "method_declaration", "func_literal"})

STATEMENT_NODES = frozenset({
    "expression_statement", "short_var_declaration", "assignment_statement",
    "return_statement", "go_statement", "defer_statement", "if_statement",
    "for_statement", "expression_switch_statement", "type_switch_statement",
    "select_statement", "var_declaration", "const_declaration", "type_declaration",
    "send_statement", "inc_statement", "dec_statement", "labeled_statement",
    "block", "statement_list", "var_spec", "const_spec",
})


class GoParser:
    """Thin wrapper over a Tree-sitter parser for the Go grammar.

    Parser instances are not thread-safe; create one per thread.
    """

    def __init__(self) -> None:
        self._parser = TSParser(GO_LANGUAGE)

    def parse_bytes(self, source: bytes, path: Path, strict: bool = True) -> SourceFile:
        tree = self._parser.parse(source)
        parsed = SourceFile(path=path, source=source, tree=tree)
        if tree.root_node.has_error:
            bad = first_error(tree.root_node)
            line, column = (bad.start_point[0] + 1, bad.start_point[1] + 1) if bad is not None else (1, 1)
            what = f"missing {bad.type}" if bad is not None and bad.is_missing else "syntax error"
            if strict:
                raise ParseError(path, line, column, what)
            logger.warning("%s:%d:%d: %s (continuing)", path, line, column, what)
        return parsed

    def parse_file(self, path: Path, strict: bool = True) -> SourceFile:
        try:
            source = path.read_bytes()
        except OSError as exc:
            raise ParseError(path, 0, 0, str(exc)) from exc
        return self.parse_bytes(source, path, strict=strict)


# ===================================================================
# Tree helpers
# ===================================================================

def first_error(node: Any) -> Optional[Any]:
    """Return the first ERROR or missing node in document order."""
    if node.is_error or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = first_error(child)
            if found is not None:
                return found
    return None


def walk(node: Any) -> Iterator[Any]:
    """Pre-order traversal over named nodes."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.named_children))


def unparen(node: Any) -> Any:
    while node is not None and node.type in ("parenthesized_expression", "parenthesized_type"):
        inner = node.named_children
        if not inner:
            break
        node = inner[0]
    return node


def node_text(node: Any) -> str:
    return node.text.decode("utf-8")


def statements(block: Any) -> List[Any]:
    """Statements of a block or case clause, looking through ``statement_list``."""
    out: List[Any] = []
    for child in block.named_children:
        if child.type == "statement_list":
            out.extend(statements(child))
        elif child.type != "comment":
            out.append(child)
    return out


def expression_list(node: Optional[Any]) -> List[Any]:
    if node is None:
        return []
    if node.type == "expression_list":
        return [c for c in node.named_children if c.type != "comment"]
    return [node]


def assignment_operator(node: Any) -> Optional[str]:
    """The operator token of an assignment or short variable declaration."""
    for child in node.children:
        if not child.is_named and child.type.endswith("="):
            return child.type
    return None


def string_value(node: Any) -> str:
    raw = node_text(node)
    if len(raw) >= 2 and raw[0] in "\"`" and raw[-1] == raw[0]:
        return raw[1:-1]
    return raw


def ancestors(node: Any) -> Iterator[Any]:
    current = node.parent
    while current is not None:
        yield current
        current = current.parent
