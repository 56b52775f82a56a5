"""Render synthesized nodes as gofmt-style Go source."""

from __future__ import annotations

import re
from typing import Any, List

from .errors import RenderError
from .models import (
    AssignStmt,
    BasicLit,
    BinaryExpr,
    CallRef,
    CallSite,
    CompositeLit,
    ExprStmt,
    Ident,
    IfStmt,
    RawStmt,
    ReturnStmt,
    SourceExpr,
    VarDecl,
)
from .parser import walk

_TRAILING_SPACE = re.compile(r"[ \t]+$")


def strip_comments(call: CallSite) -> str:
    """The call's text without its comments.

    Whitespace in front of a removed comment goes with it, so
    ``f(a /*x*/)`` renders as ``f(a)``.
    """
    base = call.node.start_byte
    data = call.text.encode("utf-8")
    pieces: List[bytes] = []
    last = 0
    for node in walk(call.node):
        if node.type != "comment":
            continue
        start, end = node.start_byte - base, node.end_byte - base
        if start < last:
            continue
        pieces.append(data[last:start].rstrip(b" \t"))
        last = end
    pieces.append(data[last:])
    return b"".join(pieces).decode("utf-8")


class Renderer:
    """Turns the nodes of a ReplacementPlan into text.

    The first line of a rendered statement carries no indentation (the
    splice keeps the original indentation in front of the subject); nested
    lines are indented with ``indent`` plus tabs.
    """

    def __init__(self, indent: str = ""):
        self.indent = indent

    def expr(self, node: Any) -> str:
        if isinstance(node, Ident):
            return node.name
        if isinstance(node, BasicLit):
            return node.value
        if isinstance(node, CompositeLit):
            return f"{node.type_text}{{}}"
        if isinstance(node, SourceExpr):
            return node.text
        if isinstance(node, CallRef):
            return strip_comments(node.call)
        if isinstance(node, BinaryExpr):
            return f"{self.expr(node.x)} {node.op} {self.expr(node.y)}"
        raise RenderError(f"cannot render expression {type(node).__name__}")

    def stmt(self, node: Any, depth: int = 0) -> str:
        if isinstance(node, ExprStmt):
            return self.expr(node.expr)
        if isinstance(node, AssignStmt):
            lhs = ", ".join(self.expr(e) for e in node.lhs)
            rhs = ", ".join(self.expr(e) for e in node.rhs)
            return f"{lhs} {node.tok} {rhs}"
        if isinstance(node, ReturnStmt):
            if not node.results:
                return "return"
            return "return " + ", ".join(self.expr(e) for e in node.results)
        if isinstance(node, VarDecl):
            return f"var {node.name} {node.type_name}"
        if isinstance(node, RawStmt):
            pad = self.indent + "\t" * depth
            return ("\n" + pad).join(line.strip() for line in node.text.strip().splitlines())
        if isinstance(node, IfStmt):
            return self._if(node, depth)
        raise RenderError(f"cannot render statement {type(node).__name__}")

    def _if(self, node: IfStmt, depth: int) -> str:
        header = "if "
        if node.init is not None:
            header += self.stmt(node.init, depth) + "; "
        header += self.expr(node.cond) + " {"
        inner = self.indent + "\t" * (depth + 1)
        lines = [header]
        for child in node.body:
            lines.append(inner + self.stmt(child, depth + 1))
        lines.append(self.indent + "\t" * depth + "}")
        return "\n".join(_TRAILING_SPACE.sub("", line) for line in lines)
