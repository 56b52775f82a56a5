"""Core data models shared by the resolver, transform and splice layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple


@dataclass(frozen=True)
class SourceFile:
    """One parsed Go file. The tree is never mutated."""
    path: Path
    source: bytes
    tree: Any

    @property
    def root(self) -> Any:
        return self.tree.root_node

    @property
    def package_name(self) -> str:
        for child in self.root.named_children:
            if child.type == "package_clause":
                for sub in child.named_children:
                    return sub.text.decode("utf-8")
        return ""

    def text(self, node: Any) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8")

    def line_of(self, offset: int) -> int:
        """1-based line number of a byte offset."""
        return self.source.count(b"\n", 0, offset) + 1


@dataclass(frozen=True)
class NodePath:
    """Syntax nodes enclosing a position, innermost first, ending at the root."""
    nodes: Tuple[Any, ...]
    exact: bool = False
    # repaired start offset of the position the path was resolved from
    offset: Optional[int] = None

    def __iter__(self):
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> Any:
        return self.nodes[index]

    @property
    def innermost(self) -> Any:
        return self.nodes[0]

    def after(self, node: Any) -> Tuple[Any, ...]:
        """The ancestors of *node* within this path, innermost first."""
        for idx, candidate in enumerate(self.nodes):
            if same_node(candidate, node):
                return self.nodes[idx + 1:]
        return ()


@dataclass(frozen=True)
class CallSite:
    node: Any
    start: int
    end: int
    text: str

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError("call site must have a non-empty range")


@dataclass(frozen=True)
class ResultSlot:
    """One return value position of a signature."""
    index: int
    type_text: str
    role: str = "value"  # "value" or "failure"
    name: Optional[str] = None
    type_node: Any = None
    type: Any = None

    @property
    def is_failure(self) -> bool:
        return self.role == "failure"


@dataclass(frozen=True)
class Signature:
    results: Tuple[ResultSlot, ...]
    label: str = ""

    @property
    def arity(self) -> int:
        return len(self.results)

    @property
    def failure_slot(self) -> Optional[ResultSlot]:
        for slot in self.results:
            if slot.is_failure:
                return slot
        return None


@dataclass(frozen=True)
class ScopeSnapshot:
    """Identifiers visible at one position, answered lazily from a scope record."""
    record: Any
    position: int

    def contains(self, name: str) -> bool:
        if self.record is None:
            return False
        return self.record.lookup(name, self.position) is not None


# ---------------------------------------------------------------------------
# Synthesized syntax: the nodes a ReplacementPlan is made of
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Ident:
    name: str


@dataclass(frozen=True)
class BasicLit:
    value: str


@dataclass(frozen=True)
class CompositeLit:
    type_text: str


@dataclass(frozen=True)
class SourceExpr:
    """An expression copied verbatim from the original file."""
    text: str


@dataclass(frozen=True)
class CallRef:
    """The call expression under the cursor."""
    call: CallSite


@dataclass(frozen=True)
class BinaryExpr:
    x: Any
    op: str
    y: Any


@dataclass(frozen=True)
class AssignStmt:
    lhs: Tuple[Any, ...]
    tok: str
    rhs: Tuple[Any, ...]


@dataclass(frozen=True)
class ReturnStmt:
    results: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class VarDecl:
    name: str
    type_name: str


@dataclass(frozen=True)
class ExprStmt:
    expr: Any


@dataclass(frozen=True)
class RawStmt:
    """A statement supplied as text, e.g. a user error callback."""
    text: str


@dataclass(frozen=True)
class IfStmt:
    cond: Any
    body: Tuple[Any, ...]
    init: Optional[AssignStmt] = None


@dataclass
class ReplacementPlan:
    """Nodes replacing the subject span ``[start, end)`` of one file."""
    start: int
    end: int
    nodes: List[Any]
    call: CallSite
    file_size: int
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not (0 <= self.start < self.end <= self.file_size):
            raise ValueError(
                f"subject [{self.start}, {self.end}) is not inside a file of {self.file_size} bytes"
            )
        if self.start == 0 and self.end == self.file_size:
            raise ValueError("subject must be a strict sub-range of the file")


@dataclass
class EditResult:
    """Structured description of one edit, in 1-based original line numbers."""
    start_line: int
    end_line: int
    replacement_lines: List[str]
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "start_line": self.start_line,
            "end_line": self.end_line,
            "replacement_lines": list(self.replacement_lines),
            "warnings": list(self.warnings),
        }


@dataclass
class ExpansionResult:
    path: Path
    original: str
    formatted: str
    plan: ReplacementPlan
    edit: EditResult
    escalated: bool = False

    @property
    def warnings(self) -> List[str]:
        return self.edit.warnings


def node_key(node: Any) -> Tuple[int, int, str]:
    return (node.start_byte, node.end_byte, node.type)


def same_node(a: Any, b: Any) -> bool:
    return node_key(a) == node_key(b)
