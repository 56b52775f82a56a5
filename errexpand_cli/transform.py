"""Decide what replaces the statement around the call.

The decision depends on how many values the callee returns (k):

* k = 0: nothing can fail; the call is reproduced as is.
* k = 1: the call, or the assignment it is the right-hand side of, becomes
  ``if err := CALL; err != nil { ... }``.
* k >= 2: the call must be the right-hand side of an assignment. The
  failure identifier is appended to the targets and the check is either
  placed after the assignment (``:=`` with named targets) or wraps it.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from .config import Settings
from .errors import NoAssignmentFound
from .models import (
    AssignStmt,
    BinaryExpr,
    CallRef,
    CallSite,
    ExprStmt,
    Ident,
    IfStmt,
    NodePath,
    RawStmt,
    ReplacementPlan,
    ReturnStmt,
    ScopeSnapshot,
    Signature,
    SourceExpr,
    SourceFile,
    VarDecl,
    same_node,
)
from .parser import assignment_operator, expression_list, unparen
from .zero_values import ZeroValueSynthesizer

logger = logging.getLogger(__name__)

_ASSIGNMENT_NODES = ("assignment_statement", "short_var_declaration")
_WRAPPER_NODES = ("parenthesized_expression", "expression_list")


class TransformEngine:
    def __init__(self, settings: Settings, synthesizer: ZeroValueSynthesizer):
        self.settings = settings
        self.synthesizer = synthesizer

    @property
    def err(self) -> str:
        return self.settings.failure_ident

    def plan(
        self,
        source: SourceFile,
        call: CallSite,
        path: NodePath,
        callee: Signature,
        caller: Signature,
        scope: ScopeSnapshot,
    ) -> ReplacementPlan:
        """Build the replacement for one call.

        Args:
            source: The file being edited
            call: The call under the cursor
            path: NodePath starting at the call node
            callee: Result signature of the call
            caller: Result signature of the enclosing function
            scope: Identifiers visible at the call

        Raises:
            NoAssignmentFound: k >= 2 and the call is not assigned
        """
        k = callee.arity
        warnings: List[str] = []
        if k == 0:
            logger.info("%s returns nothing; leaving the call unchanged", callee.label or "callee")
            return self._make_plan(source, call, call.node, [ExprStmt(CallRef(call))], warnings)

        body, body_warnings = self.body(caller)
        warnings.extend(body_warnings)
        assign = self.assignment_for(call, path)

        if k == 1:
            slot = callee.results[0]
            if not slot.is_failure:
                warnings.append(
                    f"{callee.label or 'the callee'} returns {slot.type_text}, not {self.settings.failure_type}; "
                    f"checking it as the failure value"
                )
            if assign is not None:
                dropped = [t for t in self._targets(source, assign) if t not in ("_", self.err)]
                if dropped:
                    warnings.append(f"the assignment to {', '.join(dropped)} is replaced by the error check")
            node = IfStmt(
                cond=self._failed(),
                body=body,
                init=AssignStmt((Ident(self.err),), ":=", (CallRef(call),)),
            )
            return self._make_plan(source, call, assign if assign is not None else call.node, [node], warnings)

        if assign is None:
            raise NoAssignmentFound(
                f"{callee.label or 'the callee'} returns {k} values; "
                f"assign its results (e.g. 'x := {call.text}') before expanding"
            )
        targets = self._targets(source, assign)
        tok = assignment_operator(assign)
        only_underscore = all(t == "_" for t in targets)
        lhs = list(targets)
        if self.err not in lhs:
            lhs.append(self.err)
        if len(lhs) != k:
            warnings.append(f"{callee.label or 'the callee'} returns {k} values but {len(lhs)} targets are assigned")
        if not only_underscore and "_" in targets:
            warnings.append("the assignment mixes discarded and named targets; review the declared variables")
        lhs_nodes = tuple(Ident(t) if t.isidentifier() else SourceExpr(t) for t in lhs)

        if not only_underscore and tok == ":=":
            nodes: List[Any] = [
                AssignStmt(lhs_nodes, ":=", (CallRef(call),)),
                IfStmt(cond=self._failed(), body=body),
            ]
        else:
            nodes = []
            if not only_underscore and not scope.contains(self.err):
                nodes.append(VarDecl(self.err, self.settings.failure_type))
            init = AssignStmt(lhs_nodes, ":=" if only_underscore else tok, (CallRef(call),))
            nodes.append(IfStmt(cond=self._failed(), body=body, init=init))
        return self._make_plan(source, call, assign, nodes, warnings)

    def body(self, caller: Signature) -> Tuple[Tuple[Any, ...], List[str]]:
        """Statements run when the failure value is non-nil."""
        stmts: List[Any] = []
        callback = self.settings.error_callback
        if callback:
            stmts.append(RawStmt(callback))
        if caller.failure_slot is None and not callback:
            warning = (
                f"{caller.label or 'the enclosing function'} has no {self.settings.failure_type} result; "
                f"the failure is passed to panic"
            )
            return (ExprStmt(SourceExpr(f"panic({self.err})")),), [warning]
        values, warnings = self.synthesizer.results_for(caller)
        stmts.append(ReturnStmt(values))
        return tuple(stmts), warnings

    def assignment_for(self, call: CallSite, path: NodePath) -> Optional[Any]:
        """The ``=``/``:=`` statement whose only right-hand side is *call*."""
        for node in path.after(call.node):
            if node.type in _WRAPPER_NODES:
                continue
            if node.type not in _ASSIGNMENT_NODES or assignment_operator(node) not in ("=", ":="):
                return None
            rhs = expression_list(node.child_by_field_name("right"))
            if len(rhs) == 1 and same_node(unparen(rhs[0]), call.node):
                return node
            return None
        return None

    def _failed(self) -> BinaryExpr:
        return BinaryExpr(Ident(self.err), "!=", Ident("nil"))

    @staticmethod
    def _targets(source: SourceFile, assign: Any) -> List[str]:
        return [source.text(n) for n in expression_list(assign.child_by_field_name("left"))]

    @staticmethod
    def _make_plan(source: SourceFile, call: CallSite, subject: Any, nodes: List[Any], warnings: List[str]) -> ReplacementPlan:
        return ReplacementPlan(
            start=subject.start_byte,
            end=subject.end_byte,
            nodes=nodes,
            call=call,
            file_size=len(source.source),
            warnings=warnings,
        )
