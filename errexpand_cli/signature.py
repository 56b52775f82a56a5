"""Result signatures of the callee and of the enclosing function."""

from __future__ import annotations

import logging
from typing import Any, Tuple

from .checker import Checker, FileContext
from .errors import BuiltinCallRejected, NoEnclosingFunction, NoReturnValues, UnknownSignature
from .gotypes import METHOD_VAL, Builtin, Func, TypeName, Var
from .models import CallSite, NodePath, Signature
from .parser import FUNCTION_NODES, node_text, unparen

logger = logging.getLogger(__name__)


class SignatureResolver:
    """Determines the static result signature of a call.

    Only statically dispatched calls resolve: package-level functions
    (bare or package-qualified) and methods selected on a concrete
    receiver type, including methods promoted through embedded fields.
    Everything else raises :class:`UnknownSignature`.
    """

    def __init__(self, checker: Checker, ctx: FileContext):
        self.checker = checker
        self.ctx = ctx

    def resolve(self, call: CallSite) -> Signature:
        target = unparen(call.node.child_by_field_name("function"))
        if target.type == "identifier":
            return self._resolve_identifier(target)
        if target.type == "selector_expression":
            return self._resolve_selector(target)
        raise UnknownSignature(f"cannot determine the signature of a call through {target.type}")

    def _resolve_identifier(self, ident: Any) -> Signature:
        name = node_text(ident)
        obj = self.checker.object_of(ident, self.ctx)
        if isinstance(obj, Builtin):
            raise BuiltinCallRejected(f"this is a call to the built-in '{name}' operator")
        if isinstance(obj, Func):
            return self._signature(obj)
        raise UnknownSignature(f"the signature of {name} could not be found{_describe(obj)}")

    def _resolve_selector(self, selector: Any) -> Signature:
        name = node_text(selector.child_by_field_name("field"))
        pkgname = self.checker.package_operand(selector.child_by_field_name("operand"), self.ctx)
        if pkgname is not None:
            member = self.checker.member(pkgname, name)
            if isinstance(member, Func):
                return self._signature(member)
            if isinstance(member, Builtin):
                raise BuiltinCallRejected(f"this is a call to the built-in '{pkgname.name}.{name}' operator")
            raise UnknownSignature(f"the signature of {pkgname.name}.{name} could not be found{_describe(member)}")

        sel = self.checker.selection(selector, self.ctx)
        if sel is None:
            raise UnknownSignature(f"cannot resolve the receiver of .{name}")
        if sel.kind != METHOD_VAL:
            raise UnknownSignature(f".{name} is not a method value ({sel.kind})")
        if sel.via_interface:
            raise UnknownSignature(f".{name} is dispatched dynamically through an interface")
        return self._signature(sel.obj)

    def _signature(self, func: Func) -> Signature:
        sig = self.checker.signature_of(func)
        if sig is None:
            raise UnknownSignature(f"no declaration available for {func.name}")
        logger.debug("callee %s returns %d value(s)", sig.label or func.name, sig.arity)
        return sig


def _describe(obj: Any) -> str:
    if obj is None:
        return ""
    if isinstance(obj, Var):
        return " (it is a function value)"
    if isinstance(obj, TypeName):
        return " (it is a type conversion)"
    return f" ({type(obj).__name__.lower()})"


def enclosing_function(path: NodePath) -> Any:
    for node in path:
        if node.type in FUNCTION_NODES:
            return node
    raise NoEnclosingFunction("no function definition found around the call")


def enclosing_signature(path: NodePath, checker: Checker, ctx: FileContext) -> Tuple[Any, Signature]:
    """The innermost function declaration or literal around *path* and its signature."""
    func = enclosing_function(path)
    name = func.child_by_field_name("name")
    label = node_text(name) if name is not None else "func literal"
    sig = checker.signature_from_node(func, ctx, label=label)
    if sig.arity == 0:
        raise NoReturnValues(f"{label} returns no values, cannot return error")
    return func, sig
