"""Zero values for the result slots of the enclosing function."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from .checker import Checker
from .config import DEFAULT_FAILURE_IDENT, DEFAULT_FAILURE_TYPE
from .gotypes import COMPLEX_NAMES, FLOAT_NAMES, INT_NAMES, Array, Basic, Chan, FuncType, Interface, Map, Named, Pointer, Slice, Struct
from .models import BasicLit, CompositeLit, Ident, ResultSlot, Signature
from .parser import node_text, unparen

logger = logging.getLogger(__name__)

NIL = Ident("nil")

_NIL_TYPE_NODES = frozenset({
    "slice_type", "pointer_type", "map_type", "channel_type", "function_type", "interface_type",
})
_AGGREGATE_TYPE_NODES = frozenset({"array_type", "implicit_length_array_type", "struct_type"})


def literal_for_basic(kind: str) -> Optional[Any]:
    """Zero literal of a basic kind (see ``gotypes.Basic.kind``)."""
    if kind == "int":
        return BasicLit("0")
    if kind == "float":
        return BasicLit("0.0")
    if kind == "complex":
        return BasicLit("0i")
    if kind == "bool":
        return Ident("false")
    if kind == "string":
        return BasicLit('""')
    if kind == "unsafe_pointer":
        return NIL
    return None


class ZeroValueSynthesizer:
    """Produces the neutral value for a result slot.

    The syntactic shape of the declared type is tried first; named types
    fall back to the checker's view of their underlying type.
    """

    def __init__(
        self,
        checker: Optional[Checker] = None,
        failure_ident: str = DEFAULT_FAILURE_IDENT,
        failure_type: str = DEFAULT_FAILURE_TYPE,
    ):
        self.checker = checker
        self.failure_ident = failure_ident
        self.failure_type = failure_type

    def zero_value(self, slot: ResultSlot) -> Optional[Any]:
        """The zero value of *slot*, or None if it cannot be determined."""
        value = self.syntactic(slot.type_node) if slot.type_node is not None else None
        if value is None:
            value = self.semantic(slot.type, slot.type_text)
        return value

    def syntactic(self, type_node: Any) -> Optional[Any]:
        node = unparen(type_node)
        kind = node.type
        if kind == "type_identifier":
            name = node_text(node)
            if name == self.failure_type:
                return Ident(self.failure_ident)
            if name in INT_NAMES:
                return BasicLit("0")
            if name in FLOAT_NAMES:
                return BasicLit("0.0")
            if name in COMPLEX_NAMES:
                return BasicLit("0i")
            if name == "bool":
                return Ident("false")
            if name == "string":
                return BasicLit('""')
            return None
        if kind in _NIL_TYPE_NODES:
            return NIL
        if kind in _AGGREGATE_TYPE_NODES:
            return CompositeLit(node_text(node))
        return None

    def semantic(self, typ: Any, type_text: str) -> Optional[Any]:
        if isinstance(typ, Basic):
            return literal_for_basic(typ.kind)
        if not isinstance(typ, Named) or self.checker is None:
            return None
        under = self.checker.underlying(typ)
        if isinstance(under, (Struct, Array)):
            return CompositeLit(type_text)
        if isinstance(under, (Interface, Pointer, Slice, Map, Chan, FuncType)):
            return NIL
        if isinstance(under, Basic):
            return literal_for_basic(under.kind)
        logger.debug("no underlying type for %s", type_text)
        return None

    def results_for(self, signature: Signature) -> Tuple[Tuple[Any, ...], List[str]]:
        """Return values for every slot of *signature*, plus warnings.

        Failure slots get the failure identifier; an unresolved slot is
        left as ``nil`` and reported.
        """
        values = []
        warnings = []
        for slot in signature.results:
            if slot.is_failure:
                values.append(Ident(self.failure_ident))
                continue
            value = self.zero_value(slot)
            if value is None:
                warnings.append(
                    f"could not determine the zero value of result {slot.index + 1} "
                    f"({slot.type_text}) of {signature.label or 'the enclosing function'}; left as nil"
                )
                value = NIL
            values.append(value)
        return tuple(values), warnings
