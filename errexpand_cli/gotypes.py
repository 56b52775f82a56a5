"""A deliberately small model of Go types, objects and scopes.

Only what is needed to pick a call's signature and a result's zero value is
modeled: named types with their methods, the composite type constructors,
struct fields (including embedding), interface method sets and lexical
scopes. Resolution of declared types is lazy and owned by the checker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# ===================================================================
# Types
# ===================================================================

class Type:
    """Base class of all types."""


@dataclass(eq=False)
class Basic(Type):
    name: str
    kind: str  # bool, string, int, float, complex, unsafe_pointer


@dataclass(eq=False)
class Named(Type):
    obj: "TypeName"

    @property
    def name(self) -> str:
        return self.obj.name


@dataclass(eq=False)
class Pointer(Type):
    elem: Optional[Type]


@dataclass(eq=False)
class Slice(Type):
    elem: Optional[Type]


@dataclass(eq=False)
class Array(Type):
    elem: Optional[Type]
    length: str = ""


@dataclass(eq=False)
class Map(Type):
    key: Optional[Type]
    value: Optional[Type]


@dataclass(eq=False)
class Chan(Type):
    elem: Optional[Type]


@dataclass(eq=False)
class Field:
    name: str
    type: Optional[Type]
    embedded: bool = False


@dataclass(eq=False)
class Struct(Type):
    fields: List[Field] = field(default_factory=list)


@dataclass(eq=False)
class Interface(Type):
    methods: Dict[str, "Func"] = field(default_factory=dict)
    embedded: List[Type] = field(default_factory=list)


@dataclass(eq=False)
class FuncType(Type):
    signature: Any  # models.Signature


@dataclass(eq=False)
class Tuple_(Type):
    types: List[Optional[Type]]


# ===================================================================
# Objects
# ===================================================================

@dataclass(eq=False)
class Object:
    name: str
    pkg: Any = None  # checker.Package, None for universe objects
    decl: Any = None  # declaring syntax node
    ctx: Any = None  # checker.FileContext of the declaration


@dataclass(eq=False)
class PkgName(Object):
    path: str = ""


@dataclass(eq=False)
class TypeName(Object):
    alias: bool = False
    basic: Optional[Basic] = None


@dataclass(eq=False)
class Var(Object):
    kind: str = "var"  # param, short, var_spec, range, recv, field
    index: int = 0
    type_node: Any = None


@dataclass(eq=False)
class Const(Object):
    type_node: Any = None


@dataclass(eq=False)
class Func(Object):
    recv: Any = None  # receiver parameter_list node for methods


@dataclass(eq=False)
class Builtin(Object):
    pass


@dataclass(eq=False)
class Nil(Object):
    pass


METHOD_VAL = "method_val"
METHOD_EXPR = "method_expr"
FIELD_VAL = "field_val"


@dataclass(eq=False)
class Selection:
    """The result of selecting ``x.name`` on a value of a known type."""
    kind: str
    obj: Any  # Func for methods, Field for fields
    recv: Optional[Type]
    via_interface: bool = False
    depth: int = 0


# ===================================================================
# Scopes
# ===================================================================

class Scope:
    """A lexical scope whose local entries carry a declaration position.

    An entry declared at position ``pos`` is visible from ``pos`` onward;
    ``pos < 0`` marks entries visible throughout the scope (parameters,
    package members, imports).
    """

    def __init__(self, parent: Optional["Scope"] = None, kind: str = "block") -> None:
        self.parent = parent
        self.kind = kind
        self._entries: Dict[str, List[Tuple[int, Object]]] = {}

    def insert(self, obj: Object, pos: int = -1) -> None:
        if obj.name in ("", "_"):
            return
        self._entries.setdefault(obj.name, []).append((pos, obj))

    def has_local(self, name: str) -> bool:
        return name in self._entries

    def lookup_local(self, name: str, pos: Optional[int] = None) -> Optional[Object]:
        best: Optional[Tuple[int, Object]] = None
        for entry in self._entries.get(name, ()):
            if pos is not None and entry[0] > pos:
                continue
            # the earliest of equally placed declarations wins
            if best is None or entry[0] > best[0]:
                best = entry
        return best[1] if best is not None else None

    def lookup(self, name: str, pos: Optional[int] = None) -> Optional[Object]:
        scope: Optional[Scope] = self
        while scope is not None:
            obj = scope.lookup_local(name, pos)
            if obj is not None:
                return obj
            scope = scope.parent
        return None

    def names(self) -> List[str]:
        return sorted(self._entries)


# ===================================================================
# Universe
# ===================================================================

INT_NAMES = frozenset({
    "int", "int8", "int16", "int32", "int64",
    "uint", "uint8", "uint16", "uint32", "uint64", "uintptr",
    "byte", "rune",
})
FLOAT_NAMES = frozenset({"float32", "float64"})
COMPLEX_NAMES = frozenset({"complex64", "complex128"})

BUILTIN_FUNCS = (
    "append", "cap", "clear", "close", "complex", "copy", "delete", "imag",
    "len", "make", "max", "min", "new", "panic", "print", "println", "real", "recover",
)


def _basic_kind(name: str) -> str:
    if name in INT_NAMES:
        return "int"
    if name in FLOAT_NAMES:
        return "float"
    if name in COMPLEX_NAMES:
        return "complex"
    return name


def build_universe() -> Tuple[Scope, Named]:
    """Return the universe scope and its ``error`` type."""
    universe = Scope(kind="universe")
    for name in sorted(INT_NAMES | FLOAT_NAMES | COMPLEX_NAMES | {"bool", "string"}):
        universe.insert(TypeName(name=name, basic=Basic(name=name, kind=_basic_kind(name))))
    error_obj = TypeName(name="error")
    error_type = Named(obj=error_obj)
    universe.insert(error_obj)
    universe.insert(TypeName(name="any", alias=True))
    universe.insert(TypeName(name="comparable"))
    for name in BUILTIN_FUNCS:
        universe.insert(Builtin(name=name))
    for name in ("true", "false", "iota"):
        universe.insert(Const(name=name))
    universe.insert(Nil(name="nil"))
    return universe, error_type


def deref(typ: Optional[Type]) -> Optional[Type]:
    return typ.elem if isinstance(typ, Pointer) else typ
