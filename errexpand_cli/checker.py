"""Best-effort, declaration-level type information over tree-sitter trees.

The checker answers the handful of questions the expander asks: what an
identifier is bound to, what a member selection selects, which lexical
scope a node opens, the type of an expression and the result signature of
a function. Everything is computed lazily and cached for the lifetime of
one checker; bindings that cannot be resolved are logged and reported as
``None``, never raised.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .config import DEFAULT_FAILURE_TYPE, BuildContext
from .gotypes import (
    FIELD_VAL,
    METHOD_EXPR,
    METHOD_VAL,
    Array,
    Basic,
    Builtin,
    Chan,
    Const,
    Field,
    Func,
    FuncType,
    Interface,
    Map,
    Named,
    Object,
    PkgName,
    Pointer,
    Scope,
    Selection,
    Slice,
    Struct,
    Tuple_,
    Type,
    TypeName,
    Var,
    build_universe,
    deref,
)
from .importer import Importer
from .models import ResultSlot, Signature, SourceFile, node_key
from .parser import FUNCTION_NODES, assignment_operator, expression_list, node_text, statements, string_value, unparen

logger = logging.getLogger(__name__)

# Nodes that open a lexical scope.
SCOPE_NODES = frozenset({
    "function_declaration", "method_declaration", "func_literal", "block",
    "if_statement", "for_statement", "expression_switch_statement",
    "type_switch_statement", "select_statement", "expression_case",
    "default_case", "type_case", "communication_case",
})

_COMPARISON_OPS = frozenset({"==", "!=", "<", "<=", ">", ">=", "&&", "||"})

_LITERAL_TYPES = {
    "interpreted_string_literal": "string",
    "raw_string_literal": "string",
    "int_literal": "int",
    "float_literal": "float64",
    "imaginary_literal": "complex128",
    "rune_literal": "rune",
    "true": "bool",
    "false": "bool",
}

_TYPE_EXPR_NODES = frozenset({
    "slice_type", "array_type", "map_type", "channel_type", "pointer_type",
    "function_type", "struct_type", "interface_type", "qualified_type",
    "generic_type", "type_identifier",
})


@dataclass(eq=False)
class Package:
    """A checked package: its scope, files and methods by receiver type name."""
    path: str
    name: str
    scope: Scope
    files: List["FileContext"] = field(default_factory=list)
    methods: Dict[str, Dict[str, Func]] = field(default_factory=dict)


@dataclass(eq=False)
class FileContext:
    """Per-file state: the file scope holds the file's imports."""
    source: SourceFile
    package: Package
    scope: Scope
    src_dir: Path
    imports: List[PkgName] = field(default_factory=list)
    dot_imports: List[str] = field(default_factory=list)


def guess_package_name(import_path: str) -> str:
    """The conventional package name for an import path.

    ``example.com/mod/v2`` -> ``mod``, ``gopkg.in/yaml.v3`` -> ``yaml``,
    ``github.com/mattn/go-sqlite3`` -> ``sqlite3``.
    """
    parts = [p for p in import_path.split("/") if p]
    if not parts:
        return ""
    last = parts[-1]
    if re.fullmatch(r"v\d+", last) and len(parts) > 1:
        last = parts[-2]
    last = re.sub(r"\.v\d+$", "", last)
    if last.startswith("go-"):
        last = last[3:]
    return re.sub(r"[^\w]", "_", last)


class Checker:
    """Resolves bindings for one set of files plus whatever they import.

    ``check`` may be called more than once (the expander re-checks a larger
    file set on escalation); imported packages are shared between calls.
    """

    def __init__(
        self,
        build: BuildContext,
        failure_type: str = DEFAULT_FAILURE_TYPE,
        importer: Optional[Importer] = None,
    ) -> None:
        self.build = build
        self.failure_type = failure_type
        self.importer = importer or Importer(build)
        self.universe, self.error_type = build_universe()
        self._packages: Dict[Path, Optional[Package]] = {}
        self._unsafe: Optional[Package] = None
        self._contexts: Dict[int, FileContext] = {}
        self._all_contexts: List[FileContext] = []
        self._scopes: Dict[Tuple[int, Tuple[int, int, str]], Scope] = {}
        self._named: Dict[int, Named] = {}
        self._underlying: Dict[int, Optional[Type]] = {}
        self._var_types: Dict[int, Optional[Type]] = {}
        self._signatures: Dict[int, Optional[Signature]] = {}
        self._resolving: Set[Any] = set()
        self._error_methods = {"Error": Func(name="Error")}

    # ------------------------------------------------------------------
    # Packages and files
    # ------------------------------------------------------------------

    def check(self, files: Iterable[SourceFile], path: str = "", primary: Optional[SourceFile] = None) -> Package:
        """Check *files* as one package.

        Files are processed in path order, *primary* first, so that the
        outcome does not depend on the order in which they were supplied.
        A package-level name declared twice keeps its first declaration.
        """
        ordered = sorted(files, key=lambda f: (f is not primary, str(f.path)))
        name = ordered[0].package_name if ordered else ""
        pkg = self._new_package(path, name, ordered)
        logger.debug("checked package %s (%d file(s))", name or "?", len(ordered))
        return pkg

    def context_of(self, source: SourceFile) -> FileContext:
        try:
            return self._contexts[id(source)]
        except KeyError:
            raise KeyError(f"{source.path} has not been checked") from None

    def _new_package(self, path: str, name: str, files: List[SourceFile]) -> Package:
        pkg = Package(path=path, name=name, scope=Scope(self.universe, kind="package"))
        for source in files:
            ctx = FileContext(
                source=source,
                package=pkg,
                scope=Scope(pkg.scope, kind="file"),
                src_dir=source.path.parent,
            )
            pkg.files.append(ctx)
            self._contexts[id(source)] = ctx
            self._all_contexts.append(ctx)
            self._collect(ctx)
        return pkg

    def _collect(self, ctx: FileContext) -> None:
        pkg = ctx.package
        for decl in ctx.source.root.named_children:
            kind = decl.type
            if kind == "import_declaration":
                for spec in _specs(decl, "import_spec"):
                    self._collect_import(spec, ctx)
            elif kind == "function_declaration":
                name = node_text(decl.child_by_field_name("name"))
                if name != "init":
                    pkg.scope.insert(Func(name=name, pkg=pkg, decl=decl, ctx=ctx))
            elif kind == "method_declaration":
                name = node_text(decl.child_by_field_name("name"))
                receiver = decl.child_by_field_name("receiver")
                base = _receiver_base(receiver)
                if base:
                    pkg.methods.setdefault(base, {}).setdefault(name, Func(
                        name=name, pkg=pkg, decl=decl, ctx=ctx, recv=receiver
                    ))
            elif kind == "type_declaration":
                for spec in decl.named_children:
                    if spec.type in ("type_spec", "type_alias"):
                        pkg.scope.insert(self._type_name(spec, ctx))
            elif kind == "var_declaration":
                for spec in _specs(decl, "var_spec"):
                    for var in self._spec_vars(spec, ctx):
                        pkg.scope.insert(var)
            elif kind == "const_declaration":
                for spec in _specs(decl, "const_spec"):
                    for ident in spec.children_by_field_name("name"):
                        pkg.scope.insert(Const(
                            name=node_text(ident), pkg=pkg, decl=spec, ctx=ctx,
                            type_node=spec.child_by_field_name("type"),
                        ))

    def _collect_import(self, spec: Any, ctx: FileContext) -> None:
        path_node = spec.child_by_field_name("path")
        if path_node is None:
            return
        import_path = string_value(path_node)
        name_node = spec.child_by_field_name("name")
        if name_node is not None:
            local = node_text(name_node)
            if local == "_":
                return
            if local == ".":
                ctx.dot_imports.append(import_path)
                return
        else:
            local = guess_package_name(import_path)
        obj = PkgName(name=local, pkg=ctx.package, decl=spec, ctx=ctx, path=import_path)
        ctx.scope.insert(obj)
        ctx.imports.append(obj)

    def _type_name(self, spec: Any, ctx: FileContext) -> TypeName:
        return TypeName(
            name=node_text(spec.child_by_field_name("name")),
            pkg=ctx.package,
            decl=spec,
            ctx=ctx,
            alias=spec.type == "type_alias",
        )

    def _spec_vars(self, spec: Any, ctx: FileContext) -> List[Var]:
        type_node = spec.child_by_field_name("type")
        return [
            Var(name=node_text(ident), pkg=ctx.package, decl=spec, ctx=ctx,
                kind="var_spec", index=i, type_node=type_node)
            for i, ident in enumerate(spec.children_by_field_name("name"))
        ]

    def import_package(self, import_path: str, src_dir: Path) -> Optional[Package]:
        if import_path == "unsafe":
            return self._unsafe_package()
        if import_path == "C":
            return None
        directory = self.importer.find_package_dir(import_path, src_dir)
        if directory is None:
            logger.info("cannot find package %r", import_path)
            return None
        directory = directory.resolve()
        if directory in self._packages:
            return self._packages[directory]
        # placeholder guards against import cycles while loading
        self._packages[directory] = None
        files = self.importer.load_package(directory)
        if not files:
            logger.info("no buildable Go files for %r in %s", import_path, directory)
            return None
        pkg = self._new_package(import_path, files[0].package_name, files)
        self._packages[directory] = pkg
        logger.debug("imported %s from %s", import_path, directory)
        return pkg

    def _unsafe_package(self) -> Package:
        if self._unsafe is None:
            pkg = Package(path="unsafe", name="unsafe", scope=Scope(self.universe, kind="package"))
            pkg.scope.insert(TypeName(name="Pointer", pkg=pkg, basic=Basic("unsafe.Pointer", "unsafe_pointer")))
            for name in ("Sizeof", "Alignof", "Offsetof", "Add", "Slice", "String", "StringData", "SliceData"):
                pkg.scope.insert(Builtin(name=name, pkg=pkg))
            self._unsafe = pkg
        return self._unsafe

    def package_of(self, pkgname: PkgName) -> Optional[Package]:
        return self.import_package(pkgname.path, pkgname.ctx.src_dir)

    def member(self, pkgname: PkgName, name: str) -> Optional[Object]:
        """The package-level object ``name`` of an imported package."""
        pkg = self.package_of(pkgname)
        if pkg is None:
            return None
        obj = pkg.scope.lookup_local(name)
        if obj is None:
            logger.debug("package %s has no member %s", pkgname.path, name)
        return obj

    # ------------------------------------------------------------------
    # Scopes and bindings
    # ------------------------------------------------------------------

    def scope_record(self, node: Any, ctx: FileContext) -> Optional[Scope]:
        """The scope opened by *node*, or None if it opens none."""
        if node.type == "source_file":
            return ctx.scope
        if node.type not in SCOPE_NODES:
            return None
        key = (id(ctx), node_key(node))
        scope = self._scopes.get(key)
        if scope is None:
            parent = self.scope_at(node.parent, ctx) if node.parent is not None else ctx.scope
            scope = Scope(parent, kind=node.type)
            self._scopes[key] = scope
            self._declare_locals(node, scope, ctx)
        return scope

    def scope_at(self, node: Any, ctx: FileContext) -> Scope:
        """The innermost scope enclosing *node*."""
        current = node
        while current is not None:
            record = self.scope_record(current, ctx)
            if record is not None:
                return record
            current = current.parent
        return ctx.scope

    def _declare_locals(self, node: Any, scope: Scope, ctx: FileContext) -> None:
        kind = node.type
        if kind in FUNCTION_NODES:
            self._declare_signature(node, scope, ctx)
        elif kind in ("if_statement", "expression_switch_statement", "type_switch_statement"):
            init = node.child_by_field_name("initializer")
            if init is not None:
                self._declare_simple(init, scope, ctx)
            if kind == "type_switch_statement":
                for ident in expression_list(node.child_by_field_name("alias")):
                    scope.insert(Var(name=node_text(ident), pkg=ctx.package, decl=node, ctx=ctx, kind="typeswitch"))
        elif kind == "for_statement":
            for child in node.named_children:
                if child.type == "for_clause":
                    init = child.child_by_field_name("initializer")
                    if init is not None:
                        self._declare_simple(init, scope, ctx)
                elif child.type == "range_clause" and assignment_operator(child) == ":=":
                    self._declare_targets(child, "range", scope, ctx)
        elif kind == "communication_case":
            comm = node.child_by_field_name("communication")
            if comm is not None and comm.type == "receive_statement" and assignment_operator(comm) == ":=":
                self._declare_targets(comm, "receive", scope, ctx)
            self._declare_block(node, scope, ctx)
        elif kind != "select_statement":
            self._declare_block(node, scope, ctx)

    def _declare_signature(self, node: Any, scope: Scope, ctx: FileContext) -> None:
        tparams = node.child_by_field_name("type_parameters")
        if tparams is not None:
            for decl in tparams.named_children:
                for ident in decl.children_by_field_name("name"):
                    scope.insert(TypeName(name=node_text(ident), pkg=ctx.package, ctx=ctx))
        for field_name, kind in (("receiver", "recv"), ("parameters", "param"), ("result", "param")):
            plist = node.child_by_field_name(field_name)
            if plist is None or plist.type != "parameter_list":
                continue
            for decl in plist.named_children:
                if decl.type not in ("parameter_declaration", "variadic_parameter_declaration"):
                    continue
                decl_kind = "variadic" if decl.type == "variadic_parameter_declaration" else kind
                type_node = decl.child_by_field_name("type")
                for ident in decl.children_by_field_name("name"):
                    scope.insert(Var(
                        name=node_text(ident), pkg=ctx.package, decl=decl, ctx=ctx,
                        kind=decl_kind, type_node=type_node,
                    ))

    def _declare_simple(self, stmt: Any, scope: Scope, ctx: FileContext) -> None:
        if stmt.type == "short_var_declaration":
            self._declare_targets(stmt, "short", scope, ctx)

    def _declare_targets(self, stmt: Any, kind: str, scope: Scope, ctx: FileContext) -> None:
        for i, ident in enumerate(expression_list(stmt.child_by_field_name("left"))):
            if ident.type == "identifier":
                scope.insert(
                    Var(name=node_text(ident), pkg=ctx.package, decl=stmt, ctx=ctx, kind=kind, index=i),
                    stmt.end_byte,
                )

    def _declare_block(self, node: Any, scope: Scope, ctx: FileContext) -> None:
        for stmt in statements(node):
            kind = stmt.type
            if kind == "short_var_declaration":
                self._declare_simple(stmt, scope, ctx)
            elif kind == "var_declaration":
                for spec in _specs(stmt, "var_spec"):
                    for var in self._spec_vars(spec, ctx):
                        scope.insert(var, spec.end_byte)
            elif kind == "const_declaration":
                for spec in _specs(stmt, "const_spec"):
                    for ident in spec.children_by_field_name("name"):
                        scope.insert(
                            Const(name=node_text(ident), pkg=ctx.package, decl=spec, ctx=ctx,
                                  type_node=spec.child_by_field_name("type")),
                            spec.end_byte,
                        )
            elif kind == "type_declaration":
                for spec in stmt.named_children:
                    if spec.type in ("type_spec", "type_alias"):
                        # a type is in scope from its own name on
                        scope.insert(self._type_name(spec, ctx), spec.child_by_field_name("name").end_byte)

    def object_of(self, ident: Any, ctx: FileContext) -> Optional[Object]:
        """The object an identifier (or type identifier) refers to."""
        name = node_text(ident)
        if name == "_":
            return None
        obj = self.scope_at(ident, ctx).lookup(name, ident.start_byte)
        if obj is None:
            obj = self._lookup_imported(name, ctx)
        if obj is None:
            logger.debug("%s:%d: unresolved identifier %s", ctx.source.path, ident.start_point[0] + 1, name)
        return obj

    def _lookup_imported(self, name: str, ctx: FileContext) -> Optional[Object]:
        for path in ctx.dot_imports:
            pkg = self.import_package(path, ctx.src_dir)
            obj = pkg.scope.lookup_local(name) if pkg is not None else None
            if obj is not None:
                return obj
        # the guessed name of an unnamed import may differ from its package clause
        for pkgname in ctx.imports:
            if pkgname.decl.child_by_field_name("name") is not None or pkgname.name == name:
                continue
            pkg = self.package_of(pkgname)
            if pkg is not None and pkg.name == name:
                return PkgName(name=name, pkg=ctx.package, decl=pkgname.decl, ctx=ctx, path=pkgname.path)
        return None

    def package_operand(self, operand: Any, ctx: FileContext) -> Optional[PkgName]:
        """The imported package an operand names, if it names one."""
        operand = unparen(operand)
        if operand.type not in ("identifier", "package_identifier"):
            return None
        obj = self.object_of(operand, ctx)
        return obj if isinstance(obj, PkgName) else None

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def basic(self, name: str) -> Optional[Basic]:
        obj = self.universe.lookup_local(name)
        return obj.basic if isinstance(obj, TypeName) else None

    def type_from_node(self, node: Any, ctx: FileContext) -> Optional[Type]:
        """The type denoted by a type expression."""
        if node is None:
            return None
        node = unparen(node)
        kind = node.type
        if kind in ("type_identifier", "identifier"):
            return self._typename_type(self.object_of(node, ctx))
        if kind == "qualified_type":
            pkgname = self.object_of(node.child_by_field_name("package"), ctx)
            if not isinstance(pkgname, PkgName):
                return None
            return self._typename_type(self.member(pkgname, node_text(node.child_by_field_name("name"))))
        if kind == "selector_expression":
            # a qualified type in expression position, e.g. new(os.File)
            pkgname = self.package_operand(node.child_by_field_name("operand"), ctx)
            if pkgname is None:
                return None
            return self._typename_type(self.member(pkgname, node_text(node.child_by_field_name("field"))))
        if kind == "generic_type":
            return self.type_from_node(node.child_by_field_name("type"), ctx)
        if kind == "pointer_type":
            inner = node.named_children
            return Pointer(self.type_from_node(inner[0], ctx) if inner else None)
        if kind == "slice_type":
            return Slice(self.type_from_node(node.child_by_field_name("element"), ctx))
        if kind == "array_type":
            length = node.child_by_field_name("length")
            return Array(self.type_from_node(node.child_by_field_name("element"), ctx),
                         node_text(length) if length is not None else "")
        if kind == "implicit_length_array_type":
            return Array(self.type_from_node(node.child_by_field_name("element"), ctx), "...")
        if kind == "map_type":
            return Map(self.type_from_node(node.child_by_field_name("key"), ctx),
                       self.type_from_node(node.child_by_field_name("value"), ctx))
        if kind == "channel_type":
            return Chan(self.type_from_node(node.child_by_field_name("value"), ctx))
        if kind == "function_type":
            return FuncType(self.signature_from_node(node, ctx))
        if kind == "struct_type":
            return self._struct(node, ctx)
        if kind == "interface_type":
            return self._interface(node, ctx)
        return None

    def _typename_type(self, obj: Optional[Object]) -> Optional[Type]:
        if not isinstance(obj, TypeName):
            return None
        if obj.basic is not None:
            return obj.basic
        if obj.pkg is None and obj.name == "error":
            return self.error_type
        if obj.alias:
            if obj.decl is None:
                return Interface() if obj.name == "any" else None
            key = ("alias", id(obj))
            if key in self._resolving:
                return None
            self._resolving.add(key)
            try:
                return self.type_from_node(obj.decl.child_by_field_name("type"), obj.ctx)
            finally:
                self._resolving.discard(key)
        named = self._named.get(id(obj))
        if named is None:
            named = self._named[id(obj)] = Named(obj=obj)
        return named

    def underlying(self, typ: Optional[Type]) -> Optional[Type]:
        """Follow named types to their underlying type; None on cycles."""
        seen: Set[int] = set()
        while isinstance(typ, Named):
            if id(typ) in seen:
                return None
            seen.add(id(typ))
            typ = self._named_underlying(typ)
        return typ

    def _named_underlying(self, named: Named) -> Optional[Type]:
        key = id(named)
        if key in self._underlying:
            return self._underlying[key]
        self._underlying[key] = None
        if named is self.error_type:
            result: Optional[Type] = Interface(methods=dict(self._error_methods))
        elif named.obj.decl is None:
            result = None
        else:
            result = self.type_from_node(named.obj.decl.child_by_field_name("type"), named.obj.ctx)
        self._underlying[key] = result
        return result

    def _struct(self, node: Any, ctx: FileContext) -> Struct:
        fields: List[Field] = []
        body = next((c for c in node.named_children if c.type == "field_declaration_list"), None)
        for decl in (body.named_children if body is not None else ()):
            if decl.type != "field_declaration":
                continue
            type_node = decl.child_by_field_name("type")
            typ = self.type_from_node(type_node, ctx)
            names = decl.children_by_field_name("name")
            if names:
                fields.extend(Field(name=node_text(n), type=typ) for n in names)
                continue
            if any(not c.is_named and c.type == "*" for c in decl.children):
                typ = Pointer(typ)
            fields.append(Field(name=_embedded_name(type_node), type=typ, embedded=True))
        return Struct(fields=fields)

    def _interface(self, node: Any, ctx: FileContext) -> Interface:
        iface = Interface()
        for elem in node.named_children:
            if elem.type in ("method_elem", "method_spec"):
                name = node_text(elem.child_by_field_name("name"))
                iface.methods[name] = Func(name=name, pkg=ctx.package, decl=elem, ctx=ctx)
            elif elem.type in ("type_elem", "constraint_elem"):
                for term in elem.named_children:
                    typ = self.type_from_node(term, ctx)
                    if typ is not None:
                        iface.embedded.append(typ)
            elif elem.type in _TYPE_EXPR_NODES or elem.type == "interface_type_name":
                typ = self.type_from_node(elem if elem.type != "interface_type_name" else elem.named_children[0], ctx)
                if typ is not None:
                    iface.embedded.append(typ)
        return iface

    def interface_methods(self, iface: Interface, seen: Optional[Set[int]] = None) -> Dict[str, Func]:
        seen = seen if seen is not None else set()
        seen.add(id(iface))
        merged: Dict[str, Func] = {}
        for embedded in iface.embedded:
            under = self.underlying(embedded)
            if isinstance(under, Interface) and id(under) not in seen:
                merged.update(self.interface_methods(under, seen))
        merged.update(iface.methods)
        return merged

    def methods_of(self, named: Named) -> Dict[str, Func]:
        pkg = named.obj.pkg
        if not isinstance(pkg, Package):
            return {}
        return pkg.methods.get(named.obj.name, {})

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def type_of(self, expr: Any, ctx: FileContext) -> Optional[Type]:
        """The type of an expression, or None if it cannot be determined."""
        if expr is None:
            return None
        key = (id(ctx), node_key(expr))
        if key in self._resolving:
            return None
        self._resolving.add(key)
        try:
            return self._type_of(unparen(expr), ctx)
        finally:
            self._resolving.discard(key)

    def _type_of(self, expr: Any, ctx: FileContext) -> Optional[Type]:
        kind = expr.type
        if kind in _LITERAL_TYPES:
            return self.basic(_LITERAL_TYPES[kind])
        if kind == "identifier":
            return self._object_type(self.object_of(expr, ctx))
        if kind == "selector_expression":
            pkgname = self.package_operand(expr.child_by_field_name("operand"), ctx)
            name = node_text(expr.child_by_field_name("field"))
            if pkgname is not None:
                return self._object_type(self.member(pkgname, name))
            sel = self.selection(expr, ctx)
            if sel is None:
                return None
            if sel.kind == FIELD_VAL:
                return sel.obj.type
            sig = self.signature_of(sel.obj)
            return FuncType(sig) if sig is not None else None
        if kind == "call_expression":
            return self._call_type(expr, ctx)
        if kind == "composite_literal":
            return self.type_from_node(expr.child_by_field_name("type"), ctx)
        if kind == "func_literal":
            return FuncType(self.signature_from_node(expr, ctx))
        if kind in ("type_assertion_expression", "type_conversion_expression"):
            return self.type_from_node(expr.child_by_field_name("type"), ctx)
        if kind == "unary_expression":
            op = node_text(expr.child_by_field_name("operator"))
            inner = self.type_of(expr.child_by_field_name("operand"), ctx)
            if op == "&":
                return Pointer(inner)
            if op == "*":
                under = self.underlying(inner)
                return under.elem if isinstance(under, Pointer) else None
            if op == "<-":
                under = self.underlying(inner)
                return under.elem if isinstance(under, Chan) else None
            if op == "!":
                return self.basic("bool")
            return inner
        if kind == "binary_expression":
            if node_text(expr.child_by_field_name("operator")) in _COMPARISON_OPS:
                return self.basic("bool")
            return self.type_of(expr.child_by_field_name("left"), ctx) or self.type_of(
                expr.child_by_field_name("right"), ctx
            )
        if kind == "index_expression":
            under = self.underlying(self.type_of(expr.child_by_field_name("operand"), ctx))
            if isinstance(under, Pointer):
                under = self.underlying(under.elem)
            if isinstance(under, (Slice, Array)):
                return under.elem
            if isinstance(under, Map):
                return under.value
            if isinstance(under, Basic) and under.kind == "string":
                return self.basic("byte")
            return None
        if kind == "slice_expression":
            operand = self.type_of(expr.child_by_field_name("operand"), ctx)
            under = self.underlying(operand)
            if isinstance(under, Pointer):
                under = self.underlying(under.elem)
            if isinstance(under, Array):
                return Slice(under.elem)
            return operand
        return None

    def _object_type(self, obj: Optional[Object]) -> Optional[Type]:
        if isinstance(obj, Var):
            return self.var_type(obj)
        if isinstance(obj, Const) and obj.type_node is not None:
            return self.type_from_node(obj.type_node, obj.ctx)
        if isinstance(obj, Func):
            sig = self.signature_of(obj)
            return FuncType(sig) if sig is not None else None
        return None

    def var_type(self, var: Var) -> Optional[Type]:
        key = id(var)
        if key in self._var_types:
            return self._var_types[key]
        if key in self._resolving:
            return None
        self._resolving.add(key)
        try:
            typ = self._compute_var_type(var)
        finally:
            self._resolving.discard(key)
        self._var_types[key] = typ
        return typ

    def _compute_var_type(self, var: Var) -> Optional[Type]:
        ctx = var.ctx
        if var.type_node is not None:
            typ = self.type_from_node(var.type_node, ctx)
            return Slice(typ) if var.kind == "variadic" else typ
        if var.kind == "var_spec":
            return self._nth_value_type(expression_list(var.decl.child_by_field_name("value")), var.index, ctx)
        if var.kind in ("short", "receive"):
            return self._nth_value_type(expression_list(var.decl.child_by_field_name("right")), var.index, ctx)
        if var.kind == "range":
            return self._range_type(var.decl.child_by_field_name("right"), var.index, ctx)
        return None

    def _nth_value_type(self, values: List[Any], index: int, ctx: FileContext) -> Optional[Type]:
        if len(values) > 1:
            return self.type_of(values[index], ctx) if index < len(values) else None
        if not values:
            return None
        typ = self.type_of(values[0], ctx)
        if isinstance(typ, Tuple_):
            return typ.types[index] if index < len(typ.types) else None
        if index == 0:
            return typ
        # comma-ok forms: map index, type assertion, channel receive
        return self.basic("bool") if index == 1 else None

    def _range_type(self, expr: Any, index: int, ctx: FileContext) -> Optional[Type]:
        under = self.underlying(self.type_of(expr, ctx))
        if isinstance(under, Pointer):
            under = self.underlying(under.elem)
        if isinstance(under, (Slice, Array)):
            return self.basic("int") if index == 0 else under.elem
        if isinstance(under, Map):
            return under.key if index == 0 else under.value
        if isinstance(under, Chan):
            return under.elem if index == 0 else None
        if isinstance(under, Basic):
            if under.kind == "string":
                return self.basic("int") if index == 0 else self.basic("rune")
            if under.kind == "int":
                return under if index == 0 else None
        return None

    def _call_type(self, call: Any, ctx: FileContext) -> Optional[Type]:
        func = unparen(call.child_by_field_name("function"))
        callee = self.callee_object(func, ctx)
        if isinstance(callee, TypeName):
            return self._typename_type(callee)
        if isinstance(callee, Builtin):
            return self._builtin_type(callee.name, call, ctx)
        if func.type in _TYPE_EXPR_NODES and func.type != "type_identifier":
            return self.type_from_node(func, ctx)
        under = self.underlying(self.type_of(func, ctx))
        if isinstance(under, FuncType) and under.signature is not None:
            results = under.signature.results
            if len(results) == 1:
                return results[0].type
            if results:
                return Tuple_([slot.type for slot in results])
        return None

    def _builtin_type(self, name: str, call: Any, ctx: FileContext) -> Optional[Type]:
        args_node = call.child_by_field_name("arguments")
        args = [a for a in args_node.named_children if a.type != "comment"] if args_node is not None else []
        if name == "new" and args:
            return Pointer(self.type_from_node(args[0], ctx))
        if name == "make" and args:
            return self.type_from_node(args[0], ctx)
        if name in ("len", "cap", "copy"):
            return self.basic("int")
        if name in ("append", "min", "max") and args:
            return self.type_of(args[0], ctx)
        if name == "recover":
            return Interface()
        return None

    def callee_object(self, func: Any, ctx: FileContext) -> Optional[Object]:
        """The object named by a call target: a bare or package-qualified name."""
        func = unparen(func)
        if func.type == "identifier":
            return self.object_of(func, ctx)
        if func.type == "selector_expression":
            pkgname = self.package_operand(func.child_by_field_name("operand"), ctx)
            if pkgname is not None:
                return self.member(pkgname, node_text(func.child_by_field_name("field")))
        return None

    # ------------------------------------------------------------------
    # Selections
    # ------------------------------------------------------------------

    def selection(self, selector: Any, ctx: FileContext) -> Optional[Selection]:
        """The member a ``x.name`` selector expression selects.

        Returns None for package-qualified names, which are not selections.
        """
        operand = unparen(selector.child_by_field_name("operand"))
        name = node_text(selector.child_by_field_name("field"))
        if self.package_operand(operand, ctx) is not None:
            return None
        if operand.type == "identifier":
            obj = self.object_of(operand, ctx)
            if isinstance(obj, TypeName):
                found = self.lookup_field_or_method(self._typename_type(obj), name)
                if found is None:
                    return None
                return Selection(METHOD_EXPR, found.obj, found.recv, found.via_interface, found.depth)
        typ = self.type_of(operand, ctx)
        if typ is None:
            logger.debug("%s: cannot type operand of .%s", ctx.source.path, name)
            return None
        return self.lookup_field_or_method(typ, name)

    def lookup_field_or_method(self, typ: Optional[Type], name: str) -> Optional[Selection]:
        """Breadth-first search through embedded fields, shallowest match wins."""
        level: List[Optional[Type]] = [typ]
        seen: Set[int] = set()
        depth = 0
        while level:
            found: List[Selection] = []
            next_level: List[Optional[Type]] = []
            for candidate in level:
                candidate = deref(candidate)
                if candidate is None:
                    continue
                if isinstance(candidate, Named):
                    if id(candidate.obj) in seen:
                        continue
                    seen.add(id(candidate.obj))
                    method = self.methods_of(candidate).get(name)
                    if method is not None:
                        found.append(Selection(METHOD_VAL, method, typ, depth=depth))
                        continue
                under = self.underlying(candidate)
                if isinstance(under, Struct):
                    for fld in under.fields:
                        if fld.name == name:
                            found.append(Selection(FIELD_VAL, fld, typ, depth=depth))
                        elif fld.embedded:
                            next_level.append(fld.type)
                elif isinstance(under, Interface):
                    method = self.interface_methods(under).get(name)
                    if method is not None:
                        found.append(Selection(METHOD_VAL, method, typ, via_interface=True, depth=depth))
            if len(found) == 1:
                return found[0]
            if found:
                logger.debug("ambiguous selector .%s at depth %d", name, depth)
                return None
            level = next_level
            depth += 1
        return None

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def signature_of(self, func: Func) -> Optional[Signature]:
        key = id(func)
        if key in self._signatures:
            return self._signatures[key]
        sig = None
        if func.decl is not None and func.ctx is not None:
            pkg = func.pkg
            owner = getattr(pkg, "path", "") or getattr(pkg, "name", "")
            sig = self.signature_from_node(func.decl, func.ctx, label=f"{owner}.{func.name}" if owner else func.name)
        self._signatures[key] = sig
        return sig

    def signature_from_node(self, node: Any, ctx: FileContext, label: str = "") -> Signature:
        """Result slots of a function declaration, literal, method or function type.

        Grouped names (``a, b int``) give one slot each; the last slot whose
        type is the failure type takes the failure role.
        """
        result = node.child_by_field_name("result")
        raw: List[Tuple[Optional[str], Any]] = []
        if result is not None:
            if result.type == "parameter_list":
                for decl in result.named_children:
                    if decl.type != "parameter_declaration":
                        continue
                    type_node = decl.child_by_field_name("type")
                    names = decl.children_by_field_name("name")
                    if names:
                        raw.extend((node_text(n), type_node) for n in names)
                    else:
                        raw.append((None, type_node))
            else:
                raw.append((None, result))
        failure_index = None
        for i, (_, type_node) in enumerate(raw):
            if self.is_failure_type(type_node):
                failure_index = i
        slots = tuple(
            ResultSlot(
                index=i,
                type_text=ctx.source.text(type_node),
                role="failure" if i == failure_index else "value",
                name=name,
                type_node=type_node,
                type=self.type_from_node(type_node, ctx),
            )
            for i, (name, type_node) in enumerate(raw)
        )
        return Signature(results=slots, label=label)

    def is_failure_type(self, type_node: Any) -> bool:
        type_node = unparen(type_node)
        return type_node is not None and node_text(type_node) == self.failure_type


def _specs(node: Any, kind: str) -> Iterator[Any]:
    """Specs of a declaration, looking through parenthesized spec lists."""
    for child in node.named_children:
        if child.type == kind:
            yield child
        elif child.type.endswith("_list"):
            yield from _specs(child, kind)


def _receiver_base(receiver: Any) -> str:
    """The receiver's base type name: ``(l *List[T])`` -> ``List``."""
    if receiver is None:
        return ""
    for decl in receiver.named_children:
        if decl.type != "parameter_declaration":
            continue
        node = decl.child_by_field_name("type")
        while node is not None and node.type in ("pointer_type", "parenthesized_type", "generic_type"):
            if node.type == "generic_type":
                node = node.child_by_field_name("type")
            else:
                inner = node.named_children
                node = inner[0] if inner else None
        return node_text(node) if node is not None else ""
    return ""


def _embedded_name(type_node: Any) -> str:
    node = type_node
    if node.type == "generic_type":
        node = node.child_by_field_name("type")
    if node.type == "qualified_type":
        node = node.child_by_field_name("name")
    return node_text(node)
