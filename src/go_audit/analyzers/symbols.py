"""Symbol analyzers — declarations, type descriptions and references."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.discover import is_test_file
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import receiver_string, signature, stringify
from go_audit.core.query import is_exported, name_match
from go_audit.core.syntax import (
    INTERFACE_METHODS,
    child,
    children,
    children_of_type,
    first_named,
    iter_descendants,
    package_name,
    receiver_type_name,
    text,
    top_level,
)
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.errors import NotFoundError


@dataclass(frozen=True, slots=True)
class Symbol:
    name: str
    kind: str          # function | method | struct | interface | type | constant | variable
    package: str
    position: SourcePosition
    exported: bool


@dataclass(frozen=True, slots=True)
class FieldInfo:
    name: str
    type: str
    exported: bool
    tag: str = ""


@dataclass(frozen=True, slots=True)
class MethodInfo:
    name: str
    signature: str
    exported: bool
    receiver: str = ""


@dataclass
class TypeInfo:
    name: str
    package: str
    kind: str          # struct | interface | alias | other
    position: SourcePosition
    fields: list[FieldInfo] = field(default_factory=list)
    methods: list[MethodInfo] = field(default_factory=list)
    embedded: list[str] = field(default_factory=list)
    interface: list[MethodInfo] = field(default_factory=list)
    underlying: str = ""


@dataclass(frozen=True, slots=True)
class Reference:
    name: str
    kind: str          # identifier | type | selector
    context: str
    position: SourcePosition


# ── shared extraction helpers ────────────────────────────────────────


def type_kind(type_node: Node | None) -> str:
    if type_node is None:
        return "type"
    if type_node.type == "struct_type":
        return "struct"
    if type_node.type == "interface_type":
        return "interface"
    return "type"


def struct_fields(struct: Node) -> list[FieldInfo]:
    """Named and embedded fields of a ``struct_type``, in order."""
    result: list[FieldInfo] = []
    for decl in children_of_type(first_named(struct), "field_declaration"):
        type_str = embedded_type(decl) or stringify(child(decl, "type"))
        tag = text(child(decl, "tag"))
        names = children(decl, "name")
        if not names:
            result.append(FieldInfo(name="", type=type_str, exported=True, tag=tag))
            continue
        for n in names:
            result.append(
                FieldInfo(name=text(n), type=type_str, exported=is_exported(text(n)), tag=tag)
            )
    return result


def embedded_type(decl: Node) -> str:
    """Type of an embedded field declaration (``*T`` keeps its star), else ``""``."""
    if children(decl, "name"):
        return ""
    type_str = stringify(child(decl, "type"))
    if any(c.type == "*" for c in decl.children):
        return "*" + type_str
    return type_str


def struct_embedded(struct: Node) -> list[str]:
    return [
        embedded_type(decl)
        for decl in children_of_type(first_named(struct), "field_declaration")
        if not children(decl, "name")
    ]


def interface_methods(iface: Node) -> list[MethodInfo]:
    methods: list[MethodInfo] = []
    for elem in iface.named_children:
        if elem.type in INTERFACE_METHODS:
            name = text(child(elem, "name"))
            methods.append(MethodInfo(name=name, signature=signature(elem), exported=is_exported(name)))
    return methods


def interface_embedded(iface: Node) -> list[str]:
    """Embedded interfaces and type-set elements (``io.Reader``, ``~int | ~string``)."""
    return [
        stringify(elem)
        for elem in iface.named_children
        if elem.type in ("type_elem", "constraint_elem", "interface_type_name", "type_identifier", "qualified_type")
    ]


def declared_methods(tree: Tree) -> list[tuple[str, MethodInfo]]:
    """``(receiver_base_type, MethodInfo)`` for every method in the file."""
    result: list[tuple[str, MethodInfo]] = []
    for fn in top_level(tree, "method_declaration"):
        name = text(child(fn, "name"))
        result.append(
            (
                receiver_type_name(fn),
                MethodInfo(
                    name=name,
                    signature=signature(fn),
                    exported=is_exported(name),
                    receiver=receiver_string(fn),
                ),
            )
        )
    return result


def _value_kind(spec: Node) -> str:
    return "constant" if spec.type == "const_spec" else "variable"


# ── find_symbols ─────────────────────────────────────────────────────


def find_symbols(
    root: Path | str,
    pattern: str = "",
    *,
    session: WalkSession | None = None,
) -> list[Symbol]:
    """Declarations whose name matches *pattern* (case-insensitive substring).

    Test files are skipped unless *pattern* mentions ``Test``.
    """
    symbols: list[Symbol] = []
    include_tests = "Test" in pattern

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        if is_test_file(path) and not include_tests:
            return
        pkg = package_name(tree)

        def add(name: str, kind: str, node: Node) -> None:
            if name_match(name, pattern):
                symbols.append(
                    Symbol(
                        name=name,
                        kind=kind,
                        package=pkg,
                        position=resolver.position_of(node),
                        exported=is_exported(name),
                    )
                )

        for node in iter_descendants(tree.root_node):
            if node.type == "function_declaration":
                add(text(child(node, "name")), "function", node)
            elif node.type == "method_declaration":
                add(text(child(node, "name")), "method", node)
            elif node.type in ("type_spec", "type_alias"):
                name_node = child(node, "name")
                add(text(name_node), type_kind(child(node, "type")), name_node or node)
            elif node.type in ("const_spec", "var_spec"):
                for name_node in children(node, "name"):
                    add(text(name_node), _value_kind(node), name_node)

    session_or_default(session).walk(root, visit)
    return symbols


# ── get_type_info ────────────────────────────────────────────────────


def _describe_type(spec: Node, pkg: str, resolver: PositionResolver) -> TypeInfo:
    name_node = child(spec, "name")
    type_node = child(spec, "type")
    info = TypeInfo(
        name=text(name_node),
        package=pkg,
        kind="other",
        position=resolver.position_of(name_node or spec),
    )
    if type_node is None:
        return info
    if type_node.type == "struct_type":
        info.kind = "struct"
        info.fields = struct_fields(type_node)
        info.embedded = struct_embedded(type_node)
    elif type_node.type == "interface_type":
        info.kind = "interface"
        info.interface = interface_methods(type_node)
        info.embedded = interface_embedded(type_node)
    elif type_node.type in ("type_identifier", "qualified_type") or spec.type == "type_alias":
        info.kind = "alias"
        info.underlying = stringify(type_node)
    return info


def get_type_info(
    root: Path | str,
    type_name: str,
    *,
    session: WalkSession | None = None,
) -> TypeInfo:
    """Describe the first type declared as *type_name*.

    Methods are collected from every file of the declaring package
    directory.  Raises :class:`NotFoundError` when no such type exists.
    """
    found: list[tuple[str, TypeInfo]] = []
    methods_by_dir: dict[str, list[tuple[str, MethodInfo]]] = {}

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        pkg_dir = os.path.dirname(path)
        methods_by_dir.setdefault(pkg_dir, []).extend(declared_methods(tree))
        if found:
            return
        for node in iter_descendants(tree.root_node):
            if node.type in ("type_spec", "type_alias") and text(child(node, "name")) == type_name:
                found.append((pkg_dir, _describe_type(node, package_name(tree), resolver)))
                return

    session_or_default(session).walk(root, visit)

    if not found:
        raise NotFoundError("type", type_name)
    pkg_dir, info = found[0]
    info.methods = [m for recv, m in methods_by_dir.get(pkg_dir, []) if recv == type_name]
    return info


# ── find_references ──────────────────────────────────────────────────

_REFERENCE_NODES = {
    "identifier": "identifier",
    "type_identifier": "type",
    "field_identifier": "identifier",
    "package_identifier": "identifier",
}


def find_references(
    root: Path | str,
    symbol: str,
    *,
    session: WalkSession | None = None,
) -> list[Reference]:
    """Every identifier spelled exactly *symbol*, with a line of context."""
    session = session_or_default(session)
    refs: list[Reference] = []
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        for node in iter_descendants(tree.root_node):
            kind = _REFERENCE_NODES.get(node.type)
            if kind is None or text(node) != symbol:
                continue
            parent = node.parent
            if (
                node.type == "field_identifier"
                and parent is not None
                and parent.type == "selector_expression"
            ):
                kind = "selector"
            pos = resolver.position_of(node)
            refs.append(
                Reference(
                    name=symbol,
                    kind=kind,
                    context=context_lines(src, pos, before, after),
                    position=pos,
                )
            )

    session.walk(root, visit)
    return refs
