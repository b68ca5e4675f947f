"""Type-system analyzers — interfaces and their implementations, struct /
interface embedding, and generic declarations with their instantiations.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.analyzers.symbols import (
    MethodInfo,
    declared_methods,
    interface_embedded,
    interface_methods,
    struct_embedded,
)
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import stringify, type_arguments
from go_audit.core.syntax import (
    base_type_name,
    child,
    children,
    children_of_type,
    iter_descendants,
    package_name,
    text,
    top_level,
    type_specs,
)
from go_audit.core.walker import WalkSession, session_or_default


@dataclass(frozen=True, slots=True)
class Implementation:
    type: str
    package: str
    position: SourcePosition


@dataclass
class InterfaceInfo:
    name: str
    package: str
    position: SourcePosition
    methods: list[MethodInfo] = field(default_factory=list)
    embedded: list[str] = field(default_factory=list)
    implementations: list[Implementation] = field(default_factory=list)


@dataclass
class StructEmbedding:
    name: str
    position: SourcePosition
    embedded: list[str] = field(default_factory=list)
    promoted_methods: list[str] = field(default_factory=list)


@dataclass
class InterfaceEmbedding:
    name: str
    position: SourcePosition
    embedded: list[str] = field(default_factory=list)
    methods: list[str] = field(default_factory=list)


@dataclass
class EmbeddingInfo:
    file: str
    structs: list[StructEmbedding] = field(default_factory=list)
    interfaces: list[InterfaceEmbedding] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class TypeParam:
    name: str
    constraint: str
    position: SourcePosition


@dataclass(frozen=True, slots=True)
class Instance:
    types: tuple[str, ...]
    position: SourcePosition


@dataclass
class GenericInfo:
    name: str
    kind: str      # type | function | method
    package: str
    position: SourcePosition
    type_params: list[TypeParam] = field(default_factory=list)
    instances: list[Instance] = field(default_factory=list)


def _type_declarations(tree: Tree) -> list[Node]:
    """Every type_spec / type_alias in the file, including local ones."""
    return [n for n in iter_descendants(tree.root_node) if n.type in ("type_spec", "type_alias")]


def _method_sets(tree: Tree) -> dict[str, set[str]]:
    sets: dict[str, set[str]] = {}
    for recv, method in declared_methods(tree):
        sets.setdefault(recv, set()).add(method.name)
    return sets


# ── extract_interfaces ───────────────────────────────────────────────


def extract_interfaces(
    root: Path | str,
    interface_name: str = "",
    *,
    session: WalkSession | None = None,
) -> list[InterfaceInfo]:
    """Interface declarations (all, or the one named *interface_name*).

    When a name is given, types whose method set (collected over their
    whole package directory) covers every method of the interface are
    listed as implementations.  Matching is by method name only.
    """
    found: list[InterfaceInfo] = []
    method_sets: dict[str, dict[str, set[str]]] = {}
    type_decls: dict[str, list[tuple[str, str, SourcePosition]]] = {}

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        pkg = package_name(tree)
        pkg_dir = os.path.dirname(path)
        for recv, names in _method_sets(tree).items():
            method_sets.setdefault(pkg_dir, {}).setdefault(recv, set()).update(names)
        for spec in _type_declarations(tree):
            name = text(child(spec, "name"))
            type_node = child(spec, "type")
            pos = resolver.position_of(spec)
            type_decls.setdefault(pkg_dir, []).append((name, pkg, pos))
            if type_node is None or type_node.type != "interface_type":
                continue
            if interface_name and name != interface_name:
                continue
            found.append(
                InterfaceInfo(
                    name=name,
                    package=pkg,
                    position=pos,
                    methods=interface_methods(type_node),
                    embedded=interface_embedded(type_node),
                )
            )

    session_or_default(session).walk(root, visit)

    if interface_name:
        for iface in found:
            wanted = {m.name for m in iface.methods}
            if not wanted:
                continue
            for pkg_dir, decls in type_decls.items():
                sets = method_sets.get(pkg_dir, {})
                for name, pkg, pos in decls:
                    if name == iface.name:
                        continue
                    if wanted <= sets.get(name, set()):
                        iface.implementations.append(Implementation(type=name, package=pkg, position=pos))
    return found


# ── analyze_embedding ────────────────────────────────────────────────


def analyze_embedding(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[EmbeddingInfo]:
    """Structs with embedded fields and interfaces composed of others.

    ``promoted_methods`` lists methods declared in the same package on the
    embedded types (``Embedded.Method``).
    """
    result: list[tuple[str, EmbeddingInfo]] = []
    method_sets: dict[str, dict[str, set[str]]] = {}

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        pkg_dir = os.path.dirname(path)
        for recv, names in _method_sets(tree).items():
            method_sets.setdefault(pkg_dir, {}).setdefault(recv, set()).update(names)

        info = EmbeddingInfo(file=path)
        for spec in _type_declarations(tree):
            name = text(child(spec, "name"))
            type_node = child(spec, "type")
            if type_node is None:
                continue
            if type_node.type == "struct_type":
                embedded = struct_embedded(type_node)
                if embedded:
                    info.structs.append(
                        StructEmbedding(name=name, position=resolver.position_of(spec), embedded=embedded)
                    )
            elif type_node.type == "interface_type":
                emb = InterfaceEmbedding(
                    name=name,
                    position=resolver.position_of(spec),
                    embedded=interface_embedded(type_node),
                    methods=[m.name for m in interface_methods(type_node)],
                )
                if emb.embedded or emb.methods:
                    info.interfaces.append(emb)
        if info.structs or info.interfaces:
            result.append((pkg_dir, info))

    session_or_default(session).walk(root, visit)

    for pkg_dir, info in result:
        sets = method_sets.get(pkg_dir, {})
        for st in info.structs:
            for emb in st.embedded:
                base = emb.lstrip("*").split("[", 1)[0]
                st.promoted_methods.extend(f"{base}.{m}" for m in sorted(sets.get(base, ())))
    return [info for _, info in result]


# ── find_generics ────────────────────────────────────────────────────


def _type_params(params: Node | None, resolver: PositionResolver) -> list[TypeParam]:
    result: list[TypeParam] = []
    for decl in children_of_type(params, "type_parameter_declaration"):
        constraint = stringify(child(decl, "type"))
        for name in children(decl, "name"):
            result.append(TypeParam(name=text(name), constraint=constraint, position=resolver.position_of(name)))
    return result


def find_generics(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[GenericInfo]:
    """Generic types and functions with their type parameters.

    Explicit instantiations anywhere under *root* (``List[int]``,
    ``Map[string, int](xs)``) are attached by name.
    """
    generics: list[GenericInfo] = []
    instances: dict[str, list[Instance]] = {}

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        pkg = package_name(tree)
        for fn in top_level(tree, "function_declaration", "method_declaration"):
            params = child(fn, "type_parameters")
            if params is None:
                continue
            generics.append(
                GenericInfo(
                    name=text(child(fn, "name")),
                    kind="function" if fn.type == "function_declaration" else "method",
                    package=pkg,
                    position=resolver.position_of(fn),
                    type_params=_type_params(params, resolver),
                )
            )
        for decl in top_level(tree, "type_declaration"):
            for spec in type_specs(decl):
                params = child(spec, "type_parameters")
                if params is None:
                    continue
                generics.append(
                    GenericInfo(
                        name=text(child(spec, "name")),
                        kind="type",
                        package=pkg,
                        position=resolver.position_of(spec),
                        type_params=_type_params(params, resolver),
                    )
                )

        for node in iter_descendants(tree.root_node):
            if node.type == "generic_type":
                name = base_type_name(child(node, "type"))
                args = type_arguments(node)
            elif node.type == "call_expression" and child(node, "type_arguments") is not None:
                name = text(child(node, "function"))
                args = type_arguments(node)
            else:
                continue
            if name and args:
                instances.setdefault(name, []).append(
                    Instance(types=tuple(stringify(a) for a in args), position=resolver.position_of(node))
                )

    session_or_default(session).walk(root, visit)

    for info in generics:
        info.instances = list(instances.get(info.name, ()))
    return generics
