"""Exported API surface and documentation generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.analyzers.symbols import FieldInfo, MethodInfo, interface_methods, struct_fields, type_kind
from go_audit.core.discover import is_test_file
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import param_parts, receiver_string, signature, stringify
from go_audit.core.query import is_exported
from go_audit.core.syntax import (
    child,
    children,
    decl_specs,
    doc_string,
    package_name,
    text,
    top_level,
    type_specs,
)
from go_audit.core.walker import WalkSession, session_or_default

FORMATS = ("json", "markdown")


@dataclass(frozen=True, slots=True)
class ApiFunction:
    name: str
    signature: str
    position: SourcePosition
    receiver: str = ""
    doc: str = ""
    parameters: tuple[str, ...] = ()
    returns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ApiType:
    name: str
    kind: str
    position: SourcePosition
    doc: str = ""
    fields: tuple[FieldInfo, ...] = ()
    methods: tuple[MethodInfo, ...] = ()   # interface methods


@dataclass(frozen=True, slots=True)
class ApiValue:
    name: str
    type: str
    position: SourcePosition
    value: str = ""
    doc: str = ""


@dataclass
class ApiInfo:
    package: str
    file: str
    overview: str = ""
    functions: list[ApiFunction] = field(default_factory=list)
    types: list[ApiType] = field(default_factory=list)
    constants: list[ApiValue] = field(default_factory=list)
    variables: list[ApiValue] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.functions or self.types or self.constants or self.variables)


@dataclass
class DocType:
    name: str
    kind: str
    description: str
    position: SourcePosition
    fields: list[FieldInfo] = field(default_factory=list)
    methods: list[ApiFunction] = field(default_factory=list)


@dataclass
class DocInfo:
    package: str
    overview: str = ""
    functions: list[ApiFunction] = field(default_factory=list)
    types: list[DocType] = field(default_factory=list)
    constants: list[ApiValue] = field(default_factory=list)
    variables: list[ApiValue] = field(default_factory=list)


# ── extract_api ──────────────────────────────────────────────────────


def _doc(spec: Node, decl: Node) -> str:
    """Spec doc comment, falling back to the enclosing declaration's."""
    return doc_string(spec) or doc_string(decl)


def _api_function(fn: Node, resolver: PositionResolver) -> ApiFunction:
    return ApiFunction(
        name=text(child(fn, "name")),
        signature=signature(fn),
        position=resolver.position_of(fn),
        receiver=receiver_string(fn) if fn.type == "method_declaration" else "",
        doc=doc_string(fn),
        parameters=tuple(param_parts(child(fn, "parameters"))),
        returns=_returns(child(fn, "result")),
    )


def _returns(result: Node | None) -> tuple[str, ...]:
    if result is None:
        return ()
    if result.type == "parameter_list":
        return tuple(param_parts(result))
    return (stringify(result),)


def _api_type(spec: Node, decl: Node, resolver: PositionResolver) -> ApiType:
    type_node = child(spec, "type")
    kind = type_kind(type_node)
    fields: tuple[FieldInfo, ...] = ()
    methods: tuple[MethodInfo, ...] = ()
    if kind == "struct":
        fields = tuple(f for f in struct_fields(type_node) if f.exported and f.name)
    elif kind == "interface":
        methods = tuple(m for m in interface_methods(type_node) if m.exported)
    return ApiType(
        name=text(child(spec, "name")),
        kind=kind,
        position=resolver.position_of(spec),
        doc=_doc(spec, decl),
        fields=fields,
        methods=methods,
    )


def _package_doc(tree: Tree) -> str:
    clause = top_level(tree, "package_clause")
    return doc_string(clause[0]) if clause else ""


def _receiver_base(fn: Node) -> str:
    return receiver_string(fn).lstrip("*").split("[", 1)[0]


def extract_api(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[ApiInfo]:
    """Exported functions, methods, types, constants and variables per file.

    Test files are skipped; methods count when both the method and its
    receiver type are exported.
    """
    apis: list[ApiInfo] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        if is_test_file(path):
            return
        api = ApiInfo(package=package_name(tree), file=path, overview=_package_doc(tree))
        for decl in tree.root_node.named_children:
            if decl.type == "function_declaration":
                if is_exported(text(child(decl, "name"))):
                    api.functions.append(_api_function(decl, resolver))
            elif decl.type == "method_declaration":
                if is_exported(text(child(decl, "name"))) and is_exported(_receiver_base(decl)):
                    api.functions.append(_api_function(decl, resolver))
            elif decl.type == "type_declaration":
                for spec in type_specs(decl):
                    if is_exported(text(child(spec, "name"))):
                        api.types.append(_api_type(spec, decl, resolver))
            elif decl.type in ("const_declaration", "var_declaration"):
                is_const = decl.type == "const_declaration"
                for spec in decl_specs(decl, "const_spec" if is_const else "var_spec"):
                    values = child(spec, "value")
                    first_value = values.named_children[0] if values is not None and values.named_children else None
                    for name in children(spec, "name"):
                        if not is_exported(text(name)):
                            continue
                        entry = ApiValue(
                            name=text(name),
                            type=stringify(child(spec, "type")),
                            position=resolver.position_of(name),
                            value=text(first_value) if is_const and first_value is not None else "",
                            doc=_doc(spec, decl),
                        )
                        (api.constants if is_const else api.variables).append(entry)
        if api:
            apis.append(api)

    session_or_default(session).walk(root, visit)
    return apis


# ── generate_docs ────────────────────────────────────────────────────


def _build_docs(apis: list[ApiInfo]) -> list[DocInfo]:
    docs: dict[str, DocInfo] = {}
    for api in apis:
        doc = docs.setdefault(api.package, DocInfo(package=api.package))
        if api.overview and not doc.overview:
            doc.overview = api.overview
        doc.constants.extend(api.constants)
        doc.variables.extend(api.variables)
        for typ in api.types:
            doc.types.append(
                DocType(
                    name=typ.name,
                    kind=typ.kind,
                    description=typ.doc,
                    position=typ.position,
                    fields=list(typ.fields),
                )
            )
    for api in apis:
        doc = docs[api.package]
        by_name = {t.name: t for t in doc.types}
        for fn in api.functions:
            owner = by_name.get(fn.receiver.lstrip("*").split("[", 1)[0]) if fn.receiver else None
            if owner is not None:
                owner.methods.append(fn)
            else:
                doc.functions.append(fn)
    return list(docs.values())


def render_markdown(docs: list[DocInfo]) -> str:
    out: list[str] = []
    for doc in docs:
        out.append(f"# Package {doc.package}\n\n")
        if doc.overview:
            out.append(f"{doc.overview}\n\n")
        if doc.constants:
            out.append("## Constants\n\n")
            for c in doc.constants:
                value = f" = {c.value}" if c.value else ""
                out.append(f"- `{c.name}{value}`" + (f": {c.doc}" if c.doc else "") + "\n")
            out.append("\n")
        if doc.variables:
            out.append("## Variables\n\n")
            for v in doc.variables:
                type_str = f" {v.type}" if v.type else ""
                out.append(f"- `{v.name}{type_str}`" + (f": {v.doc}" if v.doc else "") + "\n")
            out.append("\n")
        if doc.functions:
            out.append("## Functions\n\n")
            for fn in doc.functions:
                out.append(f"### {fn.name}\n\n```go\n{fn.signature}\n```\n\n")
                if fn.doc:
                    out.append(f"{fn.doc}\n\n")
        if doc.types:
            out.append("## Types\n\n")
            for typ in doc.types:
                out.append(f"### {typ.name}\n\n")
                if typ.description:
                    out.append(f"{typ.description}\n\n")
                for f in typ.fields:
                    out.append(f"- `{f.name} {f.type}`\n")
                if typ.fields:
                    out.append("\n")
                for m in typ.methods:
                    out.append(f"#### ({m.receiver}) {m.name}\n\n```go\n{m.signature}\n```\n\n")
                    if m.doc:
                        out.append(f"{m.doc}\n\n")
    return "".join(out)


def generate_docs(
    root: Path | str,
    format: str = "json",
    *,
    session: WalkSession | None = None,
) -> list[DocInfo] | str:
    """Package documentation built from :func:`extract_api`.

    ``format="markdown"`` returns rendered Markdown, ``"json"`` the
    structured :class:`DocInfo` list.  Other formats raise ``ValueError``.
    """
    if format not in FORMATS:
        raise ValueError(f"format must be one of {', '.join(FORMATS)}, got {format!r}")
    docs = _build_docs(extract_api(root, session=session))
    if format == "markdown":
        return render_markdown(docs)
    return docs
