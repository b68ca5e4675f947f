"""Call-site and struct-usage lookups."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.query import call_name, enclosing_function
from go_audit.core.syntax import (
    FUNCTION_DECLS,
    base_type_name,
    child,
    children,
    function_name as label_of,
    iter_descendants,
    text,
)
from go_audit.core.walker import WalkSession, session_or_default


@dataclass(frozen=True, slots=True)
class FunctionCall:
    name: str
    caller: str
    context: str
    position: SourcePosition


@dataclass(frozen=True, slots=True)
class StructLiteral:
    fields_initialized: tuple[str, ...]
    is_composite: bool
    position: SourcePosition


@dataclass(frozen=True, slots=True)
class FieldAccess:
    field: str
    variable: str
    context: str
    position: SourcePosition


@dataclass(frozen=True, slots=True)
class TypeUsage:
    usage: str    # field | parameter | result | receiver | variable
    position: SourcePosition


@dataclass
class StructUsage:
    file: str
    literals: list[StructLiteral] = field(default_factory=list)
    field_access: list[FieldAccess] = field(default_factory=list)
    type_usage: list[TypeUsage] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.literals or self.field_access or self.type_usage)


# ── find_function_calls ──────────────────────────────────────────────


def find_function_calls(
    root: Path | str,
    function_name: str,
    *,
    session: WalkSession | None = None,
) -> list[FunctionCall]:
    """Calls to *function_name* (bare ``f()`` or selector ``x.f()``).

    ``caller`` is the enclosing function or method declaration, ``""`` at
    package scope.
    """
    session = session_or_default(session)
    calls: list[FunctionCall] = []
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        for node in iter_descendants(tree.root_node):
            if node.type != "call_expression" or call_name(node) != function_name:
                continue
            pos = resolver.position_of(node)
            calls.append(
                FunctionCall(
                    name=function_name,
                    caller=label_of(enclosing_function(node)),
                    context=context_lines(src, pos, before, after),
                    position=pos,
                )
            )

    session.walk(root, visit)
    return calls


# ── find_struct_usage ────────────────────────────────────────────────


def _same(a: Node | None, b: Node | None) -> bool:
    return a is not None and b is not None and a.id == b.id


def _usage_kind(decl: Node) -> str:
    if decl.type == "field_declaration":
        return "field"
    if decl.type in ("var_spec", "const_spec"):
        return "variable"
    parent = decl.parent
    owner = parent.parent if parent is not None else None
    if owner is not None and owner.type == "method_declaration" and _same(child(owner, "receiver"), parent):
        return "receiver"
    if owner is not None and _same(child(owner, "result"), parent):
        return "result"
    return "parameter"


def _literal_type_name(lit: Node) -> str:
    return base_type_name(child(lit, "type"))


def _literal_fields(lit: Node) -> tuple[str, ...]:
    body = child(lit, "body")
    names: list[str] = []
    for elem in body.named_children if body is not None else []:
        if elem.type != "keyed_element":
            continue
        key = elem.named_children[0] if elem.named_children else None
        # newer grammars wrap keys in a literal_element
        if key is not None and key.type == "literal_element" and key.named_children:
            key = key.named_children[0]
        if key is not None and key.type in ("identifier", "field_identifier"):
            names.append(text(key))
    return tuple(names)


def _struct_variables(scope: Node, struct_name: str) -> set[str]:
    """Names bound to *struct_name* values (or pointers) inside *scope*."""
    names: set[str] = set()
    for node in iter_descendants(scope):
        if node.type in ("parameter_declaration", "var_spec"):
            if base_type_name(child(node, "type")) == struct_name:
                names.update(text(n) for n in children(node, "name"))
        elif node.type == "short_var_declaration":
            left, right = child(node, "left"), child(node, "right")
            if left is None or right is None:
                continue
            for lhs, rhs in zip(left.named_children, right.named_children):
                value = rhs
                if value.type == "unary_expression" and text(child(value, "operator")) == "&":
                    value = child(value, "operand")
                if value is not None and value.type == "composite_literal":
                    if _literal_type_name(value) == struct_name and lhs.type == "identifier":
                        names.add(text(lhs))
    return names


def find_struct_usage(
    root: Path | str,
    struct_name: str,
    *,
    session: WalkSession | None = None,
) -> list[StructUsage]:
    """Per file: composite literals of *struct_name*, field accesses on
    variables of that type, and declarations typed with it.
    """
    session = session_or_default(session)
    usages: list[StructUsage] = []
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        usage = StructUsage(file=path)
        for node in iter_descendants(tree.root_node):
            if node.type == "composite_literal" and _literal_type_name(node) == struct_name:
                body = child(node, "body")
                usage.literals.append(
                    StructLiteral(
                        fields_initialized=_literal_fields(node),
                        is_composite=bool(body is not None and body.named_children),
                        position=resolver.position_of(node),
                    )
                )
            elif node.type in ("field_declaration", "parameter_declaration", "var_spec"):
                if base_type_name(child(node, "type")) == struct_name:
                    usage.type_usage.append(
                        TypeUsage(usage=_usage_kind(node), position=resolver.position_of(node))
                    )
            elif node.type in FUNCTION_DECLS:
                variables = _struct_variables(node, struct_name)
                if not variables:
                    continue
                for sel in iter_descendants(node):
                    if sel.type != "selector_expression":
                        continue
                    operand = child(sel, "operand")
                    if operand is None or operand.type != "identifier" or text(operand) not in variables:
                        continue
                    field_node = child(sel, "field")
                    pos = resolver.position_of(field_node or sel)
                    usage.field_access.append(
                        FieldAccess(
                            field=text(field_node),
                            variable=text(operand),
                            context=context_lines(src, pos, before, after),
                            position=pos,
                        )
                    )
        if usage:
            usages.append(usage)

    session.walk(root, visit)
    return usages
