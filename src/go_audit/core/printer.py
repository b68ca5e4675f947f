"""Signature printer — canonical text for Go type and signature nodes.

``stringify`` is total: node kinds it does not know render as
``"unknown"`` so analyzers can keep going on unfamiliar shapes.
"""

from __future__ import annotations

from tree_sitter import Node

from go_audit.core.syntax import child, children, children_of_type, first_named, text

UNKNOWN = "unknown"

_NAME_NODES = frozenset({
    "identifier",
    "type_identifier",
    "field_identifier",
    "package_identifier",
    "blank_identifier",
})

_LITERAL_NODES = frozenset({
    "int_literal",
    "float_literal",
    "imaginary_literal",
    "rune_literal",
    "interpreted_string_literal",
    "raw_string_literal",
    "true",
    "false",
    "nil",
    "iota",
})

_PARAM_NODES = frozenset({"parameter_declaration", "variadic_parameter_declaration"})


def stringify(node: Node | None) -> str:
    """Render a type (or simple expression) node as Go source text."""
    if node is None:
        return ""
    kind = node.type

    if kind in _NAME_NODES:
        return text(node)
    if kind == "qualified_type":
        return f"{text(child(node, 'package'))}.{text(child(node, 'name'))}"
    if kind == "selector_expression":
        return f"{stringify(child(node, 'operand'))}.{text(child(node, 'field'))}"
    if kind == "pointer_type":
        return "*" + stringify(first_named(node))
    if kind == "slice_type":
        return "[]" + stringify(child(node, "element"))
    if kind == "array_type":
        return f"[{stringify(child(node, 'length'))}]{stringify(child(node, 'element'))}"
    if kind == "implicit_length_array_type":
        return "[...]" + stringify(child(node, "element"))
    if kind == "map_type":
        return f"map[{stringify(child(node, 'key'))}]{stringify(child(node, 'value'))}"
    if kind == "channel_type":
        return _channel(node)
    if kind == "function_type":
        return signature(node)
    if kind == "interface_type":
        members = [c for c in node.named_children if c.type != "comment"]
        return "interface{...}" if members else "interface{}"
    if kind == "struct_type":
        fields = children_of_type(first_named(node), "field_declaration")
        return "struct{...}" if fields else "struct{}"
    if kind == "generic_type":
        args = [stringify(a) for a in type_arguments(node)]
        return f"{stringify(child(node, 'type'))}[{', '.join(args)}]"
    if kind == "parenthesized_type":
        return stringify(first_named(node))
    if kind == "negated_type":
        return "~" + stringify(first_named(node))
    if kind in ("type_elem", "type_constraint"):
        return " | ".join(stringify(c) for c in node.named_children if c.type != "comment")
    if kind in _LITERAL_NODES:
        return text(node)
    return UNKNOWN


def _channel(node: Node) -> str:
    tokens = [c.type for c in node.children if not c.is_named]
    value = stringify(child(node, "value"))
    if tokens and tokens[0] == "<-":
        return "<-chan " + value
    if tokens[:2] == ["chan", "<-"]:
        return "chan<- " + value
    return "chan " + value


def type_arguments(generic: Node) -> list[Node]:
    args = child(generic, "type_arguments")
    if args is None:
        return []
    out: list[Node] = []
    for c in args.named_children:
        # newer grammars wrap each argument in a type_elem
        if c.type == "type_elem" and len(c.named_children) == 1:
            out.append(c.named_children[0])
        elif c.type != "comment":
            out.append(c)
    return out


# ── parameter lists ──────────────────────────────────────────────────


def param_parts(params: Node | None) -> list[str]:
    """``"name type"`` per declared name; bare type for anonymous params."""
    parts: list[str] = []
    if params is None:
        return parts
    for decl in params.named_children:
        if decl.type not in _PARAM_NODES:
            continue
        type_str = stringify(child(decl, "type"))
        if decl.type == "variadic_parameter_declaration":
            type_str = "..." + type_str
        names = children(decl, "name")
        if not names:
            parts.append(type_str)
        else:
            parts.extend(f"{text(n)} {type_str}" for n in names)
    return parts


def format_field_list(params: Node | None) -> str:
    """Render a parameter/result list.

    A single unnamed entry renders bare (``error``); everything else is
    parenthesized (``(n int, err error)``).  Empty lists render as ``""``.
    """
    if params is None:
        return ""
    if params.type != "parameter_list":
        # a bare result type such as ``error``
        return stringify(params)
    parts = param_parts(params)
    if not parts:
        return ""
    if len(parts) == 1 and " " not in parts[0]:
        return parts[0]
    return "(" + ", ".join(parts) + ")"


def signature(node: Node | None) -> str:
    """``func(params) results`` for any function-shaped node."""
    if node is None:
        return ""
    params = ", ".join(param_parts(child(node, "parameters")))
    results = format_field_list(child(node, "result"))
    if not results:
        return f"func({params})"
    return f"func({params}) {results}"


def receiver_string(method: Node) -> str:
    """Receiver type of a method declaration, e.g. ``*Server``."""
    recv = child(method, "receiver")
    for decl in children_of_type(recv, "parameter_declaration"):
        return stringify(child(decl, "type"))
    return ""
