"""Small helpers over tree-sitter-go nodes.

Everything here is read-only and tolerant of missing children: a helper
asked about a shape it does not recognize returns ``""``, ``None`` or an
empty list.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from tree_sitter import Node, Tree

# ── node kinds ───────────────────────────────────────────────────────

FUNCTION_DECLS = frozenset({"function_declaration", "method_declaration"})
FUNCTION_NODES = FUNCTION_DECLS | {"func_literal"}
STRING_LITERALS = frozenset({"interpreted_string_literal", "raw_string_literal"})
INTERFACE_METHODS = frozenset({"method_elem", "method_spec"})


def text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def child(node: Node | None, field_name: str) -> Node | None:
    if node is None:
        return None
    return node.child_by_field_name(field_name)


def children(node: Node | None, field_name: str) -> list[Node]:
    if node is None:
        return []
    return list(node.children_by_field_name(field_name))


def children_of_type(node: Node | None, *types: str) -> list[Node]:
    if node is None:
        return []
    return [c for c in node.named_children if c.type in types]


def first_named(node: Node | None) -> Node | None:
    if node is None:
        return None
    for c in node.named_children:
        if c.type != "comment":
            return c
    return None


def iter_descendants(node: Node | None, *, skip: Iterable[str] = ()) -> Iterator[Node]:
    """Pre-order traversal of *node* and its descendants.

    Subtrees rooted at a node whose type is in *skip* are not entered
    (the root itself is always yielded).
    """
    if node is None:
        return
    skip = frozenset(skip)
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if current is not node and current.type in skip:
            continue
        stack.extend(reversed(current.children))


def find_all(node: Node | None, *types: str, skip: Iterable[str] = ()) -> list[Node]:
    wanted = frozenset(types)
    return [n for n in iter_descendants(node, skip=skip) if n.type in wanted]


# ── statements ───────────────────────────────────────────────────────


def block_statements(block: Node | None) -> list[Node]:
    """Statements of a ``block``; comments dropped, statement lists flattened."""
    if block is None:
        return []
    stmts: list[Node] = []
    for c in block.named_children:
        if c.type == "statement_list":
            stmts.extend(s for s in c.named_children if s.type != "comment")
        elif c.type != "comment":
            stmts.append(c)
    return stmts


def is_empty_statement(stmt: Node) -> bool:
    return stmt.type in ("empty_statement", ";")


def case_body(case: Node) -> list[Node]:
    """Statements of a switch/select case clause (everything after the ``:``)."""
    seen_colon = False
    body: list[Node] = []
    for c in case.children:
        if not seen_colon:
            seen_colon = c.type == ":"
            continue
        if c.type == "statement_list":
            body.extend(s for s in c.named_children if s.type != "comment")
        elif c.is_named and c.type != "comment":
            body.append(c)
    return body


# ── declarations ─────────────────────────────────────────────────────


def package_name(tree: Tree) -> str:
    for c in tree.root_node.named_children:
        if c.type == "package_clause":
            ident = first_named(c)
            return text(ident)
    return ""


def top_level(tree: Tree, *types: str) -> list[Node]:
    return [c for c in tree.root_node.named_children if c.type in types]


def decl_specs(decl: Node, spec_type: str) -> list[Node]:
    """Specs of a const/var/type/import declaration, grouped or not."""
    specs: list[Node] = []
    for c in decl.named_children:
        if c.type == spec_type:
            specs.append(c)
        elif c.type.endswith("_spec_list"):
            specs.extend(s for s in c.named_children if s.type == spec_type)
    return specs


def type_specs(decl: Node) -> list[Node]:
    return decl_specs(decl, "type_spec") + decl_specs(decl, "type_alias")


def string_value(node: Node | None) -> str:
    """Unquoted value of a Go string literal."""
    raw = text(node)
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"`":
        return raw[1:-1]
    return raw


def imports(tree: Tree) -> list[tuple[Node, str, str]]:
    """``(spec_node, import_path, alias)`` for every import in the file."""
    result: list[tuple[Node, str, str]] = []
    for decl in top_level(tree, "import_declaration"):
        for spec in decl_specs(decl, "import_spec"):
            path = string_value(child(spec, "path"))
            alias = text(child(spec, "name"))
            result.append((spec, path, alias))
    return result


def function_name(fn: Node | None) -> str:
    if fn is None:
        return ""
    if fn.type == "func_literal":
        return "anonymous function"
    return text(child(fn, "name"))


def receiver_field(method: Node) -> Node | None:
    recv = child(method, "receiver")
    for c in children_of_type(recv, "parameter_declaration"):
        return c
    return None


def receiver_name(method: Node) -> str:
    param = receiver_field(method)
    names = children(param, "name")
    return text(names[0]) if names else ""


def base_type_name(type_node: Node | None) -> str:
    """``T`` for ``T``, ``*T``, ``T[K]``, ``*T[K]``; ``pkg.T`` for qualified."""
    node = type_node
    while node is not None:
        if node.type in ("pointer_type", "parenthesized_type"):
            node = first_named(node)
        elif node.type == "generic_type":
            node = child(node, "type")
        elif node.type in ("type_identifier", "identifier"):
            return text(node)
        elif node.type in ("qualified_type", "selector_expression"):
            return text(node).replace(" ", "")
        else:
            return ""
    return ""


def receiver_type_name(method: Node) -> str:
    return base_type_name(child(receiver_field(method), "type"))


def comments(tree: Tree) -> list[Node]:
    return find_all(tree.root_node, "comment")


def comment_text(comment: Node) -> str:
    raw = text(comment)
    if raw.startswith("//"):
        return raw[2:]
    if raw.startswith("/*") and raw.endswith("*/"):
        return raw[2:-2]
    return raw


def doc_comments(node: Node) -> list[Node]:
    """Comment nodes forming the doc group directly above *node*.

    A comment belongs to the group when it ends on the line just above the
    next member and does not trail code on its own line.
    """
    group: list[Node] = []
    expected_row = node.start_point[0] - 1
    prev = node.prev_sibling
    while prev is not None and prev.type == "comment" and prev.end_point[0] == expected_row:
        before = prev.prev_sibling
        if before is not None and before.type != "comment" and before.end_point[0] == prev.start_point[0]:
            break
        group.append(prev)
        expected_row = prev.start_point[0] - 1
        prev = before
    group.reverse()
    return group


def doc_string(node: Node | None) -> str:
    """Doc comment text, comment markers removed and lines space-joined."""
    if node is None:
        return ""
    parts = [comment_text(c).strip() for c in doc_comments(node)]
    return " ".join(p for p in parts if p).strip()
