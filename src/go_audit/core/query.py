"""Generic query primitives composed by every analyzer.

All functions are pure, never raise, and answer conservatively (``False``
/ ``None``) when faced with a shape they do not recognize.  Containment is
answered through tree-sitter parent pointers, i.e. in O(depth).
"""

from __future__ import annotations

from typing import Iterable

from tree_sitter import Node, Tree

from go_audit.core.syntax import (
    FUNCTION_DECLS,
    FUNCTION_NODES,
    block_statements,
    child,
    first_named,
    iter_descendants,
    text,
)

LOOP_NODES = frozenset({"for_statement"})

ACQUIRE_METHODS = frozenset({"Open", "Create", "Dial", "Connect", "Lock", "RLock", "Begin"})
RELEASE_METHODS = frozenset({"Close", "Unlock", "RUnlock", "Done", "Release"})


# ── containment ──────────────────────────────────────────────────────


def _ancestors(node: Node) -> Iterable[Node]:
    parent = node.parent
    while parent is not None:
        yield parent
        parent = parent.parent


def contains(ancestor: Node | None, node: Node | None) -> bool:
    """True iff *node* lies in the subtree rooted at *ancestor* (inclusive)."""
    if ancestor is None or node is None:
        return False
    if ancestor.id == node.id:
        return True
    if not (ancestor.start_byte <= node.start_byte and node.end_byte <= ancestor.end_byte):
        return False
    return any(a.id == ancestor.id for a in _ancestors(node))


def nearest_ancestor(
    node: Node | None,
    types: Iterable[str],
    *,
    stop_at: Iterable[str] = (),
) -> Node | None:
    """Closest strict ancestor whose type is in *types*.

    The search gives up (returns ``None``) on reaching a node in *stop_at*.
    """
    if node is None:
        return None
    wanted = frozenset(types)
    barrier = frozenset(stop_at)
    for a in _ancestors(node):
        if a.type in wanted:
            return a
        if a.type in barrier:
            return None
    return None


def in_loop(node: Node | None, *, within_function: bool = False) -> bool:
    """True if a counted, conditional or range ``for`` loop encloses *node*.

    With *within_function* the search stops at the nearest function or
    function literal, so a closure called inside a loop body is not "in"
    that loop.
    """
    stop = FUNCTION_NODES if within_function else ()
    return nearest_ancestor(node, LOOP_NODES, stop_at=stop) is not None


def loop_membership(tree: Tree, node: Node | None) -> bool:
    if node is None or not contains(tree.root_node, node):
        return False
    return in_loop(node)


def enclosing_function(node: Node | None, *, include_literals: bool = False) -> Node | None:
    """Smallest enclosing function/method declaration, or ``None`` at file scope."""
    types = FUNCTION_NODES if include_literals else FUNCTION_DECLS
    return nearest_ancestor(node, types)


def function_boundary(tree: Tree, node: Node | None) -> Node | None:
    if node is None or not contains(tree.root_node, node):
        return None
    return enclosing_function(node)


def same_function(a: Node | None, b: Node | None) -> bool:
    fa, fb = enclosing_function(a), enclosing_function(b)
    return fa is not None and fb is not None and fa.id == fb.id


def in_goroutine(node: Node | None) -> bool:
    return nearest_ancestor(node, ("go_statement",)) is not None


def in_defer(node: Node | None) -> bool:
    return nearest_ancestor(node, ("defer_statement",)) is not None


class ParentIndex:
    """One-pass node-id → parent-id table over a subtree.

    Useful when nodes were collected into flat lists and need repeated
    containment checks against a fixed root.
    """

    def __init__(self, root: Node) -> None:
        self._parent: dict[int, int | None] = {root.id: None}
        stack = [root]
        while stack:
            current = stack.pop()
            for c in current.children:
                self._parent[c.id] = current.id
                stack.append(c)

    def __contains__(self, node: Node) -> bool:
        return node.id in self._parent

    def contains(self, ancestor: Node, node: Node) -> bool:
        current: int | None = node.id
        if current not in self._parent:
            return False
        while current is not None:
            if current == ancestor.id:
                return True
            current = self._parent.get(current)
        return False


# ── names ────────────────────────────────────────────────────────────


def name_match(name: str, pattern: str) -> bool:
    """Case-insensitive substring match; an empty pattern matches all."""
    if not pattern:
        return True
    return pattern.lower() in name.lower()


def is_exported(name: str) -> bool:
    return bool(name) and name[0].isupper()


def call_name(call: Node | None) -> str:
    """Bare callee name: ``f`` for ``f()``, ``Sel`` for ``x.Sel()``."""
    fn = child(call, "function")
    if fn is None:
        return ""
    if fn.type == "identifier":
        return text(fn)
    if fn.type == "selector_expression":
        return text(child(fn, "field"))
    if fn.type == "generic_type" or fn.type == "index_expression":
        return text(first_named(fn))
    return ""


def qualified_call_name(call: Node | None) -> str:
    """``pkg.Func`` / ``recv.Method`` / ``f``; ``"anonymous function"`` for literals."""
    fn = child(call, "function")
    if fn is None:
        return "unknown"
    if fn.type == "identifier":
        return text(fn)
    if fn.type == "selector_expression":
        return text(fn).replace("\n", "").replace(" ", "")
    if fn.type == "func_literal":
        return "anonymous function"
    return "unknown"


def selector_parts(node: Node | None) -> tuple[str, str]:
    """``(operand, field)`` when *node* is ``ident.field``; otherwise empty."""
    if node is None or node.type != "selector_expression":
        return "", ""
    operand = child(node, "operand")
    if operand is None or operand.type != "identifier":
        return "", ""
    return text(operand), text(child(node, "field"))


def call_arguments(call: Node | None) -> list[Node]:
    args = child(call, "arguments")
    if args is None:
        return []
    return [a for a in args.named_children if a.type != "comment"]


def statement_call(stmt: Node | None) -> Node | None:
    """The call expression carried by a go/defer/expression statement."""
    if stmt is None:
        return None
    expr = first_named(stmt)
    if expr is not None and expr.type == "call_expression":
        return expr
    return None


# ── control-flow-local heuristics ────────────────────────────────────


def is_error_check(node: Node | None) -> bool:
    """Recognize ``if err != nil`` (or ``xxxerror != nil``).

    Accepts an ``if_statement`` or its condition expression.
    """
    if node is None:
        return False
    cond = child(node, "condition") if node.type == "if_statement" else node
    if cond is None or cond.type != "binary_expression":
        return False
    op = child(cond, "operator")
    if op is None or op.type != "!=":
        return False
    left, right = child(cond, "left"), child(cond, "right")
    if left is None or right is None or left.type != "identifier":
        return False
    name = text(left)
    if name != "err" and "error" not in name:
        return False
    return right.type == "nil" or (right.type == "identifier" and text(right) == "nil")


def is_resource_acquisition(expr: Node | None) -> bool:
    """``x.Open(...)``-like selector calls that hand back something to release."""
    if expr is None or expr.type != "call_expression":
        return False
    fn = child(expr, "function")
    if fn is None or fn.type != "selector_expression":
        return False
    method = text(child(fn, "field"))
    return method in ACQUIRE_METHODS or method.startswith("Open")


def deferred_release_target(call: Node | None) -> str:
    """Variable released by ``defer v.Close()``-like calls, else ``""``."""
    operand, method = selector_parts(child(call, "function"))
    if operand and method in RELEASE_METHODS:
        return operand
    return ""


def _assignment_pairs(stmt: Node) -> list[tuple[Node, Node]]:
    left = child(stmt, "left")
    right = child(stmt, "right")
    lhs = [c for c in left.named_children] if left is not None else []
    rhs = [c for c in right.named_children] if right is not None else []
    return list(zip(lhs, rhs))


def unreleased_resources(body: Node | None) -> list[tuple[str, Node]]:
    """Pair acquisitions with deferred releases inside one function body.

    Returns ``(variable, statement)`` for each acquired resource with no
    matching ``defer v.Close()``-like release anywhere in *body*.
    """
    if body is None:
        return []
    acquired: dict[str, Node] = {}
    released: set[str] = set()
    for node in iter_descendants(body):
        if node.type in ("short_var_declaration", "assignment_statement"):
            for lhs, rhs in _assignment_pairs(node):
                if lhs.type == "identifier" and is_resource_acquisition(rhs):
                    acquired.setdefault(text(lhs), node)
        elif node.type == "defer_statement":
            target = deferred_release_target(statement_call(node))
            if target:
                released.add(target)
    return [(name, stmt) for name, stmt in acquired.items() if name not in released and name != "_"]


def statements_after_terminator(block: Node | None) -> tuple[Node, list[Node]] | None:
    """``(terminator, dead_statements)`` for the first terminator in *block*."""
    stmts = block_statements(block)
    for i, stmt in enumerate(stmts):
        if stmt.type == "return_statement" and i + 1 < len(stmts):
            rest = [s for s in stmts[i + 1:] if s.type != "labeled_statement"]
            if rest:
                return stmt, rest
            return None
    return None


def identifiers(node: Node | None, *, skip: Iterable[str] = ()) -> list[Node]:
    return [n for n in iter_descendants(node, skip=skip) if n.type == "identifier"]


def loop_condition(loop: Node | None) -> Node | None:
    """Condition of a ``for`` loop; ``None`` for ``for {}`` and range loops."""
    if loop is None or loop.type != "for_statement":
        return None
    for c in loop.named_children:
        if c.type == "for_clause":
            return child(c, "condition")
        if c.type in ("range_clause", "block", "comment"):
            continue
        return c
    return None


def is_infinite_loop(loop: Node | None) -> bool:
    """``for {}`` or ``for ;; {}`` (no condition, not a range loop)."""
    if loop is None or loop.type != "for_statement":
        return False
    if any(c.type == "range_clause" for c in loop.named_children):
        return False
    return loop_condition(loop) is None


_BRANCH_NODES = frozenset({
    "if_statement",
    "for_statement",
    "expression_case",
    "type_case",
    "communication_case",
})


def cyclomatic_complexity(fn: Node | None) -> int:
    """1 + decision points (if/for/case clauses and each ``&&`` / ``||``)."""
    if fn is None:
        return 0
    cc = 1
    for node in iter_descendants(child(fn, "body")):
        if node.type in _BRANCH_NODES:
            cc += 1
        elif node.type == "binary_expression":
            op = child(node, "operator")
            if op is not None and op.type in ("&&", "||"):
                cc += 1
    return cc
