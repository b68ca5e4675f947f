"""Concurrency analyzers — goroutine launches, ``defer`` patterns and
channel operations.

Each analyzer returns a flat list of usages plus a list of
:class:`~go_audit.model.finding.Finding` issues for the whole walk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import stringify
from go_audit.core.query import (
    call_arguments,
    call_name,
    enclosing_function,
    in_goroutine,
    in_loop,
    nearest_ancestor,
    qualified_call_name,
    same_function,
    statement_call,
    statements_after_terminator,
    unreleased_resources,
)
from go_audit.core.syntax import (
    FUNCTION_DECLS,
    FUNCTION_NODES,
    block_statements,
    child,
    children,
    find_all,
    function_name,
    imports,
    iter_descendants,
    text,
)
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding

_WAIT_GROUP_TYPES = frozenset({"sync.WaitGroup", "*sync.WaitGroup"})

# (earlier defer, later defer): LIFO runs the later one first
_DEFER_ORDER = {("Flush", "Close"), ("Sync", "Close")}


@dataclass(frozen=True, slots=True)
class GoroutineUsage:
    function: str
    in_loop: bool
    has_wait_group: bool
    context: str
    position: SourcePosition


@dataclass
class GoroutineAnalysis:
    goroutines: list[GoroutineUsage] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DeferUsage:
    statement: str
    in_loop: bool
    in_function: str
    context: str
    position: SourcePosition


@dataclass
class DeferAnalysis:
    defers: list[DeferUsage] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ChannelUsage:
    name: str
    type: str              # make | send | receive | range | close | select
    position: SourcePosition
    channel_type: str = "unknown"    # buffered | unbuffered | unknown
    buffer_size: int = 0
    context: str = ""


@dataclass
class ChannelAnalysis:
    channels: list[ChannelUsage] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


# ── goroutines ───────────────────────────────────────────────────────


def _is_wait_group_value(expr: Node | None) -> bool:
    """``sync.WaitGroup{}``, ``&sync.WaitGroup{}`` or ``new(sync.WaitGroup)``."""
    if expr is None:
        return False
    if expr.type == "unary_expression":
        return _is_wait_group_value(child(expr, "operand"))
    if expr.type == "composite_literal":
        return stringify(child(expr, "type")) in _WAIT_GROUP_TYPES
    if expr.type == "call_expression" and call_name(expr) == "new":
        args = call_arguments(expr)
        return len(args) == 1 and stringify(args[0]) in _WAIT_GROUP_TYPES
    return False


def wait_group_names(tree: Tree) -> set[str]:
    """Variables, parameters and struct fields holding a ``sync.WaitGroup``."""
    names: set[str] = set()
    for node in iter_descendants(tree.root_node):
        if node.type in ("var_spec", "parameter_declaration", "field_declaration"):
            declared = children(node, "name")
            if stringify(child(node, "type")) in _WAIT_GROUP_TYPES:
                names.update(text(n) for n in declared)
            else:
                values = child(node, "value")
                vals = values.named_children if values is not None else []
                names.update(text(n) for n, v in zip(declared, vals) if _is_wait_group_value(v))
        elif node.type in ("short_var_declaration", "assignment_statement"):
            left, right = child(node, "left"), child(node, "right")
            if left is None or right is None:
                continue
            for lhs, rhs in zip(left.named_children, right.named_children):
                if lhs.type == "identifier" and _is_wait_group_value(rhs):
                    names.add(text(lhs))
    return names


def _wait_group_add(call: Node, names: set[str]) -> bool:
    fn = child(call, "function")
    if fn is None or fn.type != "selector_expression" or text(child(fn, "field")) != "Add":
        return False
    operand = child(fn, "operand")
    if operand is not None and operand.type == "selector_expression":
        operand = child(operand, "field")
    return text(operand) in names


def _has_channel_communication(call: Node | None) -> bool:
    for node in iter_descendants(call):
        if node.type in ("channel_type", "send_statement"):
            return True
        if node.type == "unary_expression" and text(child(node, "operator")) == "<-":
            return True
        if node.type == "identifier" and "chan" in text(node).lower():
            return True
    return False


def analyze_goroutines(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> GoroutineAnalysis:
    """Every ``go`` statement, flagging launches that nothing waits on.

    ``goroutine_leak_risk``: launched in a loop with no ``WaitGroup.Add``
    in the same function.  ``missing_synchronization``: the file imports
    ``sync`` yet the launch has neither a WaitGroup nor channel traffic.
    """
    session = session_or_default(session)
    analysis = GoroutineAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        wg_names = wait_group_names(tree)
        imports_sync = any(p == "sync" for _, p, _ in imports(tree))
        adds = [
            n for n in iter_descendants(tree.root_node)
            if n.type == "call_expression" and _wait_group_add(n, wg_names)
        ]
        for stmt in find_all(tree.root_node, "go_statement"):
            call = statement_call(stmt)
            pos = resolver.position_of(stmt)
            looped = in_loop(stmt, within_function=True)
            has_wg = any(same_function(add, stmt) for add in adds)
            analysis.goroutines.append(
                GoroutineUsage(
                    function=qualified_call_name(call) if call is not None else "unknown",
                    in_loop=looped,
                    has_wait_group=has_wg,
                    context=context_lines(src, pos, before, after),
                    position=pos,
                )
            )
            if looped and not has_wg:
                analysis.issues.append(
                    Finding(
                        kind="goroutine_leak_risk",
                        description="Goroutine launched in loop without WaitGroup may cause resource leak",
                        position=pos,
                        severity=Severity.MEDIUM,
                    )
                )
            if imports_sync and not has_wg and not _has_channel_communication(call):
                analysis.issues.append(
                    Finding(
                        kind="missing_synchronization",
                        description="Goroutine launched without apparent synchronization mechanism",
                        position=pos,
                        severity=Severity.LOW,
                    )
                )

    session.walk(root, visit)
    return analysis


# ── defer ────────────────────────────────────────────────────────────


def defer_label(stmt: Node) -> str:
    call = statement_call(stmt)
    fn = child(call, "function")
    if fn is None:
        return "defer <unknown>"
    if fn.type == "identifier":
        return f"defer {text(fn)}(...)"
    if fn.type == "selector_expression":
        return f"defer {stringify(fn)}(...)"
    if fn.type == "func_literal":
        return "defer func() { ... }"
    return "defer <unknown>"


def _enclosing_block(stmt: Node) -> Node | None:
    parent = stmt.parent
    if parent is not None and parent.type == "statement_list":
        parent = parent.parent
    return parent if parent is not None and parent.type == "block" else None


def _next_statement(stmt: Node) -> Node | None:
    stmts = block_statements(_enclosing_block(stmt))
    for i, s in enumerate(stmts):
        if s.id == stmt.id:
            return stmts[i + 1] if i + 1 < len(stmts) else None
    return None


def _is_trivial_return(stmt: Node | None) -> bool:
    """A ``return`` whose results involve no calls."""
    if stmt is None or stmt.type != "return_statement":
        return False
    return not find_all(stmt, "call_expression", skip=("func_literal",))


def _own_defers(fn: Node) -> list[Node]:
    return find_all(child(fn, "body"), "defer_statement", skip=("func_literal",))


def analyze_defer_patterns(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> DeferAnalysis:
    """Every ``defer`` plus the common ways of misusing it."""
    session = session_or_default(session)
    analysis = DeferAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        def issue(kind: str, node: Node, description: str, severity: Severity) -> None:
            analysis.issues.append(
                Finding(
                    kind=kind,
                    description=description,
                    position=resolver.position_of(node),
                    severity=severity,
                )
            )

        for node in iter_descendants(tree.root_node):
            if node.type == "defer_statement":
                pos = resolver.position_of(node)
                looped = in_loop(node, within_function=True)
                fn = enclosing_function(node, include_literals=True)
                analysis.defers.append(
                    DeferUsage(
                        statement=defer_label(node),
                        in_loop=looped,
                        in_function=function_name(fn),
                        context=context_lines(src, pos, before, after),
                        position=pos,
                    )
                )
                if looped:
                    issue("defer_in_loop", node, "defer in loop will accumulate until function returns", Severity.MEDIUM)
                if any(a.type == "call_expression" for a in call_arguments(statement_call(node))):
                    issue(
                        "defer_nested_call",
                        node,
                        "defer evaluates function arguments immediately - nested calls execute now",
                        Severity.LOW,
                    )
                if _is_trivial_return(_next_statement(node)):
                    issue("unnecessary_defer", node, "defer immediately before return is unnecessary", Severity.INFO)

            elif node.type == "block":
                dead = statements_after_terminator(node)
                if dead is not None:
                    for stmt in dead[1]:
                        for d in find_all(stmt, "defer_statement", skip=("func_literal",)):
                            issue("unreachable_defer", d, "defer statement after return is unreachable", Severity.MEDIUM)

            elif node.type in FUNCTION_NODES:
                defers = _own_defers(node)
                methods = [call_name(statement_call(d)) for d in defers]
                for i in range(len(defers)):
                    for j in range(i + 1, len(defers)):
                        if (methods[i], methods[j]) in _DEFER_ORDER:
                            issue(
                                "defer_order_issue",
                                defers[j],
                                f"defer {methods[j]} runs before defer {methods[i]} (LIFO)",
                                Severity.MEDIUM,
                            )
                if node.type in FUNCTION_DECLS:
                    for name, stmt in unreleased_resources(child(node, "body")):
                        issue(
                            "missing_defer",
                            stmt,
                            f"Resource '{name}' acquired but not deferred for cleanup",
                            Severity.MEDIUM,
                        )

    session.walk(root, visit)
    return analysis


# ── channels ─────────────────────────────────────────────────────────


def _int_literal(node: Node | None) -> int | None:
    if node is None or node.type != "int_literal":
        return None
    raw = text(node).replace("_", "")
    if len(raw) > 1 and raw[0] == "0" and raw[1].isdigit():
        raw = "0o" + raw[1:]
    try:
        return int(raw, 0)
    except ValueError:
        return None


def channel_make(expr: Node | None) -> tuple[str, int] | None:
    """``(channel_type, buffer_size)`` for ``make(chan T[, n])``, else ``None``."""
    if expr is None or expr.type != "call_expression" or call_name(expr) != "make":
        return None
    if child(expr, "function").type != "identifier":
        return None
    args = call_arguments(expr)
    if not args or args[0].type != "channel_type":
        return None
    if len(args) == 1:
        return "unbuffered", 0
    size = _int_literal(args[1])
    if size == 0:
        return "unbuffered", 0
    return "buffered", size or 0


def channel_name(expr: Node | None) -> str:
    if expr is not None and expr.type in ("identifier", "selector_expression"):
        return stringify(expr)
    return "unknown"


def _is_receive(node: Node) -> bool:
    return node.type == "unary_expression" and text(child(node, "operator")) == "<-"


def analyze_channels(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> ChannelAnalysis:
    """Channel creation and operations, with deadlock-prone shapes flagged."""
    session = session_or_default(session)
    analysis = ChannelAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        known: dict[str, tuple[str, int]] = {}
        handled: set[int] = set()

        def usage(name: str, kind: str, node: Node, ctx: str | None = None) -> None:
            pos = resolver.position_of(node)
            chan_type, size = known.get(name, ("unknown", 0))
            analysis.channels.append(
                ChannelUsage(
                    name=name,
                    type=kind,
                    position=pos,
                    channel_type=chan_type,
                    buffer_size=size,
                    context=ctx if ctx is not None else context_lines(src, pos, before, after),
                )
            )

        # first pass: channel-typed declarations and make(chan ...) bindings
        for node in iter_descendants(tree.root_node):
            if node.type in ("var_spec", "parameter_declaration", "field_declaration"):
                values = child(node, "value")
                vals = values.named_children if values is not None else []
                typed = stringify(child(node, "type")).startswith(("chan", "<-chan"))
                for i, name_node in enumerate(children(node, "name")):
                    made = channel_make(vals[i]) if i < len(vals) else None
                    if made is not None:
                        known[text(name_node)] = made
                        usage(text(name_node), "make", node)
                    elif typed:
                        known[text(name_node)] = ("unknown", 0)
            elif node.type in ("short_var_declaration", "assignment_statement"):
                left, right = child(node, "left"), child(node, "right")
                if left is None or right is None:
                    continue
                for lhs, rhs in zip(left.named_children, right.named_children):
                    made = channel_make(rhs)
                    if made is not None and lhs.type in ("identifier", "selector_expression"):
                        known[channel_name(lhs)] = made
                        usage(channel_name(lhs), "make", node)

        # second pass: operations
        for node in iter_descendants(tree.root_node):
            if node.type == "select_statement":
                cases = [c for c in node.named_children if c.type == "communication_case"]
                has_default = any(c.type == "default_case" for c in node.named_children)
                for case in cases:
                    comm = child(case, "communication")
                    if comm is None:
                        continue
                    if comm.type == "send_statement":
                        handled.add(comm.id)
                        usage(channel_name(child(comm, "channel")), "select", comm, "select send")
                    elif comm.type == "receive_statement":
                        right = child(comm, "right")
                        if right is not None and _is_receive(right):
                            handled.add(right.id)
                            usage(channel_name(child(right, "operand")), "select", comm, "select receive")
                if len(cases) == 1 and not has_default:
                    analysis.issues.append(
                        Finding(
                            kind="single_case_select",
                            description="Select with single case and no default - consider using simple channel operation",
                            position=resolver.position_of(node),
                            severity=Severity.LOW,
                        )
                    )

            elif node.type == "send_statement" and node.id not in handled:
                name = channel_name(child(node, "channel"))
                usage(name, "send", node)
                fn = enclosing_function(node)
                if (
                    known.get(name, ("unknown", 0))[0] == "unbuffered"
                    and not in_goroutine(node)
                    and fn is not None
                    and not find_all(fn, "go_statement")
                ):
                    analysis.issues.append(
                        Finding(
                            kind="potential_deadlock",
                            subject=name,
                            description="Send on unbuffered channel without goroutine may deadlock",
                            position=resolver.position_of(node),
                            severity=Severity.HIGH,
                        )
                    )

            elif _is_receive(node) and node.id not in handled:
                usage(channel_name(child(node, "operand")), "receive", node)

            elif node.type == "range_clause":
                name = channel_name(child(node, "right"))
                if name in known:
                    usage(name, "range", nearest_ancestor(node, ("for_statement",)) or node)

            elif node.type == "call_expression" and call_name(node) == "close":
                fn = child(node, "function")
                args = call_arguments(node)
                if fn.type == "identifier" and args:
                    usage(channel_name(args[0]), "close", node)

    session.walk(root, visit)
    return analysis
