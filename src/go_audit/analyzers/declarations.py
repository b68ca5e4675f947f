"""Method receivers and package ``init`` functions."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.analyzers.packages import find_cycles, import_name
from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.query import is_infinite_loop, selector_parts
from go_audit.core.syntax import (
    base_type_name,
    child,
    find_all,
    imports,
    iter_descendants,
    package_name,
    receiver_field,
    receiver_name,
    text,
    top_level,
)
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding

_MUTATOR_PREFIXES = ("Set", "Add", "Remove", "Delete", "Update", "Append", "Clear", "Reset")
_BLOCKING_CALLS = (
    "Sleep", "Wait", "Lock", "RLock", "Dial", "Connect",
    "Open", "Create", "ReadFile", "WriteFile", "Sync",
)
_NETWORK_PACKAGES = frozenset({"http", "net"})
_SIDE_EFFECT_NODES = frozenset({
    "assignment_statement",
    "short_var_declaration",
    "call_expression",
    "go_statement",
    "send_statement",
    "inc_statement",
    "dec_statement",
})
_COMPLEX_INIT_STATEMENTS = 20


# ── method receivers ─────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class MethodReceiver:
    type_name: str
    method_name: str
    receiver_type: str      # pointer | value
    receiver_name: str
    position: SourcePosition


@dataclass
class ReceiverAnalysis:
    methods: list[MethodReceiver] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


def should_use_pointer(method_name: str) -> bool:
    """Mutator-looking names: ``SetX``, ``AddX``, ``ResetX`` and friends."""
    return any(
        len(method_name) > len(prefix) and method_name.startswith(prefix)
        for prefix in _MUTATOR_PREFIXES
    )


def find_method_receivers(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> ReceiverAnalysis:
    """Every method with its receiver kind.

    * ``mixed_receivers`` — a type with both pointer and value receivers,
      reported once at its first method
    * ``should_use_pointer`` — a mutator-named method on a value receiver
    """
    analysis = ReceiverAnalysis()

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        for method in find_all(tree.root_node, "method_declaration"):
            recv_type = child(receiver_field(method), "type")
            type_name = base_type_name(recv_type)
            if not type_name:
                continue
            analysis.methods.append(
                MethodReceiver(
                    type_name=type_name,
                    method_name=text(child(method, "name")),
                    receiver_type="pointer" if recv_type.type == "pointer_type" else "value",
                    receiver_name=receiver_name(method),
                    position=resolver.position_of(method),
                )
            )

    session_or_default(session).walk(root, visit)

    kinds: dict[str, set[str]] = defaultdict(set)
    first: dict[str, MethodReceiver] = {}
    for m in analysis.methods:
        kinds[m.type_name].add(m.receiver_type)
        first.setdefault(m.type_name, m)
    for type_name, m in first.items():
        if len(kinds[type_name]) > 1:
            analysis.issues.append(
                Finding(
                    kind="mixed_receivers",
                    subject=type_name,
                    description=f"Type {type_name} has methods with both pointer and value receivers",
                    position=m.position,
                    severity=Severity.LOW,
                )
            )

    for m in analysis.methods:
        if m.receiver_type == "value" and should_use_pointer(m.method_name):
            analysis.issues.append(
                Finding(
                    kind="should_use_pointer",
                    subject=f"{m.type_name}.{m.method_name}",
                    description=f"Method {m.method_name} on {m.type_name} should probably use a pointer receiver",
                    position=m.position,
                    severity=Severity.MEDIUM,
                )
            )
    return analysis


# ── init functions ───────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class InitFunction:
    package: str
    file: str
    position: SourcePosition
    dependencies: list[str] = field(default_factory=list)
    has_side_effects: bool = False
    context: str = ""


@dataclass
class InitAnalysis:
    init_functions: list[InitFunction] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)
    init_order: list[str] = field(default_factory=list)


def _init_dependencies(tree: Tree, body: Node | None) -> list[str]:
    """Imported packages an init body refers to, by local name."""
    local = {import_name(path, alias) for _, path, alias in imports(tree)}
    used: set[str] = set()
    for node in iter_descendants(body):
        if node.type == "selector_expression":
            operand = child(node, "operand")
            if operand is not None and operand.type == "identifier" and text(operand) in local:
                used.add(text(operand))
        elif node.type == "qualified_type":
            if text(child(node, "package")) in local:
                used.add(text(child(node, "package")))
    return sorted(used)


def _statement_count(body: Node | None) -> int:
    return sum(
        1
        for n in iter_descendants(body)
        if n.type.endswith("_statement") or n.type in ("short_var_declaration", "var_declaration")
    )


def _blocking_method(call: Node) -> str:
    """Method name of a ``x.Sleep()``-like call that may block, else ``""``."""
    fn = child(call, "function")
    if fn is None or fn.type != "selector_expression":
        return ""
    operand, _ = selector_parts(fn)
    method = text(child(fn, "field"))
    if any(b in method for b in _BLOCKING_CALLS) or operand in _NETWORK_PACKAGES:
        return method
    return ""


def init_order(graph: dict[str, list[str]]) -> list[str]:
    """Packages ordered so each comes after the ones it depends on.

    Edges closing a cycle are ignored; unknown dependencies are skipped.
    """
    order: list[str] = []
    done: set[str] = set()
    active: set[str] = set()

    def place(pkg: str) -> None:
        if pkg in done or pkg in active:
            return
        active.add(pkg)
        for dep in sorted(graph.get(pkg, [])):
            if dep in graph:
                place(dep)
        active.discard(pkg)
        done.add(pkg)
        order.append(pkg)

    for pkg in sorted(graph):
        place(pkg)
    return order


def find_init_functions(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> InitAnalysis:
    """``init`` functions, what they touch, and startup hazards.

    Issues: ``complex_init``, ``blocking_init``, ``goroutine_in_init``,
    ``infinite_loop_in_init`` and ``circular_init_dependency`` between
    packages whose inits reference each other.  ``init_order`` is a
    dependencies-first ordering of the packages that have inits.
    """
    session = session_or_default(session)
    analysis = InitAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        pkg = package_name(tree)
        for fn in top_level(tree, "function_declaration"):
            if text(child(fn, "name")) != "init":
                continue
            body = child(fn, "body")
            pos = resolver.position_of(fn)
            analysis.init_functions.append(
                InitFunction(
                    package=pkg,
                    file=path,
                    position=pos,
                    dependencies=_init_dependencies(tree, body),
                    has_side_effects=any(n.type in _SIDE_EFFECT_NODES for n in iter_descendants(body)),
                    context=context_lines(src, pos, before, after),
                )
            )

            if _statement_count(body) > _COMPLEX_INIT_STATEMENTS:
                analysis.issues.append(
                    Finding(
                        kind="complex_init",
                        description="init() function is complex - consider refactoring",
                        position=pos,
                        severity=Severity.LOW,
                    )
                )
            for node in find_all(body, "call_expression", "go_statement", "for_statement"):
                if node.type == "call_expression":
                    method = _blocking_method(node)
                    if method:
                        analysis.issues.append(
                            Finding(
                                kind="blocking_init",
                                subject=method,
                                description=f"init() contains potentially blocking call: {method}",
                                position=resolver.position_of(node),
                                severity=Severity.MEDIUM,
                            )
                        )
                elif node.type == "go_statement":
                    analysis.issues.append(
                        Finding(
                            kind="goroutine_in_init",
                            description="init() starts a goroutine - may cause race conditions",
                            position=resolver.position_of(node),
                            severity=Severity.MEDIUM,
                        )
                    )
                elif is_infinite_loop(node):
                    analysis.issues.append(
                        Finding(
                            kind="infinite_loop_in_init",
                            description="init() contains infinite loop - will block program startup",
                            position=resolver.position_of(node),
                            severity=Severity.HIGH,
                        )
                    )

    session.walk(root, visit)

    analysis.init_functions.sort(key=lambda f: (f.package, f.file))
    graph: dict[str, list[str]] = defaultdict(list)
    for init in analysis.init_functions:
        deps = graph[init.package]
        deps.extend(d for d in init.dependencies if d not in deps and d != init.package)
    graph = dict(graph)

    first_init: dict[str, InitFunction] = {}
    for init in analysis.init_functions:
        first_init.setdefault(init.package, init)
    for cycle in find_cycles(graph):
        analysis.issues.append(
            Finding(
                kind="circular_init_dependency",
                subject=cycle[0],
                description="Circular init dependency detected: " + " -> ".join(cycle + [cycle[0]]),
                position=first_init[cycle[0]].position,
                severity=Severity.HIGH,
            )
        )
    analysis.init_order = init_order(graph)
    return analysis
