"""Runtime type inspection: type assertions and the reflect package."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import stringify
from go_audit.core.query import call_arguments, enclosing_function, in_loop, nearest_ancestor, selector_parts
from go_audit.core.syntax import child, children, find_all, imports, text
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding

_HOT_PATH_NAMES = frozenset({"ServeHTTP", "Handle", "Process", "Execute", "Run", "Do"})
_SLOW_LOOKUPS = frozenset({"MethodByName", "FieldByName"})
_REFLECT_ALLOCATORS = frozenset({"Copy", "AppendSlice", "MakeSlice", "MakeMap", "MakeChan"})
_ASSIGNMENTS = frozenset({"assignment_statement", "short_var_declaration"})


@dataclass(frozen=True, slots=True)
class TypeAssertion:
    expression: str
    target_type: str
    has_ok_check: bool
    position: SourcePosition
    context: str = ""


@dataclass
class TypeAssertionAnalysis:
    assertions: list[TypeAssertion] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ReflectionUsage:
    type: str      # TypeOf, ValueOf, MethodByName, ...
    target: str
    position: SourcePosition
    context: str = ""


@dataclass
class ReflectionAnalysis:
    usages: list[ReflectionUsage] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


def _expr(node: Node | None) -> str:
    return " ".join(text(node).split())


def _is_builtin_call(node: Node, name: str) -> bool:
    fn = child(node, "function")
    return fn is not None and fn.type == "identifier" and text(fn) == name


# ── type assertions ──────────────────────────────────────────────────


def has_ok_check(assertion: Node) -> bool:
    """``v, ok := x.(T)``, ``v, ok = x.(T)`` or ``var v, ok = x.(T)``."""
    parent = assertion.parent
    if parent is None or parent.type != "expression_list":
        return False
    holder = parent.parent
    if holder is None:
        return False
    if holder.type in _ASSIGNMENTS:
        left = child(holder, "left")
        return left is not None and len(left.named_children) >= 2
    if holder.type == "var_spec":
        return len(children(holder, "name")) >= 2
    return False


def _is_ok_condition(cond: Node | None) -> bool:
    if cond is None:
        return False
    if cond.type == "identifier":
        return text(cond) == "ok"
    if cond.type == "binary_expression":
        return any(
            side is not None and side.type == "identifier" and text(side) == "ok"
            for side in (child(cond, "left"), child(cond, "right"))
        )
    return False


def _in_safe_context(assertion: Node) -> bool:
    """Guarded by an ``ok`` condition, or inside a function that recovers."""
    fn = enclosing_function(assertion)
    if fn is not None and any(_is_builtin_call(c, "recover") for c in find_all(fn, "call_expression")):
        return True
    node = nearest_ancestor(assertion, ("if_statement",))
    while node is not None:
        if _is_ok_condition(child(node, "condition")):
            return True
        node = nearest_ancestor(node, ("if_statement",))
    return False


def find_type_assertions(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> TypeAssertionAnalysis:
    """Type assertions and type switches.

    * ``unsafe_type_assertion`` — single-value ``x.(T)`` outside an
      ``ok`` guard or a recovering function; it panics on mismatch
    * ``single_case_type_switch`` — one case and no default
    """
    session = session_or_default(session)
    analysis = TypeAssertionAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        for node in find_all(tree.root_node, "type_assertion_expression", "type_switch_statement"):
            pos = resolver.position_of(node)
            ctx = context_lines(src, pos, before, after)
            if node.type == "type_assertion_expression":
                ok = has_ok_check(node)
                analysis.assertions.append(
                    TypeAssertion(
                        expression=_expr(child(node, "operand")),
                        target_type=stringify(child(node, "type")),
                        has_ok_check=ok,
                        position=pos,
                        context=ctx,
                    )
                )
                if not ok and not _in_safe_context(node):
                    analysis.issues.append(
                        Finding(
                            kind="unsafe_type_assertion",
                            description="Type assertion without ok check may panic",
                            position=pos,
                            severity=Severity.MEDIUM,
                        )
                    )
                continue

            analysis.assertions.append(
                TypeAssertion(
                    expression=_expr(child(node, "value")),
                    target_type="type switch",
                    has_ok_check=True,
                    position=pos,
                    context=ctx,
                )
            )
            case_types = sum(len(children(c, "type")) for c in node.named_children if c.type == "type_case")
            has_default = any(c.type == "default_case" for c in node.named_children)
            if case_types == 1 and not has_default:
                analysis.issues.append(
                    Finding(
                        kind="single_case_type_switch",
                        description="Type switch with single case - consider using type assertion instead",
                        position=pos,
                        severity=Severity.LOW,
                    )
                )

    session.walk(root, visit)
    return analysis


# ── reflection ───────────────────────────────────────────────────────


def _reflect_value_vars(root: Node) -> set[str]:
    """Variables declared as ``reflect.Value`` or assigned from ``reflect.ValueOf``."""
    names: set[str] = set()
    for spec in find_all(root, "var_spec"):
        idents = [text(n) for n in children(spec, "name")]
        typ = child(spec, "type")
        if typ is not None:
            if stringify(typ) == "reflect.Value":
                names.update(idents)
            continue
        values = child(spec, "value")
        for name, value in zip(idents, values.named_children if values is not None else []):
            if _is_reflect_value_source(value):
                names.add(name)
    for stmt in find_all(root, *_ASSIGNMENTS):
        left, right = child(stmt, "left"), child(stmt, "right")
        if left is None or right is None:
            continue
        for lhs, rhs in zip(left.named_children, right.named_children):
            if lhs.type == "identifier" and _is_reflect_value_source(rhs):
                names.add(text(lhs))
    return names


def _is_reflect_value_source(node: Node | None) -> bool:
    if node is None or node.type != "call_expression":
        return False
    operand, name = selector_parts(child(node, "function"))
    return operand == "reflect" and name in ("ValueOf", "Indirect")


def _functions_called_in_loops(root: Node) -> set[str]:
    return {
        text(child(call, "function"))
        for call in find_all(root, "call_expression")
        if child(call, "function") is not None
        and child(call, "function").type == "identifier"
        and in_loop(call)
    }


def _in_hot_path(call: Node, looped_functions: set[str]) -> bool:
    fn = enclosing_function(call)
    if fn is None:
        return False
    name = text(child(fn, "name"))
    return name in _HOT_PATH_NAMES or name in looped_functions


def _unsafe_interface_conversions(root: Node) -> list[Node]:
    """``v.Interface().(T)`` on a reflect.Value without an ok check."""
    values = _reflect_value_vars(root)
    found: list[Node] = []
    for assertion in find_all(root, "type_assertion_expression"):
        operand = child(assertion, "operand")
        if operand is None or operand.type != "call_expression" or call_arguments(operand):
            continue
        fn = child(operand, "function")
        if fn is None or fn.type != "selector_expression" or text(child(fn, "field")) != "Interface":
            continue
        receiver = child(fn, "operand")
        is_value = _is_reflect_value_source(receiver) or (
            receiver is not None and receiver.type == "identifier" and text(receiver) in values
        )
        if is_value and not has_ok_check(assertion):
            found.append(assertion)
    return found


def find_reflection_usage(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> ReflectionAnalysis:
    """Calls into ``reflect`` in files that import it, and their cost.

    Records every ``reflect.X(...)`` call and every ``MethodByName`` /
    ``FieldByName`` lookup.  Issues cover reflection inside loops,
    name-based lookups, ``DeepEqual`` on hot paths (handler-like
    functions or functions called from a loop) and unchecked
    ``Interface()`` assertions.
    """
    session = session_or_default(session)
    analysis = ReflectionAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        if not any(import_path == "reflect" for _, import_path, _ in imports(tree)):
            return
        looped_functions = _functions_called_in_loops(tree.root_node)

        def issue(kind: str, pos: SourcePosition, description: str, severity: Severity) -> None:
            analysis.issues.append(Finding(kind=kind, description=description, position=pos, severity=severity))

        for call in find_all(tree.root_node, "call_expression"):
            fn = child(call, "function")
            if fn is None or fn.type != "selector_expression":
                continue
            operand, name = selector_parts(fn)
            if operand == "reflect":
                args = call_arguments(call)
                target = _expr(args[0]) if args else ""
            else:
                name = text(child(fn, "field"))
                if name not in _SLOW_LOOKUPS:
                    continue
                target = _expr(child(fn, "operand"))

            pos = resolver.position_of(call)
            looped = in_loop(call, within_function=True)
            analysis.usages.append(
                ReflectionUsage(type=name, target=target, position=pos, context=context_lines(src, pos, before, after))
            )

            if name in ("TypeOf", "ValueOf"):
                if looped:
                    issue(
                        "reflection_in_loop",
                        pos,
                        f"reflect.{name} called in loop - consider caching result",
                        Severity.LOW,
                    )
            elif name in _SLOW_LOOKUPS:
                issue(
                    "slow_reflection",
                    pos,
                    f"reflect.{name} is slow - consider caching or avoiding if possible",
                    Severity.LOW,
                )
                if looped:
                    issue("slow_reflection_in_loop", pos, f"reflect.{name} in loop is very inefficient", Severity.MEDIUM)
            elif name == "DeepEqual":
                if _in_hot_path(call, looped_functions):
                    issue(
                        "deep_equal_performance",
                        pos,
                        "reflect.DeepEqual is expensive - consider custom comparison for hot paths",
                        Severity.LOW,
                    )
            elif name in _REFLECT_ALLOCATORS and looped:
                issue("reflect_allocation_in_loop", pos, f"reflect.{name} allocates memory in loop", Severity.LOW)

        for assertion in _unsafe_interface_conversions(tree.root_node):
            issue(
                "unsafe_interface_conversion",
                resolver.position_of(assertion),
                "Type assertion on reflect.Value.Interface() without ok check",
                Severity.MEDIUM,
            )

    session.walk(root, visit)
    return analysis
