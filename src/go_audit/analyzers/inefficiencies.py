"""Performance smells: string building in loops, redundant conversions and
per-iteration allocations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import stringify
from go_audit.core.query import call_arguments, call_name, in_loop, selector_parts
from go_audit.core.syntax import STRING_LITERALS, child, find_all, iter_descendants, text
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding

_CONVERSION_TYPES = frozenset({
    "string", "int", "int8", "int16", "int32", "int64",
    "uint", "uint8", "uint16", "uint32", "uint64",
    "float32", "float64", "byte", "rune", "bool",
})
_REGEX_COMPILERS = frozenset({"Compile", "MustCompile", "CompilePOSIX", "MustCompilePOSIX"})


@dataclass
class InefficiencyInfo:
    file: str
    string_concat: list[Finding] = field(default_factory=list)
    unnecessary_conversions: list[Finding] = field(default_factory=list)
    potential_allocations: list[Finding] = field(default_factory=list)


def _is_string_literal(node: Node | None) -> bool:
    return node is not None and node.type in STRING_LITERALS


def _is_string_concat(node: Node) -> bool:
    if node.type == "binary_expression":
        op = child(node, "operator")
        if op is None or op.type != "+":
            return False
        return _is_string_literal(child(node, "left")) or _is_string_literal(child(node, "right"))
    if node.type == "assignment_statement":
        op = child(node, "operator")
        right = child(node, "right")
        if op is None or op.type != "+=" or right is None:
            return False
        return any(_is_string_literal(v) for v in right.named_children)
    return False


def _conversion_target(call: Node) -> str:
    fn = child(call, "function")
    if fn is None or fn.type != "identifier" or text(fn) not in _CONVERSION_TYPES:
        return ""
    return text(fn)


def _redundant_conversion(call: Node) -> str:
    """Target type when ``T(x)`` already has type ``T``, else ``""``."""
    target = _conversion_target(call)
    args = call_arguments(call)
    if not target or len(args) != 1:
        return ""
    arg = args[0]
    if target == "string" and _is_string_literal(arg):
        return target
    if arg.type == "call_expression" and _conversion_target(arg) == target:
        return target
    return ""


def find_inefficiencies(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[InefficiencyInfo]:
    result: list[InefficiencyInfo] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        info = InefficiencyInfo(file=path)

        def add(bucket: list[Finding], kind: str, node: Node, description: str, suggestion: str) -> None:
            bucket.append(
                Finding(
                    kind=kind,
                    description=description,
                    position=resolver.position_of(node),
                    severity=Severity.LOW,
                    metadata={"suggestion": suggestion},
                )
            )

        for node in iter_descendants(tree.root_node):
            if node.type in ("binary_expression", "assignment_statement"):
                if _is_string_concat(node) and in_loop(node, within_function=True):
                    # report the outermost concatenation only
                    parent = node.parent
                    if parent is not None and parent.type == "binary_expression" and _is_string_concat(parent):
                        continue
                    add(
                        info.string_concat,
                        "string_concatenation_in_loop",
                        node,
                        "String concatenation in loop can be inefficient",
                        "Consider using strings.Builder",
                    )
            elif node.type == "call_expression":
                target = _redundant_conversion(node)
                if target:
                    add(
                        info.unnecessary_conversions,
                        "unnecessary_conversion",
                        node,
                        f"Unnecessary conversion to {target}",
                        "Remove unnecessary type conversion",
                    )
                    continue
                if not in_loop(node, within_function=True):
                    continue
                operand, method = selector_parts(child(node, "function"))
                if operand == "regexp" and method in _REGEX_COMPILERS:
                    add(
                        info.potential_allocations,
                        "regex_compile_in_loop",
                        node,
                        "Regular expression compiled on every iteration",
                        "Compile once outside the loop or at package level",
                    )
                elif call_name(node) == "make" and child(node, "function").type == "identifier":
                    add(
                        info.potential_allocations,
                        "allocation_in_loop",
                        node,
                        "make() inside loop allocates on every iteration",
                        "Allocate once before the loop and reuse",
                    )

        if info.string_concat or info.unnecessary_conversions or info.potential_allocations:
            result.append(info)

    session_or_default(session).walk(root, visit)
    return result


# ── memory allocations ───────────────────────────────────────────────

_STRINGY_NAMES = ("str", "msg", "text")
_ESCAPE_STATEMENTS = frozenset({"short_var_declaration", "assignment_statement", "return_statement"})


@dataclass(frozen=True, slots=True)
class Allocation:
    type: str      # make | new | append | composite | string_concat | address_of | fmt_sprintf
    description: str
    in_loop: bool
    position: SourcePosition
    context: str = ""


@dataclass
class AllocationAnalysis:
    allocations: list[Allocation] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


def _looks_like_string(node: Node | None) -> bool:
    if node is None:
        return False
    if node.type in STRING_LITERALS:
        return True
    if node.type == "identifier":
        name = text(node).lower()
        return any(part in name for part in _STRINGY_NAMES)
    return False


def _escapes(unary: Node) -> bool:
    """``&x`` passed as an argument, assigned or returned."""
    parent = unary.parent
    if parent is None:
        return False
    if parent.type == "argument_list":
        return True
    if parent.type == "expression_list":
        holder = parent.parent
        return holder is not None and holder.type in _ESCAPE_STATEMENTS
    return False


def _preallocated_slices(root: Node) -> set[str]:
    """Names assigned from ``make(T, len, cap)`` anywhere in the file."""
    names: set[str] = set()
    for stmt in find_all(root, "short_var_declaration", "assignment_statement"):
        left, right = child(stmt, "left"), child(stmt, "right")
        if left is None or right is None:
            continue
        for lhs, rhs in zip(left.named_children, right.named_children):
            if (
                lhs.type == "identifier"
                and rhs.type == "call_expression"
                and _is_builtin(rhs, "make")
                and len(call_arguments(rhs)) >= 3
            ):
                names.add(text(lhs))
    return names


def _is_builtin(call: Node, name: str) -> bool:
    fn = child(call, "function")
    return fn is not None and fn.type == "identifier" and text(fn) == name


def analyze_memory_allocations(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> AllocationAnalysis:
    """Heap allocations and the ones that happen on every loop iteration.

    Recorded: ``make``, ``new``, ``append``, composite literals, string
    ``+`` inside loops, escaping ``&x`` and ``fmt.Sprint*`` calls.
    Issues flag the in-loop cases; ``append`` is excused when its slice
    was made with an explicit capacity.
    """
    session = session_or_default(session)
    analysis = AllocationAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        preallocated = _preallocated_slices(tree.root_node)

        def record(kind: str, node: Node, description: str, looped: bool) -> SourcePosition:
            pos = resolver.position_of(node)
            analysis.allocations.append(
                Allocation(
                    type=kind,
                    description=description,
                    in_loop=looped,
                    position=pos,
                    context=context_lines(src, pos, before, after),
                )
            )
            return pos

        def issue(kind: str, pos: SourcePosition, description: str) -> None:
            analysis.issues.append(
                Finding(kind=kind, description=description, position=pos, severity=Severity.LOW)
            )

        for node in iter_descendants(tree.root_node):
            looped = in_loop(node, within_function=True)
            if node.type == "call_expression":
                args = call_arguments(node)
                if _is_builtin(node, "make") and args:
                    size = " with size" if len(args) > 1 else ""
                    pos = record("make", node, f"make({stringify(args[0])}){size}", looped)
                    if looped:
                        issue("make_in_loop", pos, "make() called inside loop - consider pre-allocating")
                elif _is_builtin(node, "new") and args:
                    pos = record("new", node, f"new({stringify(args[0])})", looped)
                    if looped:
                        issue("new_in_loop", pos, "new() called inside loop - consider pre-allocating")
                elif _is_builtin(node, "append"):
                    pos = record("append", node, "append() may cause reallocation", looped)
                    target = text(args[0]) if args and args[0].type == "identifier" else ""
                    if looped and target not in preallocated:
                        issue(
                            "append_in_loop",
                            pos,
                            "append() in loop without pre-allocation - consider pre-allocating slice",
                        )
            elif node.type == "composite_literal":
                pos = record("composite", node, f"Composite literal: {stringify(child(node, 'type'))}", looped)
                if looped:
                    issue("allocation_in_loop", pos, "Composite literal allocation inside loop")
            elif node.type == "binary_expression":
                op = child(node, "operator")
                if op is None or op.type != "+" or not looped:
                    continue
                if _looks_like_string(child(node, "left")) or _looks_like_string(child(node, "right")):
                    pos = record("string_concat", node, "String concatenation with +", True)
                    issue("string_concat_in_loop", pos, "String concatenation in loop - use strings.Builder instead")
            elif node.type == "unary_expression":
                op = child(node, "operator")
                if op is not None and op.type == "&" and _escapes(node):
                    record("address_of", node, "Taking address of value (escapes to heap)", looped)

        for call in find_all(tree.root_node, "call_expression"):
            operand, method = selector_parts(child(call, "function"))
            if operand == "fmt" and method.startswith("Sprint"):
                record(
                    "fmt_sprintf",
                    call,
                    f"fmt.{method} allocates for interface{{}} conversions",
                    in_loop(call, within_function=True),
                )

    session.walk(root, visit)
    return analysis
