"""Error-handling analyzer — unchecked calls, ``if err != nil`` checks and
error returns, per file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.query import call_name, is_error_check, statement_call
from go_audit.core.syntax import child, iter_descendants, text
from go_audit.core.walker import WalkSession, session_or_default

# Callee prefixes that conventionally return an error
ERROR_RETURNING_PREFIXES = ("New", "Create", "Open", "Read", "Write", "Parse")


@dataclass(frozen=True, slots=True)
class ErrorContext:
    type: str      # unchecked_call | ignored_error | error_check | error_return
    context: str
    position: SourcePosition


@dataclass
class ErrorInfo:
    file: str
    unhandled_errors: list[ErrorContext] = field(default_factory=list)
    error_checks: list[ErrorContext] = field(default_factory=list)
    error_returns: list[ErrorContext] = field(default_factory=list)


def call_returns_error(call: Node | None) -> bool:
    """Name-based guess: does this call probably return an error?"""
    if call is None or call.type != "call_expression":
        return False
    return call_name(call).startswith(ERROR_RETURNING_PREFIXES)


def is_error_name(name: str) -> bool:
    return name == "err" or "error" in name


def _returns_error(stmt: Node) -> bool:
    for expr in iter_descendants(stmt):
        if expr.type == "identifier" and is_error_name(text(expr)):
            parent = expr.parent
            # only direct results, not identifiers nested inside calls
            if parent is not None and (parent.id == stmt.id or parent.type == "expression_list"):
                return True
    return False


def _ignores_error(stmt: Node) -> bool:
    """``x, _ := f()`` / ``_ = f()`` where ``f`` looks error-returning."""
    left, right = child(stmt, "left"), child(stmt, "right")
    if left is None or right is None or not left.named_children or len(right.named_children) != 1:
        return False
    last = left.named_children[-1]
    return text(last) == "_" and call_returns_error(right.named_children[0])


def find_errors(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[ErrorInfo]:
    session = session_or_default(session)
    result: list[ErrorInfo] = []
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        info = ErrorInfo(file=path)

        def record(bucket: list[ErrorContext], kind: str, node: Node) -> None:
            pos = resolver.position_of(node)
            bucket.append(ErrorContext(type=kind, context=context_lines(src, pos, before, after), position=pos))

        for node in iter_descendants(tree.root_node):
            if node.type == "expression_statement":
                call = statement_call(node)
                if call_returns_error(call):
                    record(info.unhandled_errors, "unchecked_call", call)
            elif node.type in ("short_var_declaration", "assignment_statement"):
                if _ignores_error(node):
                    record(info.unhandled_errors, "ignored_error", node)
            elif node.type == "if_statement":
                if is_error_check(node):
                    record(info.error_checks, "error_check", node)
            elif node.type == "return_statement":
                if _returns_error(node):
                    record(info.error_returns, "error_return", node)

        if info.unhandled_errors or info.error_checks or info.error_returns:
            result.append(info)

    session.walk(root, visit)
    return result
