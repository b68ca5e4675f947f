"""Empty blocks — bodies of if/else/for/switch cases/functions that hold no
statements.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.query import is_infinite_loop
from go_audit.core.syntax import (
    FUNCTION_DECLS,
    block_statements,
    case_body,
    child,
    function_name,
    is_empty_statement,
    iter_descendants,
    receiver_type_name,
)
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding

_STUB_MARKERS = ("Stub", "Mock", "Fake", "Dummy", "NoOp", "Noop")
_TEST_HELPERS = frozenset({"setup", "teardown", "beforeeach", "aftereach", "beforeall", "afterall"})
_CONTROL_PARENTS = frozenset({
    "if_statement",
    "for_statement",
    "function_declaration",
    "method_declaration",
    "func_literal",
})


@dataclass(frozen=True, slots=True)
class EmptyBlock:
    type: str      # if | else | for | range | switch_case | type_switch_case | function | block
    description: str
    position: SourcePosition
    context: str = ""


@dataclass
class EmptyBlockAnalysis:
    empty_blocks: list[EmptyBlock] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


def is_blank(block: Node | None) -> bool:
    """True for an existing block holding only empty statements or blank blocks."""
    if block is None or block.type != "block":
        return False
    return all(is_empty_statement(s) or is_blank(s) for s in block_statements(block))


def is_interface_stub(fn: Node) -> bool:
    if fn.type != "method_declaration":
        return False
    name = function_name(fn)
    receiver = receiver_type_name(fn)
    return any(m in name or m in receiver for m in _STUB_MARKERS)


def is_test_helper(name: str) -> bool:
    if name.lower() in _TEST_HELPERS:
        return True
    return name.startswith(("Test", "Benchmark", "Example"))


def _previous_case_falls_through(case: Node) -> bool:
    prev = case.prev_named_sibling
    while prev is not None and prev.type == "comment":
        prev = prev.prev_named_sibling
    if prev is None or prev.type not in ("expression_case", "default_case"):
        return False
    body = case_body(prev)
    return bool(body) and body[-1].type == "fallthrough_statement"


def find_empty_blocks(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> EmptyBlockAnalysis:
    """Empty bodies everywhere, with the suspicious ones raised as issues."""
    session = session_or_default(session)
    analysis = EmptyBlockAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        def empty(kind: str, node: Node, description: str) -> None:
            pos = resolver.position_of(node)
            analysis.empty_blocks.append(
                EmptyBlock(
                    type=kind,
                    description=description,
                    position=pos,
                    context=context_lines(src, pos, before, after),
                )
            )

        def issue(kind: str, node: Node, description: str, severity: Severity, subject: str = "") -> None:
            analysis.issues.append(
                Finding(
                    kind=kind,
                    subject=subject,
                    description=description,
                    position=resolver.position_of(node),
                    severity=severity,
                )
            )

        for node in iter_descendants(tree.root_node):
            kind = node.type
            parent_type = node.parent.type if node.parent is not None else ""
            if kind == "if_statement":
                alternative = child(node, "alternative")
                if is_blank(child(node, "consequence")):
                    empty("if", node, "Empty if block")
                    if alternative is None:
                        issue(
                            "empty_if_no_else",
                            node,
                            "Empty if block with no else - condition may be unnecessary",
                            Severity.LOW,
                        )
                if alternative is not None and alternative.type == "block" and is_blank(alternative):
                    empty("else", alternative, "Empty else block")
                    issue("empty_else", alternative, "Empty else block - can be removed", Severity.LOW)

            elif kind == "for_statement":
                if not is_blank(child(node, "body")):
                    continue
                if any(c.type == "range_clause" for c in node.named_children):
                    empty("range", node, "Empty range loop")
                    continue
                empty("for", node, "Empty for loop")
                if is_infinite_loop(node):
                    issue(
                        "empty_infinite_loop",
                        node,
                        "Empty infinite loop - possible bug or incomplete implementation",
                        Severity.HIGH,
                    )

            elif kind in ("expression_case", "default_case") and parent_type == "expression_switch_statement":
                if case_body(node):
                    continue
                label = "case" if kind == "expression_case" else "default"
                empty("switch_case", node, f"Empty {label} clause")
                if not _previous_case_falls_through(node):
                    issue(
                        "empty_switch_case",
                        node,
                        f"Empty {label} clause with no fallthrough",
                        Severity.LOW,
                    )

            elif kind in ("type_case", "default_case") and parent_type == "type_switch_statement":
                if not case_body(node):
                    label = "type case" if kind == "type_case" else "default"
                    empty("type_switch_case", node, f"Empty {label} clause")

            elif kind in FUNCTION_DECLS:
                if not is_blank(child(node, "body")):
                    continue
                name = function_name(node)
                empty("function", node, f"Empty function: {name}")
                if not is_interface_stub(node) and not is_test_helper(name):
                    issue(
                        "empty_function",
                        node,
                        f"Function '{name}' has empty body",
                        Severity.MEDIUM,
                        subject=name,
                    )

            elif kind == "block":
                if parent_type and parent_type not in _CONTROL_PARENTS and is_blank(node):
                    empty("block", node, "Empty code block")

    session.walk(root, visit)
    return analysis
