"""Dead-code analyzer — unused unexported variables, statements after a
``return`` and branches guarded by a constant condition.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.discover import is_test_file
from go_audit.core.position import PositionResolver
from go_audit.core.query import is_exported, loop_condition, statements_after_terminator
from go_audit.core.syntax import child, children, iter_descendants, text
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding


@dataclass
class DeadCodeInfo:
    file: str
    unused_vars: list[Finding] = field(default_factory=list)
    unreachable_code: list[Finding] = field(default_factory=list)
    dead_branches: list[Finding] = field(default_factory=list)


def _constant_condition(node: Node) -> str:
    """``"true"`` / ``"false"`` when *node*'s condition is that literal."""
    if node.type == "for_statement":
        cond = loop_condition(node)
    else:
        cond = child(node, "condition")
    while cond is not None and cond.type == "parenthesized_expression":
        cond = cond.named_children[0] if cond.named_children else None
    if cond is not None and cond.type in ("true", "false"):
        return cond.type
    return ""


def find_dead_code(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[DeadCodeInfo]:
    """Test files are skipped."""
    result: list[DeadCodeInfo] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        if is_test_file(path):
            return
        info = DeadCodeInfo(file=path)

        # unexported `var` names never referenced outside their declaration
        declared: list[Node] = []
        uses: Counter[str] = Counter()
        for node in iter_descendants(tree.root_node):
            if node.type == "var_spec":
                declared.extend(
                    n for n in children(node, "name") if text(n) != "_" and not is_exported(text(n))
                )
            elif node.type == "identifier":
                uses[text(node)] += 1
        for name_node in declared:
            name = text(name_node)
            if uses[name] <= 1:
                info.unused_vars.append(
                    Finding(
                        kind="unused_variable",
                        subject=name,
                        description=f"Variable {name} is declared but never used",
                        position=resolver.position_of(name_node),
                        severity=Severity.LOW,
                    )
                )

        for node in iter_descendants(tree.root_node):
            if node.type == "block":
                dead = statements_after_terminator(node)
                if dead is not None:
                    info.unreachable_code.append(
                        Finding(
                            kind="unreachable_code",
                            description="Code after return statement",
                            position=resolver.position_of(dead[1][0]),
                            severity=Severity.MEDIUM,
                        )
                    )
            elif node.type == "if_statement":
                constant = _constant_condition(node)
                if constant == "false":
                    target = child(node, "consequence")
                    description = "Branch is never taken: condition is always false"
                elif constant == "true" and child(node, "alternative") is not None:
                    target = child(node, "alternative")
                    description = "Else branch is never taken: condition is always true"
                else:
                    continue
                info.dead_branches.append(
                    Finding(
                        kind="dead_branch",
                        description=description,
                        position=resolver.position_of(target or node),
                        severity=Severity.LOW,
                    )
                )
            elif node.type == "for_statement" and _constant_condition(node) == "false":
                info.dead_branches.append(
                    Finding(
                        kind="dead_branch",
                        description="Loop body never runs: condition is always false",
                        position=resolver.position_of(node),
                        severity=Severity.LOW,
                    )
                )

        if info.unused_vars or info.unreachable_code or info.dead_branches:
            result.append(info)

    session_or_default(session).walk(root, visit)
    return result
