"""panic / recover usage."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import stringify
from go_audit.core.query import call_arguments, enclosing_function, in_defer
from go_audit.core.syntax import FUNCTION_DECLS, STRING_LITERALS, child, find_all, text
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding

_ENTRY_POINTS = frozenset({"main", "init"})


@dataclass(frozen=True, slots=True)
class PanicRecoverUsage:
    type: str      # panic | recover
    in_defer: bool
    position: SourcePosition
    message: str = ""
    context: str = ""


@dataclass
class PanicRecoverAnalysis:
    usages: list[PanicRecoverUsage] = field(default_factory=list)
    issues: list[Finding] = field(default_factory=list)


def builtin_call(node: Node, name: str) -> bool:
    """``name(...)`` called as a bare identifier (not ``x.name(...)``)."""
    if node.type != "call_expression":
        return False
    fn = child(node, "function")
    return fn is not None and fn.type == "identifier" and text(fn) == name


def panic_message(call: Node) -> str:
    args = call_arguments(call)
    if not args:
        return ""
    arg = args[0]
    if arg.type in STRING_LITERALS or arg.type in ("int_literal", "float_literal", "rune_literal"):
        return text(arg)
    if arg.type in ("identifier", "selector_expression"):
        return stringify(arg)
    return "complex expression"


def find_panic_recover(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> PanicRecoverAnalysis:
    """Every ``panic``/``recover`` call, flagging risky placements.

    * ``panic_in_main_init`` — panic inside ``main`` or ``init``
    * ``recover_outside_defer`` — recover not under a ``defer``; it always
      returns nil there
    * ``panic_without_recover`` — a function that panics with no recover
      anywhere in its body (reported once, at its first panic)
    """
    session = session_or_default(session)
    analysis = PanicRecoverAnalysis()
    before, after = session.config.context_before, session.config.context_after

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        for call in find_all(tree.root_node, "call_expression"):
            is_panic = builtin_call(call, "panic")
            if not is_panic and not builtin_call(call, "recover"):
                continue
            pos = resolver.position_of(call)
            deferred = in_defer(call)
            analysis.usages.append(
                PanicRecoverUsage(
                    type="panic" if is_panic else "recover",
                    in_defer=deferred,
                    position=pos,
                    message=panic_message(call) if is_panic else "",
                    context=context_lines(src, pos, before, after),
                )
            )
            if is_panic:
                fn = enclosing_function(call)
                name = text(child(fn, "name"))
                if fn is not None and fn.type == "function_declaration" and name in _ENTRY_POINTS:
                    analysis.issues.append(
                        Finding(
                            kind="panic_in_main_init",
                            subject=name,
                            description=f"Panic in {name} function will crash the program",
                            position=pos,
                            severity=Severity.HIGH,
                        )
                    )
            elif not deferred:
                analysis.issues.append(
                    Finding(
                        kind="recover_outside_defer",
                        description="recover() called outside defer statement - it will always return nil",
                        position=pos,
                        severity=Severity.MEDIUM,
                    )
                )

        for fn in find_all(tree.root_node, *FUNCTION_DECLS):
            name = text(child(fn, "name"))
            if fn.type == "function_declaration" and name in _ENTRY_POINTS:
                continue
            calls = find_all(child(fn, "body"), "call_expression")
            panics = [c for c in calls if builtin_call(c, "panic")]
            if panics and not any(builtin_call(c, "recover") for c in calls):
                analysis.issues.append(
                    Finding(
                        kind="panic_without_recover",
                        subject=name,
                        description=f"Function {name} calls panic() but has no recover() - consider returning an error",
                        position=resolver.position_of(panics[0]),
                        severity=Severity.LOW,
                    )
                )

    session.walk(root, visit)
    return analysis
