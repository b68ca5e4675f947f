"""Comment analyzers — TODO-style notes, undocumented exported symbols and
deprecation markers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.context import context_lines
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.query import call_name, is_exported
from go_audit.core.syntax import (
    child,
    children,
    comment_text,
    comments,
    decl_specs,
    doc_comments,
    iter_descendants,
    text,
    type_specs,
)
from go_audit.core.walker import WalkSession, session_or_default

COMMENT_TYPES = ("todo", "undocumented", "all")
TODO_PATTERN = re.compile(r"(?i)\b(todo|fixme|hack|bug|xxx)\b")
_DEPRECATED_PREFIX = "Deprecated:"
_ALTERNATIVE = re.compile(r"\b[Uu]se\s+`?([\w.]+)`?")
CONTEXT_LINES = 3


@dataclass(frozen=True, slots=True)
class CommentItem:
    type: str      # comment | function | method | type | value
    position: SourcePosition
    name: str = ""
    comment: str = ""
    context: str = ""


@dataclass
class CommentInfo:
    file: str
    todos: list[CommentItem] = field(default_factory=list)
    undocumented: list[CommentItem] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DeprecatedUsage:
    item: str
    kind: str      # declaration | comment | usage
    position: SourcePosition
    alternative: str = ""
    reason: str = ""


@dataclass
class DeprecatedInfo:
    file: str
    usage: list[DeprecatedUsage] = field(default_factory=list)


# ── find_comments ────────────────────────────────────────────────────


def _undocumented(tree: Tree) -> list[tuple[str, str, Node]]:
    """``(kind, name, node)`` for exported top-level declarations without docs."""
    out: list[tuple[str, str, Node]] = []
    for decl in tree.root_node.named_children:
        if decl.type in ("function_declaration", "method_declaration"):
            name = text(child(decl, "name"))
            if is_exported(name) and not doc_comments(decl):
                kind = "function" if decl.type == "function_declaration" else "method"
                out.append((kind, name, decl))
        elif decl.type == "type_declaration":
            for spec in type_specs(decl):
                name = text(child(spec, "name"))
                if is_exported(name) and not doc_comments(spec) and not doc_comments(decl):
                    out.append(("type", name, spec))
        elif decl.type in ("const_declaration", "var_declaration"):
            spec_type = "const_spec" if decl.type == "const_declaration" else "var_spec"
            for spec in decl_specs(decl, spec_type):
                if doc_comments(spec) or doc_comments(decl):
                    continue
                for name_node in children(spec, "name"):
                    if is_exported(text(name_node)):
                        out.append(("value", text(name_node), name_node))
    return out


def find_comments(
    root: Path | str,
    comment_type: str = "all",
    filter: str = "",
    include_context: bool = False,
    *,
    session: WalkSession | None = None,
) -> list[CommentInfo]:
    """Comments and undocumented exported symbols, per file.

    *comment_type* is ``todo`` (comments matching *filter*, or TODO/FIXME/
    HACK/BUG/XXX when no filter is given), ``undocumented`` or ``all``
    (every comment matching *filter* plus undocumented symbols).

    Raises ``ValueError`` for an unknown *comment_type* or an invalid
    *filter* regular expression.
    """
    if comment_type not in COMMENT_TYPES:
        raise ValueError(f"comment_type must be one of {', '.join(COMMENT_TYPES)}, got {comment_type!r}")
    try:
        pattern = re.compile(filter) if filter else (TODO_PATTERN if comment_type == "todo" else None)
    except re.error as e:
        raise ValueError(f"invalid filter pattern {filter!r}: {e}") from e

    result: list[CommentInfo] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        info = CommentInfo(file=path)

        def ctx(pos: SourcePosition) -> str:
            return context_lines(src, pos, CONTEXT_LINES, CONTEXT_LINES) if include_context else ""

        if comment_type in ("todo", "all"):
            for c in comments(tree):
                raw = text(c)
                if pattern is None or pattern.search(raw):
                    pos = resolver.position_of(c)
                    info.todos.append(CommentItem(type="comment", comment=raw, position=pos, context=ctx(pos)))

        if comment_type in ("undocumented", "all"):
            for kind, name, node in _undocumented(tree):
                pos = resolver.position_of(node)
                info.undocumented.append(CommentItem(type=kind, name=name, position=pos, context=ctx(pos)))

        if info.todos or info.undocumented:
            result.append(info)

    session_or_default(session).walk(root, visit)
    return result


# ── find_deprecated ──────────────────────────────────────────────────


def _declared_names(decl: Node) -> list[Node]:
    if decl.type in ("function_declaration", "method_declaration"):
        name = child(decl, "name")
        return [name] if name is not None else []
    if decl.type == "type_declaration":
        names = [child(s, "name") for s in type_specs(decl)]
        return [n for n in names if n is not None]
    if decl.type in ("const_declaration", "var_declaration"):
        spec_type = "const_spec" if decl.type == "const_declaration" else "var_spec"
        return [n for s in decl_specs(decl, spec_type) for n in children(s, "name")]
    return []


def _deprecation_notice(node: Node) -> str:
    """Text following ``Deprecated:`` in *node*'s doc comment, else ``""``."""
    for c in doc_comments(node):
        body = comment_text(c).strip()
        if body.startswith(_DEPRECATED_PREFIX):
            return body[len(_DEPRECATED_PREFIX):].strip()
    return ""


def find_deprecated(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[DeprecatedInfo]:
    """Declarations marked ``// Deprecated:``, other comments mentioning
    deprecation, and calls to deprecated functions anywhere under *root*.
    """
    infos: list[DeprecatedInfo] = []
    deprecated: dict[str, str] = {}
    calls: list[tuple[DeprecatedInfo, str, SourcePosition]] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        info = DeprecatedInfo(file=path)
        notice_comments: set[int] = set()

        for decl in tree.root_node.named_children:
            notice = _deprecation_notice(decl)
            if not notice:
                continue
            notice_comments.update(c.id for c in doc_comments(decl))
            match = _ALTERNATIVE.search(notice)
            alternative = match.group(1).rstrip(".") if match else ""
            for name_node in _declared_names(decl):
                name = text(name_node)
                deprecated[name] = alternative
                info.usage.append(
                    DeprecatedUsage(
                        item=name,
                        kind="declaration",
                        alternative=alternative,
                        reason=notice,
                        position=resolver.position_of(name_node),
                    )
                )

        for c in comments(tree):
            if c.id in notice_comments or "deprecated" not in text(c).lower():
                continue
            info.usage.append(
                DeprecatedUsage(
                    item="deprecated_comment",
                    kind="comment",
                    reason=text(c),
                    position=resolver.position_of(c),
                )
            )

        for node in iter_descendants(tree.root_node):
            if node.type == "call_expression":
                calls.append((info, call_name(node), resolver.position_of(node)))
        infos.append(info)

    session_or_default(session).walk(root, visit)

    for info, name, pos in calls:
        if name in deprecated:
            info.usage.append(
                DeprecatedUsage(item=name, kind="usage", alternative=deprecated[name], position=pos)
            )
    return [info for info in infos if info.usage]
