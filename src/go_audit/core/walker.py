"""Tree walker — the single entry point every analyzer builds on.

One :class:`WalkSession` exists per analyzer invocation.  It owns the
tree-sitter parser and the record of files that were skipped, and hands
each parsed file to a visitor::

    def visit(path, src, tree, resolver):
        ...

    session = WalkSession()
    session.walk(root, visit)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from tree_sitter import Tree

from go_audit.core.config import AuditConfig
from go_audit.core.discover import iter_source_files
from go_audit.core.parser import has_syntax_error, new_parser
from go_audit.core.position import PositionResolver

_logger = logging.getLogger(__name__)

Visitor = Callable[[str, bytes, Tree, PositionResolver], None]


@dataclass(frozen=True, slots=True)
class SkippedFile:
    """A file the walker could not read or parse."""

    path: str
    reason: str  # "unreadable" | "syntax_error"


@dataclass
class WalkSession:
    """Per-invocation walk state.

    Sessions are cheap; do not share one between threads.
    """

    config: AuditConfig = field(default_factory=AuditConfig)
    skipped: list[SkippedFile] = field(default_factory=list)
    files_visited: int = 0

    def __post_init__(self) -> None:
        self._parser = new_parser()

    def walk(self, root: Path | str, visitor: Visitor) -> None:
        """Parse every Go file under *root* and pass it to *visitor*.

        Unreadable and unparsable files are skipped (see ``skipped``).
        Raises ``TraversalError`` when a directory cannot be enumerated;
        exceptions raised by *visitor* abort the walk and propagate.
        """
        for path in iter_source_files(root, self.config):
            path_str = str(path)
            try:
                src = path.read_bytes()
            except OSError as e:
                _logger.debug("skipping unreadable file %s: %s", path_str, e)
                self.skipped.append(SkippedFile(path_str, "unreadable"))
                continue

            tree = self._parser.parse(src)
            if has_syntax_error(tree):
                _logger.debug("skipping file with syntax errors: %s", path_str)
                self.skipped.append(SkippedFile(path_str, "syntax_error"))
                continue

            self.files_visited += 1
            visitor(path_str, src, tree, PositionResolver(path_str, src))

        _logger.debug(
            "walk of %s done: %d visited, %d skipped",
            root,
            self.files_visited,
            len(self.skipped),
        )


def walk(
    root: Path | str,
    visitor: Visitor,
    *,
    config: AuditConfig | None = None,
) -> WalkSession:
    """Run a one-off walk and return its session (for ``skipped``)."""
    session = WalkSession(config=config or AuditConfig())
    session.walk(root, visitor)
    return session


def session_or_default(session: WalkSession | None) -> WalkSession:
    return session if session is not None else WalkSession()
