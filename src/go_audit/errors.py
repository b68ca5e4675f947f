"""Errors surfaced to analyzer callers.

File-local problems (unreadable or unparsable files) never show up here;
the walker skips those files and records them on the session.
"""

from __future__ import annotations


class TraversalError(RuntimeError):
    """Directory enumeration failed; the walk was aborted."""

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"cannot traverse {path}: {cause.strerror or cause}")
        self.path = path
        self.cause = cause


class NotFoundError(LookupError):
    """A lookup analyzer found no match for the requested name."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} {name} not found")
        self.kind = kind
        self.name = name


class UnknownAnalyzerError(KeyError):
    """No analyzer is registered under the requested name."""

    def __str__(self) -> str:
        return f"unknown analyzer: {self.args[0]!r}"
