"""Context extraction — a few source lines around a position."""

from __future__ import annotations

from go_audit.core.position import SourcePosition


def context_lines(
    src: bytes | str,
    position: SourcePosition | int,
    before: int = 1,
    after: int = 1,
) -> str:
    """Return the lines around *position*, whitespace-trimmed.

    *position* may also be a bare 1-based line number.  Out-of-range
    positions give ``""``; the window is clamped to the file.
    """
    line = position if isinstance(position, int) else position.line
    if isinstance(src, bytes):
        src = src.decode("utf-8", errors="replace")
    lines = src.split("\n")
    if line <= 0 or line > len(lines):
        return ""
    start = max(line - 1 - max(before, 0), 0)
    end = min(line + max(after, 0), len(lines))
    return "\n".join(lines[start:end]).strip()
