"""Position model — byte offsets to 1-based line/column locations."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SourcePosition:
    """Source-code location of a syntax node.

    ``line`` and ``column`` are 1-based (column counts bytes, as Go tooling
    does); ``offset`` is the 0-based byte offset into the file.
    """

    file: str
    line: int
    column: int
    offset: int

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "offset": self.offset,
        }


class PositionResolver:
    """Per-file offset → position table, built once from raw bytes.

    Every component asks the resolver for positions instead of computing
    line/column itself, so numbering is consistent across the toolkit.
    """

    __slots__ = ("_file", "_line_starts", "_size")

    def __init__(self, file: str, src: bytes) -> None:
        self._file = file
        self._size = len(src)
        starts = [0]
        idx = src.find(b"\n")
        while idx != -1:
            starts.append(idx + 1)
            idx = src.find(b"\n", idx + 1)
        self._line_starts: tuple[int, ...] = tuple(starts)

    @property
    def file(self) -> str:
        return self._file

    def resolve(self, offset: int) -> SourcePosition:
        """Return the position of byte *offset* (clamped to the file)."""
        offset = min(max(offset, 0), self._size)
        line_idx = bisect_right(self._line_starts, offset) - 1
        column = offset - self._line_starts[line_idx] + 1
        return SourcePosition(
            file=self._file,
            line=line_idx + 1,
            column=column,
            offset=offset,
        )

    def position_of(self, node) -> SourcePosition:
        """Position of the first byte of a syntax node."""
        return self.resolve(node.start_byte)
