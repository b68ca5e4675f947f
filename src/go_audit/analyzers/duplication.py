"""Duplication analyzer — syntax-tree based clone detector.

Function and method bodies are normalized to the pre-order sequence of
their node kinds, so two functions that differ only in identifier names,
string literals or numeric constants produce the same sequence.

Key algorithms:
  - ``_normalize()``  — body → node-kind sequence (comments dropped)
  - ``_hash()``       — sha256 of the sequence
  - clone grouping    — identical hashes form a group (similarity 1.0)
  - near clones       — remaining bodies compared pairwise with
                        ``difflib.SequenceMatcher``; pairs at or above the
                        threshold are reported with their ratio
"""

from __future__ import annotations

import difflib
import hashlib
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.syntax import FUNCTION_DECLS, child, function_name, iter_descendants
from go_audit.core.walker import WalkSession, session_or_default

# ── defaults ─────────────────────────────────────────────────────────
DEFAULT_THRESHOLD = 0.8
_MIN_NODES = 12    # ignore trivial bodies such as ``{ return x }``


@dataclass(frozen=True, slots=True)
class DuplicateLocation:
    file: str
    function: str
    position: SourcePosition


@dataclass
class DuplicateGroup:
    similarity: float
    hash: str
    locations: list[DuplicateLocation] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _Block:
    location: DuplicateLocation
    kinds: tuple[str, ...]
    digest: str


def _normalize(body: Node) -> tuple[str, ...]:
    return tuple(n.type for n in iter_descendants(body) if n.type != "comment")


def _hash(kinds: tuple[str, ...]) -> str:
    return hashlib.sha256("\x1f".join(kinds).encode()).hexdigest()


def find_duplicates(
    root: Path | str,
    threshold: float = DEFAULT_THRESHOLD,
    *,
    session: WalkSession | None = None,
) -> list[DuplicateGroup]:
    """Groups of structurally identical or similar function bodies.

    Exact clones form one group each (similarity ``1.0``).  When
    *threshold* is below 1.0, pairs of non-identical bodies whose
    similarity ratio reaches it are reported as two-member groups.
    """
    blocks: list[_Block] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        for node in iter_descendants(tree.root_node):
            if node.type not in FUNCTION_DECLS:
                continue
            body = child(node, "body")
            if body is None:
                continue
            kinds = _normalize(body)
            if len(kinds) < _MIN_NODES:
                continue
            blocks.append(
                _Block(
                    location=DuplicateLocation(
                        file=path,
                        function=function_name(node),
                        position=resolver.position_of(node),
                    ),
                    kinds=kinds,
                    digest=_hash(kinds),
                )
            )

    session_or_default(session).walk(root, visit)

    by_hash: dict[str, list[_Block]] = {}
    for block in blocks:
        by_hash.setdefault(block.digest, []).append(block)

    groups: list[DuplicateGroup] = []
    if threshold <= 1.0:
        for digest, members in by_hash.items():
            if len(members) > 1:
                groups.append(
                    DuplicateGroup(similarity=1.0, hash=digest, locations=[m.location for m in members])
                )

    if threshold < 1.0:
        # one representative per distinct body
        reps = [members[0] for members in by_hash.values()]
        for i, a in enumerate(reps):
            matcher = difflib.SequenceMatcher(None, b=a.kinds, autojunk=False)
            for b in reps[i + 1:]:
                matcher.set_seq1(b.kinds)
                if matcher.real_quick_ratio() < threshold or matcher.quick_ratio() < threshold:
                    continue
                ratio = matcher.ratio()
                if ratio >= threshold:
                    groups.append(
                        DuplicateGroup(
                            similarity=round(ratio, 3),
                            hash=a.digest,
                            locations=[a.location, b.location],
                        )
                    )
    return groups
