"""Finding — one position-tagged observation reported by an analyzer."""

from __future__ import annotations

from dataclasses import dataclass, field

from go_audit.core.position import SourcePosition

from . import Severity


@dataclass(frozen=True, slots=True)
class Finding:
    """Immutable issue record.

    ``kind`` is the analyzer-specific issue type (``"defer_in_loop"``,
    ``"goroutine_leak_risk"``, ...); ``subject`` names what it is about.
    Findings have no identity beyond structural equality.
    """

    kind: str
    description: str
    position: SourcePosition
    subject: str = ""
    severity: Severity = Severity.INFO
    metadata: dict = field(default_factory=dict)

    # ── serialisation ───────────────────────────────────────────────

    def to_dict(self) -> dict:
        d: dict = {
            "kind": self.kind,
            "description": self.description,
            "position": self.position.to_dict(),
            "severity": self.severity.value,
        }
        if self.subject:
            d["subject"] = self.subject
        if self.metadata:
            d["metadata"] = dict(self.metadata)
        return d
