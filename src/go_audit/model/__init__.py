"""Enums shared across the analyzers."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """How much attention a finding deserves."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
