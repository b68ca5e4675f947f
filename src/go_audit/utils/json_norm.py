"""Canonical JSON serialization — the single dump path for CLI output.

Guarantees:
  - Stable key ordering (``sort_keys=True``)
  - Trailing newline at EOF
  - ``Path`` objects → POSIX strings, enums → their values
  - Objects with ``to_dict()`` use it; other dataclasses are converted
    field by field
"""

from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Mapping


def to_builtin(obj: Any) -> Any:
    """Convert analyzer results into JSON-safe builtins."""
    if obj is None or isinstance(obj, (bool, int, float)):
        return obj
    if isinstance(obj, Enum):
        return to_builtin(obj.value)
    if isinstance(obj, str):
        return str(obj)
    if isinstance(obj, Path):
        return obj.as_posix()
    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return to_builtin(obj.to_dict())
    if is_dataclass(obj) and not isinstance(obj, type):
        # shallow walk so nested objects still get their own to_dict()
        return {f.name: to_builtin(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Mapping):
        return {str(k): to_builtin(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_builtin(v) for v in obj]
    # Fall back to string (keeps CLI resilient)
    return str(obj)


def stable_json_dumps(obj: Any, *, indent: int | None = 2) -> str:
    """Serialize *obj* canonically (sorted keys, newline-terminated)."""
    s = json.dumps(
        to_builtin(obj),
        indent=indent,
        sort_keys=True,
        ensure_ascii=False,
    )
    return s + "\n"
