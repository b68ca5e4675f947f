"""Tests for the canonical JSON normalization layer."""

import json
from dataclasses import dataclass
from pathlib import Path

from go_audit.core.position import SourcePosition
from go_audit.model import Severity
from go_audit.model.finding import Finding
from go_audit.utils.json_norm import stable_json_dumps, to_builtin


@dataclass
class _Record:
    name: str
    position: SourcePosition
    tags: tuple


def test_stable_json_dumps_sorts_keys_and_adds_newline():
    s = stable_json_dumps({"b": 1, "a": 2})
    assert s.endswith("\n")
    assert s.index('"a"') < s.index('"b"')


def test_stable_json_dumps_normalizes_paths():
    obj = json.loads(stable_json_dumps({"p": Path("a") / "b"}))
    assert obj["p"] == "a/b"


def test_dataclasses_and_enums_become_builtins():
    pos = SourcePosition("x.go", 3, 2, 20)
    rec = _Record("F", pos, ("a", "b"))
    assert to_builtin(rec) == {
        "name": "F",
        "position": {"file": "x.go", "line": 3, "column": 2, "offset": 20},
        "tags": ["a", "b"],
    }
    assert to_builtin(Severity.HIGH) == "high"


def test_finding_serialization_omits_empty_optionals():
    pos = SourcePosition("x.go", 1, 1, 0)
    bare = to_builtin(Finding("defer_in_loop", "d", pos))
    assert "subject" not in bare and "metadata" not in bare
    full = to_builtin(Finding("k", "d", pos, subject="f", severity=Severity.LOW, metadata={"n": 1}))
    assert full["subject"] == "f"
    assert full["severity"] == "low"
    assert full["metadata"] == {"n": 1}
