"""Tests for go_audit.api — the analyzer registry and result envelope.

Validates the public API surface callers use without CLI coupling.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import jsonschema
import pytest

import go_audit
from go_audit.api import REGISTRY, SCHEMA_VERSION, get_analyzer, list_analyzers, run_analyzer
from go_audit.contracts.load import load_schema, validate_file, validate_instance
from go_audit.core.config import AuditConfig
from go_audit.errors import NotFoundError, TraversalError, UnknownAnalyzerError

from gosrc import write_go


MODULE = """
    package shapes

    // Shape has an area.
    type Shape interface {
        Area() float64
    }

    // Square is a Shape.
    type Square struct {
        Side float64
    }

    func (s Square) Area() float64 { return s.Side * s.Side }

    func NewSquare(side float64) *Square {
        return &Square{Side: side}
    }
"""


def _module(tmp_path: Path) -> Path:
    write_go(tmp_path, "shapes.go", MODULE)
    return tmp_path


# ── registry ────────────────────────────────────────────────────────


class TestRegistry:
    def test_lists_every_analyzer_sorted(self) -> None:
        names = list_analyzers()
        assert len(names) == 38
        assert names == sorted(names)
        assert {"find_symbols", "get_type_info", "generate_docs", "analyze_naming_conventions"} <= set(names)

    def test_names_match_schema_pattern(self) -> None:
        pattern = load_schema("analysis_result.schema.json")["properties"]["analyzer"]["pattern"]
        assert all(re.match(pattern, name) for name in REGISTRY)

    def test_unknown_analyzer(self) -> None:
        with pytest.raises(UnknownAnalyzerError, match="no_such"):
            get_analyzer("no_such")

    def test_lookup_analyzers_declare_name_param(self) -> None:
        assert get_analyzer("get_type_info").name_param == "type_name"
        assert get_analyzer("extract_interfaces").required == ()
        assert get_analyzer("find_symbols").name_param == ""

    def test_package_reexports(self) -> None:
        assert go_audit.run_analyzer is run_analyzer
        assert go_audit.list_analyzers is list_analyzers
        assert go_audit.__version__ == "0.1.0"


# ── run_analyzer ────────────────────────────────────────────────────


class TestRunAnalyzer:
    def test_envelope_shape(self, tmp_path: Path) -> None:
        env = run_analyzer("find_symbols", _module(tmp_path), pattern="Square")
        assert env["schema_version"] == SCHEMA_VERSION
        assert env["analyzer"] == "find_symbols"
        assert env["root"] == tmp_path.as_posix()
        assert env["skipped_files"] == []
        assert [(s["name"], s["kind"]) for s in env["result"]] == [("Square", "struct"), ("NewSquare", "function")]

    def test_positions_are_plain_dicts(self, tmp_path: Path) -> None:
        env = run_analyzer("find_symbols", _module(tmp_path), pattern="NewSquare")
        [symbol] = env["result"]
        assert symbol["position"]["line"] == 16
        assert set(symbol["position"]) == {"file", "line", "column", "offset"}

    def test_validates_against_schema(self, tmp_path: Path) -> None:
        env = run_analyzer("extract_interfaces", _module(tmp_path), interface_name="Shape")
        validate_instance(env, "analysis_result.schema.json")

    def test_object_result(self, tmp_path: Path) -> None:
        env = run_analyzer("get_type_info", _module(tmp_path), type_name="Square")
        assert env["result"]["name"] == "Square"
        assert env["result"]["kind"] == "struct"

    def test_markdown_result_is_a_string(self, tmp_path: Path) -> None:
        env = run_analyzer("generate_docs", _module(tmp_path), format="markdown")
        assert env["result"].startswith("# Package shapes\n")

    def test_skipped_files_reported(self, tmp_path: Path) -> None:
        _module(tmp_path)
        (tmp_path / "broken.go").write_text("package shapes\n\nfunc {\n", encoding="utf-8")
        env = run_analyzer("find_symbols", tmp_path)
        assert env["skipped_files"] == [{"path": str(tmp_path / "broken.go"), "reason": "syntax_error"}]
        assert {s["name"] for s in env["result"]} >= {"Shape", "Square"}

    @pytest.mark.parametrize("analyzer", ["find_symbols", "find_dead_code", "extract_api", "find_empty_blocks"])
    def test_malformed_file_does_not_change_results(self, tmp_path: Path, analyzer: str) -> None:
        _module(tmp_path)
        clean = run_analyzer(analyzer, tmp_path)
        (tmp_path / "broken.go").write_text("package shapes\n\nfunc {\n", encoding="utf-8")
        dirty = run_analyzer(analyzer, tmp_path)
        assert dirty["result"] == clean["result"]
        assert len(dirty["skipped_files"]) == 1

    def test_config_applies(self, tmp_path: Path) -> None:
        _module(tmp_path)
        write_go(
            tmp_path,
            "shapes_test.go",
            """
            package shapes

            import "testing"

            func TestArea(t *testing.T) {}
            """,
        )
        with_tests = run_analyzer("analyze_tests", tmp_path)
        without = run_analyzer("analyze_tests", tmp_path, config=AuditConfig(include_tests=False))
        assert with_tests["result"] != without["result"]

    def test_idempotent(self, tmp_path: Path) -> None:
        _module(tmp_path)
        assert run_analyzer("find_dead_code", tmp_path) == run_analyzer("find_dead_code", tmp_path)

    def test_unknown_analyzer(self, tmp_path: Path) -> None:
        with pytest.raises(UnknownAnalyzerError):
            run_analyzer("nope", tmp_path)

    def test_unexpected_parameter(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="does not accept parameter"):
            run_analyzer("find_symbols", _module(tmp_path), threshold=0.5)

    def test_missing_required_parameter(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="requires parameter"):
            run_analyzer("find_references", _module(tmp_path))

    def test_bad_format(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="format must be one of"):
            run_analyzer("generate_docs", _module(tmp_path), format="html")

    def test_not_found_propagates(self, tmp_path: Path) -> None:
        with pytest.raises(NotFoundError, match="type Circle not found"):
            run_analyzer("get_type_info", _module(tmp_path), type_name="Circle")

    def test_missing_root(self, tmp_path: Path) -> None:
        with pytest.raises(TraversalError):
            run_analyzer("find_symbols", tmp_path / "missing")


class TestValidateInstance:
    def test_rejects_bad_envelope(self) -> None:
        with pytest.raises(jsonschema.ValidationError):
            validate_instance({"schema_version": "analysis_result_v1"}, "analysis_result.schema.json")

    def test_rejects_unknown_skip_reason(self) -> None:
        env = {
            "schema_version": SCHEMA_VERSION,
            "analyzer": "find_symbols",
            "root": ".",
            "result": [],
            "skipped_files": [{"path": "a.go", "reason": "too_big"}],
        }
        with pytest.raises(jsonschema.ValidationError):
            validate_instance(env, "analysis_result.schema.json")

    def test_unknown_schema(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_schema("nope.schema.json")

    def test_validate_file(self, tmp_path: Path) -> None:
        _module(tmp_path)
        out = tmp_path / "result.json"
        out.write_text(json.dumps(run_analyzer("extract_api", tmp_path)), encoding="utf-8")
        validate_file(out, "analysis_result.schema.json")
