"""Tests for go_audit.analyzers.declarations."""

from __future__ import annotations

from pathlib import Path

import pytest

from go_audit.analyzers.declarations import (
    find_init_functions,
    find_method_receivers,
    init_order,
    should_use_pointer,
)
from go_audit.model import Severity

from gosrc import write_go


RECEIVERS = """
    package shapes

    type Circle struct{ r float64 }

    func (c Circle) Area() float64 { return c.r * c.r }

    func (c *Circle) Scale(f float64) { c.r *= f }

    func (c Circle) SetRadius(r float64) { c.r = r }

    type Counter int

    func (Counter) Reset() {}

    func (n *Counter) Add(d int) { *n += Counter(d) }
"""

CONFIG = """
    package config

    import (
        "fmt"
        "net/http"
        "time"

        "example.com/app/registry"
    )

    var Client *http.Client

    func init() {
        Client = &http.Client{}
        time.Sleep(time.Second)
        go fmt.Println("started")
        registry.Register("config")
    }
"""

REGISTRY = """
    package registry

    import "example.com/app/config"

    var names []string

    func Register(n string) { names = append(names, n) }

    func init() {
        _ = config.Client
        for {
            break
        }
    }
"""


def _app(tmp_path: Path) -> Path:
    write_go(tmp_path, "config/config.go", CONFIG)
    write_go(tmp_path, "registry/registry.go", REGISTRY)
    return tmp_path


# ── find_method_receivers ────────────────────────────────────────────


class TestFindMethodReceivers:
    def test_methods(self, tmp_path: Path) -> None:
        write_go(tmp_path, "shapes.go", RECEIVERS)
        result = find_method_receivers(tmp_path)
        assert [
            (m.type_name, m.method_name, m.receiver_type, m.receiver_name, m.position.line)
            for m in result.methods
        ] == [
            ("Circle", "Area", "value", "c", 6),
            ("Circle", "Scale", "pointer", "c", 8),
            ("Circle", "SetRadius", "value", "c", 10),
            ("Counter", "Reset", "value", "", 14),
            ("Counter", "Add", "pointer", "n", 16),
        ]

    def test_issues(self, tmp_path: Path) -> None:
        write_go(tmp_path, "shapes.go", RECEIVERS)
        result = find_method_receivers(tmp_path)
        assert [(f.kind, f.subject, f.position.line) for f in result.issues] == [
            ("mixed_receivers", "Circle", 6),
            ("mixed_receivers", "Counter", 14),
            ("should_use_pointer", "Circle.SetRadius", 10),
        ]
        assert result.issues[2].severity is Severity.MEDIUM

    def test_consistent_receivers_are_clean(self, tmp_path: Path) -> None:
        write_go(
            tmp_path,
            "ok.go",
            """
            package ok

            type T struct{ n int }

            func (t *T) Inc() { t.n++ }

            func (t *T) SetN(n int) { t.n = n }
            """,
        )
        result = find_method_receivers(tmp_path)
        assert len(result.methods) == 2
        assert result.issues == []


class TestShouldUsePointer:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("SetName", True),
            ("ResetAll", True),
            ("Reset", False),
            ("Area", False),
            ("Address", True),
        ],
    )
    def test_prefixes(self, name: str, expected: bool) -> None:
        assert should_use_pointer(name) is expected


# ── find_init_functions ──────────────────────────────────────────────


class TestFindInitFunctions:
    def test_init_functions(self, tmp_path: Path) -> None:
        result = find_init_functions(_app(tmp_path))
        assert [(f.package, f.position.line, f.dependencies, f.has_side_effects) for f in result.init_functions] == [
            ("config", 14, ["fmt", "http", "registry", "time"], True),
            ("registry", 10, ["config"], True),
        ]
        assert result.init_functions[0].file.endswith("config.go")
        assert result.init_functions[0].context.startswith("func init() {")

    def test_startup_hazards(self, tmp_path: Path) -> None:
        result = find_init_functions(_app(tmp_path))
        assert [(f.kind, f.position.line) for f in result.issues] == [
            ("blocking_init", 16),
            ("goroutine_in_init", 17),
            ("infinite_loop_in_init", 12),
            ("circular_init_dependency", 14),
        ]
        assert result.issues[0].description == "init() contains potentially blocking call: Sleep"

    def test_circular_dependency(self, tmp_path: Path) -> None:
        result = find_init_functions(_app(tmp_path))
        [cycle] = [f for f in result.issues if f.kind == "circular_init_dependency"]
        assert cycle.description == "Circular init dependency detected: config -> registry -> config"
        assert cycle.severity is Severity.HIGH
        assert result.init_order == ["registry", "config"]

    def test_complex_init(self, tmp_path: Path) -> None:
        body = "".join("    x++\n" for _ in range(21))
        write_go(tmp_path, "solo.go", "package solo\n\nvar x int\n\nfunc init() {\n" + body + "}\n")
        result = find_init_functions(tmp_path)
        assert [f.kind for f in result.issues] == ["complex_init"]
        assert result.init_order == ["solo"]

    def test_empty_init(self, tmp_path: Path) -> None:
        write_go(tmp_path, "solo.go", "package solo\n\nfunc init() {}\n")
        [fn] = find_init_functions(tmp_path).init_functions
        assert (fn.dependencies, fn.has_side_effects) == ([], False)

    def test_no_inits(self, tmp_path: Path) -> None:
        write_go(tmp_path, "m.go", "package m\n\nfunc main() {}\n")
        result = find_init_functions(tmp_path)
        assert result.init_functions == []
        assert result.init_order == []


class TestInitOrder:
    def test_dependencies_first(self) -> None:
        assert init_order({"a": ["b"], "b": ["c"], "c": []}) == ["c", "b", "a"]

    def test_unknown_dependencies_skipped(self) -> None:
        assert init_order({"app": ["fmt", "db"], "db": ["sql"]}) == ["db", "app"]
