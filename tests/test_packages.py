"""Tests for go_audit.analyzers.packages."""

from __future__ import annotations

from pathlib import Path

import pytest

from go_audit.analyzers.packages import (
    analyze_architecture,
    analyze_coupling,
    analyze_dependencies,
    find_cycles,
    find_imports,
    import_name,
    list_packages,
)

from gosrc import write_go


@pytest.fixture
def app(tmp_path: Path) -> Path:
    write_go(tmp_path, "main.go", """
        package main

        import (
            "fmt"

            "example.com/app/internal/service"
        )

        func main() {
            fmt.Println(service.Run())
        }
    """)
    write_go(tmp_path, "internal/service/service.go", """
        package service

        import "example.com/app/internal/storage"

        func Run() string { return storage.Load() }
    """)
    write_go(tmp_path, "internal/service/service_test.go", """
        package service

        import "testing"

        func TestRun(t *testing.T) {}
    """)
    write_go(tmp_path, "internal/storage/storage.go", """
        package storage

        import "example.com/app/internal/service"

        var _ = service.Run

        func Load() string { return "" }
    """)
    return tmp_path


# ── list_packages ───────────────────────────────────────────────────


class TestListPackages:
    def test_packages_in_walk_order(self, app: Path) -> None:
        pkgs = list_packages(app)
        assert [(p.import_path, p.name) for p in pkgs] == [
            (".", "main"),
            ("internal/service", "service"),
            ("internal/storage", "storage"),
        ]

    def test_files_and_imports(self, app: Path) -> None:
        pkgs = {p.import_path: p for p in list_packages(app)}
        assert pkgs["internal/service"].go_files == ["service.go"]
        assert pkgs["."].imports == ["fmt", "example.com/app/internal/service"]
        assert pkgs["."].position.line == 2

    def test_include_tests(self, app: Path) -> None:
        pkgs = {p.import_path: p for p in list_packages(app, include_tests=True)}
        assert pkgs["internal/service"].go_files == ["service.go", "service_test.go"]
        assert "testing" in pkgs["internal/service"].imports

    def test_empty_tree(self, tmp_path: Path) -> None:
        assert list_packages(tmp_path) == []

    def test_to_dict_hides_import_positions(self, app: Path) -> None:
        d = list_packages(app)[0].to_dict()
        assert "import_positions" not in d
        assert d["import_path"] == "."


# ── find_imports ────────────────────────────────────────────────────


class TestFindImports:
    def test_used_symbols_and_unused_imports(self, tmp_path: Path) -> None:
        write_go(tmp_path, "main.go", """
            package main

            import (
                "fmt"
                "os"
                _ "embed"
                str "strings"
                "github.com/foo/go-yaml/v2"
            )

            func main() {
                fmt.Println(str.ToUpper("x"))
                fmt.Printf("")
                var n yaml.Node
                _ = n
            }
        """)
        [info] = find_imports(tmp_path)
        assert info.package == "main"
        used = {d.path: d.used_symbols for d in info.imports}
        assert used == {
            "fmt": ["Printf", "Println"],
            "os": [],
            "embed": [],
            "strings": ["ToUpper"],
            "github.com/foo/go-yaml/v2": ["Node"],
        }
        assert info.unused_imports == ["os"]
        assert [d.alias for d in info.imports] == ["", "", "_", "str", ""]

    def test_files_without_imports_are_omitted(self, tmp_path: Path) -> None:
        write_go(tmp_path, "a.go", "package a\n")
        assert find_imports(tmp_path) == []

    @pytest.mark.parametrize(
        "path, alias, expected",
        [
            ("fmt", "", "fmt"),
            ("net/http", "", "http"),
            ("gopkg.in/yaml.v3", "", "yaml"),
            ("github.com/x/go-cmp", "", "cmp"),
            ("example.com/mod/v2", "", "mod"),
            ("net/http", "h", "h"),
        ],
    )
    def test_import_name(self, path: str, alias: str, expected: str) -> None:
        assert import_name(path, alias) == expected


# ── dependencies, coupling, architecture ────────────────────────────


class TestDependencies:
    def test_dependents_and_cycle_reported_once(self, app: Path) -> None:
        deps = {d.import_path: d for d in analyze_dependencies(app)}
        assert deps["internal/service"].dependents == [".", "internal/storage"]
        assert deps["internal/storage"].dependents == ["internal/service"]
        assert deps["internal/service"].cycles == [["internal/service", "internal/storage"]]
        assert deps["internal/storage"].cycles == []
        assert deps["."].cycles == []

    def test_dependencies_include_test_imports(self, app: Path) -> None:
        deps = {d.import_path: d for d in analyze_dependencies(app)}
        assert "testing" in deps["internal/service"].dependencies

    def test_find_cycles(self) -> None:
        graph = {"a": ["b"], "b": ["c", "a"], "c": ["a"], "d": []}
        assert find_cycles(graph) == [["a", "b"], ["a", "b", "c"]]


class TestCoupling:
    def test_metrics(self, app: Path) -> None:
        coupling = {c.import_path: c for c in analyze_coupling(app)}
        root = coupling["."]
        assert (root.afferent, root.efferent, root.instability) == (0, 2, 1.0)
        assert root.suggestions == []
        svc = coupling["internal/service"]
        assert (svc.afferent, svc.efferent, svc.instability) == (2, 1, 0.333)
        assert coupling["internal/storage"].instability == 0.5

    def test_isolated_package_has_zero_instability(self, tmp_path: Path) -> None:
        write_go(tmp_path, "a.go", "package a\n")
        [info] = analyze_coupling(tmp_path)
        assert info.instability == 0.0


class TestArchitecture:
    def test_layers_and_outward_dependency(self, app: Path) -> None:
        arch = analyze_architecture(app)
        assert [(l.name, l.packages) for l in arch.layers] == [
            ("entrypoint", ["."]),
            ("service", ["internal/service"]),
            ("storage", ["internal/storage"]),
        ]
        [violation] = arch.violations
        assert (violation.from_package, violation.to_package) == ("internal/storage", "internal/service")
        assert violation.violation == "storage layer depends on outer service layer"
        assert violation.position.file.endswith("storage.go")
        assert violation.position.line == 4
        assert any("Invert" in s for s in arch.suggestions)

    def test_unlayered_tree(self, tmp_path: Path) -> None:
        write_go(tmp_path, "util/util.go", "package util\n")
        arch = analyze_architecture(tmp_path)
        assert [l.name for l in arch.layers] == ["shared"]
        assert arch.violations == []
        assert any("No conventional layering" in s for s in arch.suggestions)
