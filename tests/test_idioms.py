"""Tests for go_audit.analyzers.idioms."""

from __future__ import annotations

from pathlib import Path

import pytest

from go_audit.analyzers.idioms import (
    analyze_go_idioms,
    analyze_naming_conventions,
    error_string_problem,
    find_context_usage,
    find_patterns,
    stutters,
    to_mixed_caps,
)
from go_audit.model import Severity

from gosrc import write_go


IDIOMS = """
    package shop

    import (
        "errors"
        "fmt"
    )

    type Cart struct{ items []string }

    func (cart *Cart) Add(item string) {
        cart.items = append(cart.items, item)
    }

    func Load(id int) (error, string) {
        return nil, ""
    }

    func check(ok bool, err error) int {
        if ok == true {
            return 1
        }
        if err == nil {
            return 2
        } else {
            return 3
        }
    }

    func pick(x int) int {
        if x > 0 {
            return x
        } else {
            return -x
        }
    }

    var ErrEmpty = errors.New("Cart is empty")
    var ErrFull = fmt.Errorf("cart is full.")
    var ErrHTTP = errors.New("HTTP failure")
"""

CONTEXTS = """
    package repo

    import "context"

    type Repo struct {
        ctx context.Context
    }

    func (r *Repo) Fetch(ctx context.Context, id int) error {
        return nil
    }

    func Save(id int, ctx context.Context) error {
        return nil
    }

    func LoadAll(ctx context.Context) {
        inner := context.Background()
        _ = inner
    }

    func GetUser(id int) {}

    func compute(x int) int { return x }
"""

PATTERNS = """
    package server

    import "sync"

    type Server struct{ port int }

    type Option func(*Server)

    func NewServer(opts ...Option) *Server {
        return &Server{}
    }

    func (s *Server) WithPort(p int) *Server {
        s.port = p
        return s
    }

    var once sync.Once
    var inst *Server

    func GetInstance() *Server {
        once.Do(func() {
            inst = NewServer()
        })
        return inst
    }
"""

NAMING = """
    package store

    const MAX_SIZE = 10

    var X int

    type StoreConfig struct{}

    type Reader interface {
        Read() string
    }

    type Validation interface {
        Validate() error
    }

    func get_value() int { return 0 }

    func (self *StoreConfig) GetName() string { return "" }

    func (cfg *StoreConfig) GetErr() (string, error) { return "", nil }
"""


# ── analyze_go_idioms ────────────────────────────────────────────────


class TestAnalyzeGoIdioms:
    def test_violations(self, tmp_path: Path) -> None:
        write_go(tmp_path, "shop.go", IDIOMS)
        [info] = analyze_go_idioms(tmp_path)
        assert [(f.kind, f.position.line) for f in info.violations] == [
            ("receiver_naming", 11),
            ("error_not_last", 15),
            ("error_string_format", 38),
            ("error_string_format", 39),
        ]
        assert info.violations[1].severity is Severity.MEDIUM

    def test_error_string_descriptions(self, tmp_path: Path) -> None:
        write_go(tmp_path, "shop.go", IDIOMS)
        [info] = analyze_go_idioms(tmp_path)
        messages = [f.description for f in info.violations if f.kind == "error_string_format"]
        assert messages == [
            "Error strings should not be capitalized",
            "Error strings should not end with punctuation or newlines",
        ]

    def test_suggestions(self, tmp_path: Path) -> None:
        write_go(tmp_path, "shop.go", IDIOMS)
        [info] = analyze_go_idioms(tmp_path)
        assert [(f.kind, f.position.line) for f in info.suggestions] == [
            ("bool_comparison", 20),
            ("error_handling", 23),
            ("else_after_return", 33),
        ]
        assert info.suggestions[1].metadata == {"suggestion": "Use 'if err != nil' and return early"}

    def test_clean_file_is_omitted(self, tmp_path: Path) -> None:
        write_go(
            tmp_path,
            "ok.go",
            """
            package ok

            type T struct{}

            func (t *T) Do() error {
                return nil
            }
            """,
        )
        assert analyze_go_idioms(tmp_path) == []


class TestErrorStringProblem:
    @pytest.mark.parametrize(
        "message, problem",
        [
            ("bad input", ""),
            ("Bad input", "Error strings should not be capitalized"),
            ("HTTP timeout", ""),
            ("bad input.", "Error strings should not end with punctuation or newlines"),
            ("bad input\\n", "Error strings should not end with punctuation or newlines"),
            ("", ""),
        ],
    )
    def test_problem(self, message: str, problem: str) -> None:
        assert error_string_problem(message) == problem


# ── find_context_usage ───────────────────────────────────────────────


class TestFindContextUsage:
    def test_categories(self, tmp_path: Path) -> None:
        write_go(tmp_path, "repo.go", CONTEXTS)
        [info] = find_context_usage(tmp_path)
        assert [(u.function, u.position.line) for u in info.proper_usage] == [("Fetch", 10), ("LoadAll", 18)]
        assert [(u.function, u.type, u.position.line) for u in info.improper_usage] == [
            ("Repo", "stored_in_struct", 7),
            ("Save", "not_first_param", 14),
            ("LoadAll", "context_not_propagated", 19),
        ]
        assert [(u.function, u.type) for u in info.missing_context] == [("GetUser", "missing")]

    def test_not_propagated_description(self, tmp_path: Path) -> None:
        write_go(tmp_path, "repo.go", CONTEXTS)
        [info] = find_context_usage(tmp_path)
        assert info.improper_usage[2].description == "context.Background() used although a context was passed in"

    def test_file_without_context_concerns_is_omitted(self, tmp_path: Path) -> None:
        write_go(tmp_path, "m.go", "package m\n\nfunc add(a, b int) int { return a + b }\n")
        assert find_context_usage(tmp_path) == []


# ── find_patterns ────────────────────────────────────────────────────


class TestFindPatterns:
    def test_patterns(self, tmp_path: Path) -> None:
        write_go(tmp_path, "server.go", PATTERNS)
        found = {
            p.pattern: [(o.description, o.quality, o.position.line) for o in p.occurrences]
            for p in find_patterns(tmp_path)
        }
        assert found == {
            "singleton": [
                ("Potential singleton: GetInstance", "review", 22),
                ("sync.Once initialization: once.Do", "good", 23),
            ],
            "factory": [("Factory function: NewServer", "good", 10)],
            "builder": [("Builder method: Server.WithPort", "good", 14)],
            "functional_options": [("Option type: Option", "good", 8)],
        }

    def test_order_and_omission(self, tmp_path: Path) -> None:
        write_go(tmp_path, "f.go", "package f\n\nfunc CreateUser() {}\n")
        patterns = find_patterns(tmp_path)
        assert [p.pattern for p in patterns] == ["factory"]
        assert patterns[0].occurrences[0].file.endswith("f.go")


# ── analyze_naming_conventions ───────────────────────────────────────


class TestAnalyzeNamingConventions:
    def test_violations(self, tmp_path: Path) -> None:
        write_go(tmp_path, "store.go", NAMING)
        result = analyze_naming_conventions(tmp_path)
        assert [(v.name, v.type, v.position.line) for v in result.violations] == [
            ("MAX_SIZE", "constant", 4),
            ("X", "variable", 6),
            ("StoreConfig", "type", 8),
            ("Validation", "type", 14),
            ("get_value", "function", 18),
            ("self", "receiver", 20),
            ("GetName", "function", 20),
        ]

    def test_suggestions(self, tmp_path: Path) -> None:
        write_go(tmp_path, "store.go", NAMING)
        suggestions = {v.name: v.suggestion for v in analyze_naming_conventions(tmp_path).violations}
        assert suggestions["MAX_SIZE"] == "MaxSize"
        assert suggestions["StoreConfig"] == "Config"
        assert suggestions["get_value"] == "getValue"
        assert suggestions["self"] == "s"
        assert suggestions["GetName"] == "Name"

    def test_statistics(self, tmp_path: Path) -> None:
        write_go(tmp_path, "store.go", NAMING)
        stats = analyze_naming_conventions(tmp_path).statistics
        assert (stats.total_symbols, stats.exported_symbols, stats.unexported_symbols) == (8, 7, 1)
        assert stats.violation_count == 7

    def test_package_with_underscore(self, tmp_path: Path) -> None:
        write_go(tmp_path, "m.go", "package my_pkg\n")
        [v] = analyze_naming_conventions(tmp_path).violations
        assert (v.type, v.issue, v.suggestion) == (
            "package",
            "Package name should not contain underscores",
            "mypkg",
        )

    def test_test_function_underscores_allowed_in_test_files(self, tmp_path: Path) -> None:
        write_go(
            tmp_path,
            "calc_test.go",
            """
            package calc_test

            import "testing"

            func TestAdd_Negative(t *testing.T) {}
            """,
        )
        assert analyze_naming_conventions(tmp_path).violations == []


class TestNamingHelpers:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("MAX_SIZE", "MaxSize"),
            ("max_size", "maxSize"),
            ("http-client", "httpClient"),
            ("plain", "plain"),
        ],
    )
    def test_to_mixed_caps(self, name: str, expected: str) -> None:
        assert to_mixed_caps(name) == expected

    def test_stutters(self) -> None:
        assert stutters("http", "HTTPServer")
        assert stutters("store", "StoreConfig")
        assert not stutters("store", "Store")
        assert not stutters("store", "Storefront")
        assert not stutters("main", "MainLoop")
