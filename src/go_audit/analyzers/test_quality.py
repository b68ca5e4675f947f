"""Test-suite analyzers — test inventory, per-file test quality and
exported functions that no test appears to exercise.

A test ``TestFoo``, ``TestFoo_edgeCase`` or ``TestType_Method`` counts as
covering ``Foo`` / ``Type.Method`` declared in the same directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from tree_sitter import Node, Tree

from go_audit.core.discover import is_test_file
from go_audit.core.position import PositionResolver, SourcePosition
from go_audit.core.printer import stringify
from go_audit.core.query import cyclomatic_complexity, is_exported, selector_parts
from go_audit.core.syntax import (
    child,
    children,
    iter_descendants,
    package_name,
    receiver_type_name,
    text,
    top_level,
)
from go_audit.core.walker import WalkSession, session_or_default
from go_audit.model import Severity
from go_audit.model.finding import Finding

_ASSERT_METHODS = frozenset({"Error", "Errorf", "Fatal", "Fatalf", "Fail", "FailNow"})
_ASSERT_PACKAGES = frozenset({"assert", "require"})
_TABLE_HINTS = ("test", "case")


@dataclass
class TestFile:
    file: str
    package: str
    position: SourcePosition
    tests: list[str] = field(default_factory=list)
    benchmarks: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    fuzz: list[str] = field(default_factory=list)


@dataclass
class ExportedFunc:
    name: str
    package: str
    position: SourcePosition
    complexity: int = 1
    tested: bool = False


@dataclass(frozen=True, slots=True)
class TestCoverage:
    total_exported: int
    total_tested: int
    percentage: float


@dataclass
class TestAnalysis:
    test_files: list[TestFile] = field(default_factory=list)
    exported_functions: list[ExportedFunc] = field(default_factory=list)
    coverage_summary: TestCoverage = field(default_factory=lambda: TestCoverage(0, 0, 0.0))


@dataclass
class TestMetrics:
    total_tests: int = 0
    table_driven: int = 0
    subtests: int = 0
    benchmarks: int = 0
    examples: int = 0


@dataclass
class TestQualityInfo:
    file: str
    metrics: TestMetrics = field(default_factory=TestMetrics)
    issues: list[Finding] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MissingTest:
    function: str
    package: str
    complexity: int
    criticality: str
    reason: str
    position: SourcePosition


# ── shared helpers ───────────────────────────────────────────────────


def test_kind(name: str) -> str:
    """``test`` / ``benchmark`` / ``example`` / ``fuzz`` by Go naming rules, else ``""``."""
    for prefix, kind in (("Test", "test"), ("Benchmark", "benchmark"), ("Example", "example"), ("Fuzz", "fuzz")):
        if name.startswith(prefix):
            rest = name[len(prefix):]
            if not rest or not rest[0].islower():
                return kind
    return ""


def tested_names(test_name: str) -> set[str]:
    """Declarations a test name plausibly targets."""
    rest = test_name[len("Test"):]
    if not rest:
        return set()
    names = {rest}
    parts = rest.split("_")
    names.add(parts[0])
    if len(parts) > 1 and parts[1]:
        names.add(f"{parts[0]}.{parts[1]}")
    return names


def exported_declarations(tree: Tree) -> list[tuple[str, Node]]:
    """``(name, node)`` for exported functions and ``Type.Method`` methods."""
    out: list[tuple[str, Node]] = []
    for fn in top_level(tree, "function_declaration", "method_declaration"):
        name = text(child(fn, "name"))
        if not is_exported(name):
            continue
        if fn.type == "method_declaration":
            name = f"{receiver_type_name(fn)}.{name}"
        out.append((name, fn))
    return out


def criticality(name: str) -> str:
    lowered = name.lower()
    if "delete" in lowered or "remove" in lowered:
        return "high"
    if "create" in lowered or "update" in lowered:
        return "medium"
    return "low"


def _collect(root: Path | str, session: WalkSession):
    """One walk: test files, exported functions and tested names per directory."""
    test_files: list[TestFile] = []
    exported: list[tuple[str, ExportedFunc]] = []
    tested: dict[str, set[str]] = {}

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        pkg_dir = os.path.dirname(path)
        if is_test_file(path):
            clause = top_level(tree, "package_clause")
            tf = TestFile(
                file=path,
                package=package_name(tree),
                position=resolver.position_of(clause[0] if clause else tree.root_node),
            )
            for fn in top_level(tree, "function_declaration"):
                name = text(child(fn, "name"))
                kind = test_kind(name)
                if kind == "test":
                    tf.tests.append(name)
                    tested.setdefault(pkg_dir, set()).update(tested_names(name))
                elif kind == "benchmark":
                    tf.benchmarks.append(name)
                elif kind == "example":
                    tf.examples.append(name)
                elif kind == "fuzz":
                    tf.fuzz.append(name)
            if tf.tests or tf.benchmarks or tf.examples or tf.fuzz:
                test_files.append(tf)
            return
        pkg = package_name(tree)
        for name, fn in exported_declarations(tree):
            exported.append(
                (
                    pkg_dir,
                    ExportedFunc(
                        name=name,
                        package=pkg,
                        position=resolver.position_of(fn),
                        complexity=cyclomatic_complexity(fn),
                    ),
                )
            )

    session.walk(root, visit)
    for pkg_dir, fn in exported:
        fn.tested = fn.name in tested.get(pkg_dir, set())
    return test_files, [fn for _, fn in exported]


# ── analyze_tests ────────────────────────────────────────────────────


def analyze_tests(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> TestAnalysis:
    """Inventory of tests and which exported functions they cover."""
    test_files, exported = _collect(root, session_or_default(session))
    total = len(exported)
    covered = sum(1 for fn in exported if fn.tested)
    return TestAnalysis(
        test_files=test_files,
        exported_functions=exported,
        coverage_summary=TestCoverage(
            total_exported=total,
            total_tested=covered,
            percentage=round(covered / total * 100, 2) if total else 0.0,
        ),
    )


# ── find_missing_tests ───────────────────────────────────────────────


def find_missing_tests(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[MissingTest]:
    """Exported functions and methods with no test named after them."""
    _, exported = _collect(root, session_or_default(session))
    return [
        MissingTest(
            function=fn.name,
            package=fn.package,
            complexity=fn.complexity,
            criticality=criticality(fn.name),
            reason="No test found for exported function",
            position=fn.position,
        )
        for fn in exported
        if not fn.tested
    ]


# ── analyze_test_quality ─────────────────────────────────────────────


def _testing_params(fn: Node) -> set[str]:
    """Names bound to ``*testing.T`` anywhere in *fn* (subtest closures too)."""
    names: set[str] = set()
    for decl in iter_descendants(fn):
        if decl.type == "parameter_declaration" and stringify(child(decl, "type")) in ("*testing.T", "testing.TB"):
            names.update(text(n) for n in children(decl, "name"))
    return names


def has_assertions(fn: Node) -> bool:
    t_names = _testing_params(fn)
    for call in iter_descendants(fn):
        if call.type != "call_expression":
            continue
        operand, method = selector_parts(child(call, "function"))
        if operand in t_names and method in _ASSERT_METHODS:
            return True
        if operand in _ASSERT_PACKAGES:
            return True
    return False


def is_table_driven(fn: Node) -> bool:
    for node in iter_descendants(fn):
        if node.type == "var_spec":
            names = [text(n) for n in children(node, "name")]
        elif node.type == "short_var_declaration":
            left = child(node, "left")
            names = [text(n) for n in left.named_children] if left is not None else []
        else:
            continue
        if any(hint in name.lower() for name in names for hint in _TABLE_HINTS):
            return True
    return False


def _subtest_count(fn: Node) -> int:
    t_names = _testing_params(fn)
    return sum(
        1
        for call in iter_descendants(fn)
        if call.type == "call_expression" and selector_parts(child(call, "function")) in {(t, "Run") for t in t_names}
    )


def analyze_test_quality(
    root: Path | str,
    *,
    session: WalkSession | None = None,
) -> list[TestQualityInfo]:
    """Per test file: counts, table-driven / subtest use and weak tests."""
    result: list[TestQualityInfo] = []

    def visit(path: str, src: bytes, tree: Tree, resolver: PositionResolver) -> None:
        if not is_test_file(path):
            return
        info = TestQualityInfo(file=path)
        m = info.metrics
        for fn in top_level(tree, "function_declaration"):
            name = text(child(fn, "name"))
            kind = test_kind(name)
            if kind == "benchmark":
                m.benchmarks += 1
            elif kind == "example":
                m.examples += 1
            if kind != "test":
                continue
            m.total_tests += 1
            if is_table_driven(fn):
                m.table_driven += 1
            m.subtests += _subtest_count(fn)
            if not has_assertions(fn):
                info.issues.append(
                    Finding(
                        kind="weak_assertions",
                        subject=name,
                        description="Test lacks proper assertions",
                        position=resolver.position_of(fn),
                        severity=Severity.MEDIUM,
                    )
                )
            for call in iter_descendants(fn):
                if call.type == "call_expression" and selector_parts(child(call, "function")) == ("time", "Sleep"):
                    info.issues.append(
                        Finding(
                            kind="sleep_in_test",
                            subject=name,
                            description="time.Sleep makes tests slow and flaky",
                            position=resolver.position_of(call),
                            severity=Severity.LOW,
                        )
                    )
        if m.total_tests == 0:
            return
        if m.total_tests >= 3 and m.table_driven == 0:
            info.suggestions.append("Consider table-driven tests to cover more cases with less code")
        if m.benchmarks == 0:
            info.suggestions.append("Add benchmarks for performance-sensitive code")
        result.append(info)

    session_or_default(session).walk(root, visit)
    return result
