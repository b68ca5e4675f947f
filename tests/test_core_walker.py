"""Tests for file discovery and the tree walker."""

from __future__ import annotations

from pathlib import Path

import pytest

from go_audit.core.config import AuditConfig
from go_audit.core.discover import is_test_file, iter_source_files
from go_audit.core.syntax import package_name
from go_audit.core.walker import SkippedFile, WalkSession, walk
from go_audit.errors import TraversalError

from gosrc import write_go


@pytest.fixture
def tree_root(tmp_path: Path) -> Path:
    write_go(tmp_path, "a.go", "package a\n")
    write_go(tmp_path, "b.go", "package a\n\nfunc broken( {\n")
    write_go(tmp_path, "notes.txt", "not go\n")
    write_go(tmp_path, "sub/c_test.go", "package sub\n")
    write_go(tmp_path, "sub/c.go", "package sub\n")
    write_go(tmp_path, "vendor/dep/d.go", "package dep\n")
    write_go(tmp_path, "internal/vendor/e.go", "package vendor\n")
    return tmp_path


def _rel(root: Path, paths) -> list[str]:
    return [Path(p).relative_to(root).as_posix() for p in paths]


# ── discovery ───────────────────────────────────────────────────────


class TestDiscovery:
    def test_lexical_depth_first_order(self, tree_root: Path) -> None:
        found = _rel(tree_root, iter_source_files(tree_root))
        assert found == ["a.go", "b.go", "sub/c.go", "sub/c_test.go"]

    def test_vendor_segments_excluded_at_any_depth(self, tree_root: Path) -> None:
        found = _rel(tree_root, iter_source_files(tree_root))
        assert not any("vendor" in f for f in found)

    def test_tests_can_be_excluded(self, tree_root: Path) -> None:
        cfg = AuditConfig(include_tests=False)
        found = _rel(tree_root, iter_source_files(tree_root, cfg))
        assert "sub/c_test.go" not in found
        assert "sub/c.go" in found

    def test_single_file_root(self, tree_root: Path) -> None:
        assert list(iter_source_files(tree_root / "a.go")) == [tree_root / "a.go"]

    def test_missing_root_raises(self, tmp_path: Path) -> None:
        with pytest.raises(TraversalError):
            list(iter_source_files(tmp_path / "nope"))

    def test_is_test_file(self) -> None:
        assert is_test_file("x/foo_test.go")
        assert not is_test_file("x/test.go")


# ── walker ──────────────────────────────────────────────────────────


class TestWalker:
    def test_visits_parsed_files_and_skips_malformed(self, tree_root: Path) -> None:
        seen: list[tuple[str, str]] = []

        def visit(path, src, tree, resolver):
            assert resolver.file == path
            seen.append((Path(path).name, package_name(tree)))

        session = walk(tree_root, visit)
        assert seen == [("a.go", "a"), ("c.go", "sub"), ("c_test.go", "sub")]
        assert session.files_visited == 3
        assert session.skipped == [SkippedFile(str(tree_root / "b.go"), "syntax_error")]

    def test_unreadable_file_is_skipped(self, tmp_path: Path) -> None:
        write_go(tmp_path, "ok.go", "package a\n")
        dangling = tmp_path / "x.go"
        dangling.symlink_to(tmp_path / "missing.go")

        seen: list[str] = []
        session = walk(tmp_path, lambda path, *rest: seen.append(Path(path).name))
        assert seen == ["ok.go"]
        assert session.files_visited == 1
        assert session.skipped == [SkippedFile(str(dangling), "unreadable")]

    def test_hidden_directories_are_walked(self, tmp_path: Path) -> None:
        write_go(tmp_path, "ok.go", "package a\n")
        write_go(tmp_path, ".hidden/h.go", "package h\n")

        seen: list[str] = []
        session = walk(tmp_path, lambda path, *rest: seen.append(path))
        assert sorted(_rel(tmp_path, seen)) == [".hidden/h.go", "ok.go"]
        assert session.skipped == []

    def test_session_reuse_accumulates_skips(self, tree_root: Path) -> None:
        session = WalkSession()
        session.walk(tree_root, lambda *a: None)
        session.walk(tree_root, lambda *a: None)
        assert len(session.skipped) == 2
        assert session.files_visited == 6

    def test_visitor_exceptions_propagate(self, tree_root: Path) -> None:
        def boom(path, src, tree, resolver):
            raise RuntimeError("stop")

        with pytest.raises(RuntimeError, match="stop"):
            walk(tree_root, boom)

    def test_missing_root_raises(self, tmp_path: Path) -> None:
        with pytest.raises(TraversalError) as info:
            walk(tmp_path / "missing", lambda *a: None)
        assert isinstance(info.value.cause, OSError)

    def test_walk_is_deterministic(self, tree_root: Path) -> None:
        def collect():
            out: list[str] = []
            walk(tree_root, lambda path, *rest: out.append(path))
            return out

        assert collect() == collect()
