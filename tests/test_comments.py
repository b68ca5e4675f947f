"""Tests for go_audit.analyzers.comments."""

from __future__ import annotations

from pathlib import Path

import pytest

from go_audit.analyzers.comments import find_comments, find_deprecated

from gosrc import write_go


NOTES = """
    package app

    // TODO: refactor this

    func Exported() {}

    // Documented does things.
    func Documented() {}

    /* FIXME later */
    var Counter int

    // Config holds settings.
    type Config struct{} // trailing note

    type Bare struct{}

    func (c Config) Method() {}

    func private() {}
"""


class TestFindComments:
    def test_todo_comments(self, tmp_path: Path) -> None:
        write_go(tmp_path, "app.go", NOTES)
        [info] = find_comments(tmp_path, "todo")
        assert [c.comment for c in info.todos] == ["// TODO: refactor this", "/* FIXME later */"]
        assert info.undocumented == []
        assert info.todos[0].position.line == 4

    def test_undocumented_exports(self, tmp_path: Path) -> None:
        write_go(tmp_path, "app.go", NOTES)
        [info] = find_comments(tmp_path, "undocumented")
        assert [(c.type, c.name) for c in info.undocumented] == [
            ("function", "Exported"),
            ("type", "Bare"),
            ("method", "Method"),
        ]
        assert info.todos == []

    def test_all_without_filter_lists_every_comment(self, tmp_path: Path) -> None:
        write_go(tmp_path, "app.go", NOTES)
        [info] = find_comments(tmp_path)
        assert len(info.todos) == 5
        assert len(info.undocumented) == 3

    def test_filter(self, tmp_path: Path) -> None:
        write_go(tmp_path, "app.go", NOTES)
        [info] = find_comments(tmp_path, "todo", filter="FIXME")
        assert [c.comment for c in info.todos] == ["/* FIXME later */"]

    def test_context(self, tmp_path: Path) -> None:
        write_go(tmp_path, "app.go", NOTES)
        [info] = find_comments(tmp_path, "todo", include_context=True)
        assert info.todos[0].context.startswith("package app")
        assert "func Exported() {}" in info.todos[0].context
        [plain] = find_comments(tmp_path, "todo")
        assert plain.todos[0].context == ""

    def test_invalid_arguments(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="comment_type"):
            find_comments(tmp_path, "nope")
        with pytest.raises(ValueError, match="invalid filter"):
            find_comments(tmp_path, "todo", filter="(")


class TestFindDeprecated:
    def test_declarations_comments_and_usages(self, tmp_path: Path) -> None:
        write_go(tmp_path, "a.go", """
            package old

            // OldFunc does it.
            //
            // Deprecated: Use NewFunc instead.
            func OldFunc() {}

            func NewFunc() {}

            // this API is deprecated soon
            func Other() { OldFunc() }
        """)
        write_go(tmp_path, "b.go", """
            package old

            func caller() { OldFunc() }
        """)
        infos = {Path(i.file).name: i for i in find_deprecated(tmp_path)}
        a = infos["a.go"]
        assert [u.kind for u in a.usage] == ["declaration", "comment", "usage"]
        decl = a.usage[0]
        assert (decl.item, decl.alternative, decl.reason) == ("OldFunc", "NewFunc", "Use NewFunc instead.")
        assert a.usage[1].reason == "// this API is deprecated soon"
        [usage] = infos["b.go"].usage
        assert (usage.item, usage.kind, usage.alternative) == ("OldFunc", "usage", "NewFunc")

    def test_nothing_deprecated(self, tmp_path: Path) -> None:
        write_go(tmp_path, "a.go", "package a\n\nfunc f() { g() }\n")
        assert find_deprecated(tmp_path) == []
