"""Go grammar binding for tree-sitter."""

from __future__ import annotations

import tree_sitter_go as tsgo
from tree_sitter import Language, Node, Parser, Tree

GO_LANGUAGE = Language(tsgo.language())


def new_parser() -> Parser:
    """Return a fresh parser; parsers are not shared between sessions."""
    return Parser(GO_LANGUAGE)


def parse_source(src: bytes, parser: Parser | None = None) -> Tree:
    """Parse Go *src* into a syntax tree (comments are kept as nodes)."""
    return (parser or new_parser()).parse(src)


def has_syntax_error(tree: Tree) -> bool:
    """True if tree-sitter had to recover from malformed input."""
    root: Node = tree.root_node
    return root.has_error or root.is_missing
