"""Boundary to the tree-sitter grammar libraries."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from tree_sitter import Node, Parser, Tree
from tree_sitter_language_pack import get_parser

SUPPORTED_GRAMMARS = ("python", "javascript", "typescript", "tsx")


class ParseFailure(Exception):
    """Raised when a file cannot be turned into an error-free syntax tree."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class ParsedSource:
    grammar: str
    tree: Tree
    source: bytes

    @property
    def root(self) -> Node:
        return self.tree.root_node


class SyntaxParser:
    """Parses source bytes with a per-thread cache of tree-sitter parsers."""

    def __init__(self) -> None:
        self._local = threading.local()

    def parse(self, grammar: str, source: bytes) -> ParsedSource:
        if grammar not in SUPPORTED_GRAMMARS:
            raise ParseFailure(f"no grammar available for {grammar!r}")
        try:
            source.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseFailure(f"source is not valid UTF-8 (byte {exc.start})") from exc

        tree = self._parser(grammar).parse(source)
        root = tree.root_node
        if root.has_error:
            error = first_error(root)
            line = error.start_point[0] + 1 if error is not None else root.start_point[0] + 1
            kind = "missing token" if error is not None and error.is_missing else "syntax error"
            raise ParseFailure(f"{kind} at line {line}")
        return ParsedSource(grammar=grammar, tree=tree, source=source)

    def _parser(self, grammar: str) -> Parser:
        cache: Optional[Dict[str, Any]] = getattr(self._local, "parsers", None)
        if cache is None:
            cache = {}
            self._local.parsers = cache
        parser = cache.get(grammar)
        if parser is None:
            parser = get_parser(grammar)
            cache[grammar] = parser
        return parser


def first_error(node: Node) -> Optional[Node]:
    """Return the first ERROR or missing node in document order."""
    for candidate in _walk_errors(node):
        return candidate
    return None


def _walk_errors(node: Node) -> Iterator[Node]:
    if node.type == "ERROR" or node.is_missing:
        yield node
        return
    for child in node.children:
        if child.has_error or child.is_missing:
            yield from _walk_errors(child)


__all__ = ["ParseFailure", "ParsedSource", "SUPPORTED_GRAMMARS", "SyntaxParser", "first_error"]
