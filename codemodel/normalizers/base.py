"""Shared contract and syntax-tree helpers for language normalizers."""

from __future__ import annotations

import re
from typing import Iterable, Iterator, List, Optional, Protocol, Sequence

from tree_sitter import Node

from ..models import Language, ModuleDescriptor, SourceSpan
from ..parsing import ParsedSource

HTTP_VERBS = frozenset({"get", "post", "put", "delete", "patch", "options", "head"})

_STRING_LITERAL = re.compile(r"^[rRbBuUfF]{0,2}(\"\"\"|'''|\"|'|`)(.*)\1$", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")


class Normalizer(Protocol):
    """Maps one grammar family's syntax tree onto :class:`ModuleDescriptor`."""

    language: Language

    def normalize(self, path: str, parsed: ParsedSource) -> ModuleDescriptor:
        """Return the descriptor for a single, error-free syntax tree."""


def node_text(node: Optional[Node], source: bytes) -> str:
    if node is None:
        return ""
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def compact_text(node: Optional[Node], source: bytes) -> str:
    """Node text with whitespace runs collapsed, for patterns and annotations."""
    return _WHITESPACE.sub(" ", node_text(node, source)).strip()


def span_of(node: Node) -> SourceSpan:
    return SourceSpan(start_line=node.start_point[0] + 1, end_line=node.end_point[0] + 1)


def string_value(node: Optional[Node], source: bytes) -> Optional[str]:
    """Return the literal contents of a string node, or None for non-literals."""
    if node is None or node.type not in {"string", "template_string"}:
        return None
    if node.type == "template_string" and any(
        child.type == "template_substitution" for child in node.children
    ):
        return None
    if any(child.type == "interpolation" for child in node.children):
        return None
    match = _STRING_LITERAL.match(node_text(node, source))
    if match is None:
        return None
    return match.group(2)


def last_segment(dotted: str) -> str:
    return dotted.rsplit(".", 1)[-1]


def iter_descendants(node: Node, *, stop: Iterable[str] = ()) -> Iterator[Node]:
    """Yield descendants in document order, not descending into ``stop`` node types."""
    stop_types = frozenset(stop)
    stack: List[Node] = list(reversed(node.children))
    while stack:
        current = stack.pop()
        yield current
        if current.type in stop_types:
            continue
        stack.extend(reversed(current.children))


def visibility_for_name(name: str) -> str:
    """Naming-convention visibility shared by both language families."""
    if name.startswith("#"):
        return "private"
    if name.startswith("__") and not name.endswith("__"):
        return "private"
    if name.startswith("_") and not name.startswith("__"):
        return "protected"
    return "public"


def unique(items: Sequence[str]) -> tuple[str, ...]:
    seen: List[str] = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return tuple(seen)


def normalize_route(path: str) -> str:
    """Return a canonical representation for route paths."""
    result = path.strip()
    if not result:
        return "/"
    if not result.startswith("/") and result != "*":
        result = "/" + result
    result = re.sub(r"/{2,}", "/", result)
    if len(result) > 1 and result.endswith("/"):
        result = result[:-1]
    return result


def join_routes(prefix: str, route: str) -> str:
    """Combine controller-level and handler-level route paths."""
    if not prefix:
        return normalize_route(route)
    prefix_norm = normalize_route(prefix)
    route_norm = normalize_route(route)
    if route_norm == "/":
        return prefix_norm
    return normalize_route(f"{prefix_norm}{route_norm}")


__all__ = [
    "HTTP_VERBS",
    "Normalizer",
    "compact_text",
    "iter_descendants",
    "join_routes",
    "last_segment",
    "node_text",
    "normalize_route",
    "span_of",
    "string_value",
    "unique",
    "visibility_for_name",
]
