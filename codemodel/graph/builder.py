"""Dependency graph construction from module descriptors."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence

from ..logging import get_logger
from ..models import DependencyGraph, Edge, EdgeKind, Language, ManifestInfo, ModuleDescriptor, Node
from .resolution import JavaScriptResolver, PythonResolver

logger = get_logger("graph")


def external_packages(manifest: ManifestInfo) -> Dict[Language, List[str]]:
    """Per-language external package names declared by the manifests."""
    return {
        Language.PY_LIKE: sorted(manifest.python_packages),
        Language.JS_LIKE: sorted(manifest.node_packages),
    }


class DependencyGraphBuilder:
    """Builds the frozen module graph.

    Descriptors are processed in path order so that node indices and edge
    order do not depend on the order in which files finished normalizing.
    Every import statement yields exactly one edge.
    """

    def build(
        self,
        modules: Sequence[ModuleDescriptor],
        external: Mapping[Language, Iterable[str]] | None = None,
    ) -> DependencyGraph:
        ordered = sorted(modules, key=lambda module: module.path)
        nodes = tuple(
            Node(index=index, path=module.path, language=module.language)
            for index, module in enumerate(ordered)
        )
        index_by_path = {node.path: node.index for node in nodes}
        if len(index_by_path) != len(nodes):
            raise ValueError("module descriptors must have unique paths")

        external = external or {}
        known = frozenset(index_by_path)
        resolvers = {
            Language.PY_LIKE: PythonResolver(known, external.get(Language.PY_LIKE, ())),
            Language.JS_LIKE: JavaScriptResolver(known, external.get(Language.JS_LIKE, ())),
        }

        edges: List[Edge] = []
        counts = {kind: 0 for kind in EdgeKind}
        for module in ordered:
            source = index_by_path[module.path]
            resolver = resolvers.get(module.language)
            for spec in module.imports:
                if resolver is None:
                    resolution_kind, target, package = EdgeKind.UNRESOLVED, None, None
                else:
                    resolution = resolver.resolve(module.path, spec)
                    resolution_kind = resolution.kind
                    target = index_by_path[resolution.path] if resolution.path is not None else None
                    package = resolution.package
                edges.append(
                    Edge(
                        source=source,
                        kind=resolution_kind,
                        specifier=spec.target,
                        line=spec.span.start_line,
                        target=target,
                        package=package,
                    )
                )
                counts[resolution_kind] += 1

        logger.info(
            "Built dependency graph: %d nodes, %d internal, %d external, %d unresolved edges",
            len(nodes),
            counts[EdgeKind.INTERNAL],
            counts[EdgeKind.EXTERNAL],
            counts[EdgeKind.UNRESOLVED],
        )
        return DependencyGraph(nodes=nodes, edges=tuple(edges))


__all__ = ["DependencyGraphBuilder", "external_packages"]
