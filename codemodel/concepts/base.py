"""Rule contract and the read-only context rules evaluate against."""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from functools import cached_property
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models import (
    ClassDescriptor,
    Concept,
    ConceptKind,
    DependencyGraph,
    EdgeKind,
    EvidenceValue,
    GraphAnalysis,
    ManifestInfo,
    ModuleDescriptor,
    SourceSpan,
)

ROOT_DIRECTORY = "."


def confidence(conditions: Mapping[str, bool]) -> float:
    """Share of matched sub-conditions, rounded to four places."""
    if not conditions:
        return 0.0
    matched = sum(1 for value in conditions.values() if value)
    return round(matched / len(conditions), 4)


class RuleContext:
    """Descriptors, layout and graph neighborhoods for one analysis run."""

    def __init__(
        self,
        modules: Sequence[ModuleDescriptor],
        graph: DependencyGraph,
        analysis: GraphAnalysis,
        manifest: Optional[ManifestInfo] = None,
    ) -> None:
        self.modules: Tuple[ModuleDescriptor, ...] = tuple(sorted(modules, key=lambda item: item.path))
        self.graph = graph
        self.analysis = analysis
        self.manifest = manifest or ManifestInfo()
        self._by_path = {module.path: module for module in self.modules}

    def module(self, path: str) -> Optional[ModuleDescriptor]:
        return self._by_path.get(path)

    @staticmethod
    def directory_of(path: str) -> str:
        return posixpath.dirname(path) or ROOT_DIRECTORY

    @cached_property
    def directories(self) -> Tuple[str, ...]:
        """Every directory that contains a module, directly or below it."""
        found = set()
        for module in self.modules:
            segments = module.directory_segments
            for depth in range(len(segments) + 1):
                found.add("/".join(segments[:depth]) or ROOT_DIRECTORY)
        return tuple(sorted(found))

    def child_directories(self, directory: str) -> Dict[str, str]:
        """Map immediate child directory names to their paths."""
        prefix = "" if directory == ROOT_DIRECTORY else f"{directory}/"
        children: Dict[str, str] = {}
        for candidate in self.directories:
            if candidate == ROOT_DIRECTORY or not candidate.startswith(prefix):
                continue
            rest = candidate[len(prefix) :]
            if rest and "/" not in rest:
                children[rest] = candidate
        return children

    def modules_under(self, directory: str) -> List[ModuleDescriptor]:
        if directory == ROOT_DIRECTORY:
            return list(self.modules)
        prefix = f"{directory}/"
        return [module for module in self.modules if module.path.startswith(prefix)]

    def importers(self, path: str) -> Tuple[str, ...]:
        """Distinct modules with an internal edge into ``path``."""
        index = self.graph.index_of(path)
        if index is None:
            return ()
        return tuple(sorted({self.graph.node_id(source) for source in self.graph.predecessors[index]}))

    def imported(self, path: str) -> Tuple[str, ...]:
        """Distinct modules ``path`` has an internal edge to."""
        index = self.graph.index_of(path)
        if index is None:
            return ()
        return tuple(sorted({self.graph.node_id(target) for target in self.graph.successors[index]}))

    def internal_pairs(self) -> Iterable[Tuple[str, str]]:
        for edge in self.graph.internal_edges:
            yield self.graph.node_id(edge.source), self.graph.node_id(edge.target)  # type: ignore[arg-type]

    def external_packages_of(self, path: str) -> Tuple[str, ...]:
        index = self.graph.index_of(path)
        if index is None:
            return ()
        return tuple(
            sorted(
                {
                    edge.package
                    for edge in self.graph.edges_from(index)
                    if edge.kind is EdgeKind.EXTERNAL and edge.package
                }
            )
        )

    @cached_property
    def classes_by_name(self) -> Dict[str, List[Tuple[ModuleDescriptor, ClassDescriptor]]]:
        table: Dict[str, List[Tuple[ModuleDescriptor, ClassDescriptor]]] = {}
        for module in self.modules:
            for klass in module.classes:
                if klass.name:
                    table.setdefault(klass.name, []).append((module, klass))
        return table

    def has_framework(self, *names: str) -> bool:
        declared = {item.lower() for item in self.manifest.frameworks}
        declared.update(name.lower() for name in self.manifest.python_packages)
        declared.update(name.lower() for name in self.manifest.node_packages)
        return any(name.lower() in declared for name in names)


class Rule(ABC):
    """A structural signature that emits concepts when it matches."""

    name: str = ""
    kind: ConceptKind
    label: str = ""

    @abstractmethod
    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        """Yield concepts for every place the signature matches."""

    def concept(
        self,
        file: str,
        span: Optional[SourceSpan],
        conditions: Mapping[str, bool],
        **details: EvidenceValue,
    ) -> Concept:
        evidence: Dict[str, EvidenceValue] = dict(conditions)
        evidence.update(details)
        return Concept(
            kind=self.kind,
            name=self.label,
            confidence=confidence(conditions),
            file=file,
            span=span,
            evidence=evidence,
            rule=self.name,
        )


__all__ = ["ROOT_DIRECTORY", "Rule", "RuleContext", "confidence"]
