"""Heuristic ranking of likely program entry points."""

from __future__ import annotations

import posixpath
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .graph.resolution import JavaScriptResolver, PY_ROOTS
from .logging import get_logger
from .models import (
    DependencyGraph,
    EntryPointCandidate,
    Language,
    ManifestInfo,
    ModuleDescriptor,
)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "manifest_main": 4.0,
    "zero_in_degree": 3.0,
    "entry_filename": 3.0,
    "route_registrations": 2.0,
    "main_guard": 2.0,
}

# A zero-in-degree node must always score above zero.
_REQUIRED_POSITIVE = frozenset({"zero_in_degree"})

_ENTRY_STEMS: Dict[Language, Set[str]] = {
    Language.PY_LIKE: {"__main__", "main", "app", "manage", "wsgi", "asgi", "server", "cli", "run"},
    Language.JS_LIKE: {"index", "main", "app", "server", "cli"},
}

logger = get_logger("entrypoints")


class EntryPointRanker:
    """Scores every graph node against the weighted entry heuristics."""

    def __init__(self, weights: Optional[Mapping[str, float]] = None) -> None:
        merged = dict(DEFAULT_WEIGHTS)
        for name, value in (weights or {}).items():
            if name not in DEFAULT_WEIGHTS:
                raise ValueError(f"Unknown entry point heuristic: {name}")
            if value < 0:
                raise ValueError(f"Heuristic weight for {name} must be non-negative")
            if value <= 0 and name in _REQUIRED_POSITIVE:
                raise ValueError(f"Heuristic weight for {name} must be positive")
            merged[name] = float(value)
        self.weights = merged

    def rank(
        self,
        graph: DependencyGraph,
        modules: Sequence[ModuleDescriptor],
        manifest: Optional[ManifestInfo] = None,
    ) -> List[EntryPointCandidate]:
        by_path = {module.path: module for module in modules}
        referenced = _manifest_references(graph, manifest)
        total = sum(self.weights.values())

        candidates: List[EntryPointCandidate] = []
        for node in graph.nodes:
            module = by_path.get(node.path)
            matched: List[Tuple[str, str]] = []

            if node.path in referenced:
                matched.append(("manifest_main", f"referenced by {referenced[node.path]}"))
            if graph.in_degree(node.index) == 0:
                matched.append(("zero_in_degree", "in-degree = 0"))
            if _is_entry_filename(node.path, node.language):
                matched.append(
                    ("entry_filename", f"filename matches known entry pattern ({posixpath.basename(node.path)})")
                )
            if module is not None and module.routes:
                matched.append(("route_registrations", f"{len(module.routes)} route registration(s)"))
            if module is not None and module.has_main_guard:
                matched.append(("main_guard", "has __main__ guard"))

            score = sum(self.weights[name] for name, _ in matched)
            candidates.append(
                EntryPointCandidate(
                    path=node.path,
                    score=round(score / total, 4) if total else 0.0,
                    heuristics=tuple(name for name, _ in matched),
                    evidence=tuple(text for _, text in matched),
                )
            )

        candidates.sort(key=lambda candidate: (-candidate.score, candidate.path))
        if candidates:
            logger.debug("Top entry point: %s (%.4f)", candidates[0].path, candidates[0].score)
        return candidates


def _is_entry_filename(path: str, language: Language) -> bool:
    name = posixpath.basename(path)
    stem = name.split(".", 1)[0]
    return stem in _ENTRY_STEMS.get(language, set())


def _manifest_references(
    graph: DependencyGraph, manifest: Optional[ManifestInfo]
) -> Dict[str, str]:
    """Map node paths to the manifest that names them as an entry."""
    if manifest is None:
        return {}
    known = {node.path for node in graph.nodes}
    references: Dict[str, str] = {}
    for hint in manifest.entry_hints:
        if hint.kind == "path":
            options = JavaScriptResolver.candidates(hint.value)
        else:
            relative = hint.value.replace(".", "/")
            options = []
            for root in PY_ROOTS:
                stem = posixpath.join(root, relative) if root else relative
                options.extend([f"{stem}.py", f"{stem}/__main__.py", f"{stem}/__init__.py"])
        for option in options:
            if option in known:
                references.setdefault(option, hint.manifest)
                break
    return references


__all__ = ["DEFAULT_WEIGHTS", "EntryPointRanker"]
