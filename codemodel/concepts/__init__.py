"""Concept rules, rule discovery and the extraction engine."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Optional, Sequence, Set

from ..logging import get_logger
from ..models import Concept, DependencyGraph, GraphAnalysis, ManifestInfo, ModuleDescriptor, Provenance
from .architecture import FacadeModuleRule, HubModuleRule, LayeredRule, MonorepoRule, MvcRule
from .base import Rule, RuleContext, confidence
from .design import BuilderRule, FactoryRule, ObserverRule, SingletonRule, StrategyRule
from .framework import DataModelRule, HttpRoutingRule, ReactComponentRule

_ENTRY_POINT_GROUP = "codemodel.rules"

_BUILTIN_FACTORIES: dict[str, Callable[[], Rule]] = {
    "singleton": SingletonRule,
    "observer": ObserverRule,
    "factory": FactoryRule,
    "builder": BuilderRule,
    "strategy": StrategyRule,
    "layered": LayeredRule,
    "mvc": MvcRule,
    "hub_module": HubModuleRule,
    "facade_module": FacadeModuleRule,
    "monorepo": MonorepoRule,
    "http_routing": HttpRoutingRule,
    "react_component": ReactComponentRule,
    "data_model": DataModelRule,
}

logger = get_logger("concepts")


def discover_rules(enabled: Sequence[str] | None = None) -> List[Rule]:
    """Return instantiated rules in registration order, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled is not None and len(enabled) > 0:
        enabled_set = {name.lower() for name in enabled}

    rules: List[Rule] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Rule]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, Rule):
            raise TypeError(f"Rule factory for '{name}' did not return a Rule instance")
        rules.append(instance)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        name = entry.name
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load rule entry point '{name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Rule:
            return _coerce_rule(obj)

        _add(name, _factory)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown rules requested: {missing}")

    return rules


def _coerce_rule(obj: object) -> Rule:
    if isinstance(obj, Rule):
        return obj
    if isinstance(obj, type) and issubclass(obj, Rule):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Rule):
            return instance
    raise TypeError("Rule entry point must be a Rule subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return sorted(metadata.entry_points(group=_ENTRY_POINT_GROUP), key=lambda entry: entry.name)


class ConceptExtractor:
    """Runs every rule over the frozen analysis and orders the concepts."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None) -> None:
        self.rules: List[Rule] = list(rules) if rules is not None else discover_rules()

    def extract(
        self,
        modules: Sequence[ModuleDescriptor],
        graph: DependencyGraph,
        analysis: GraphAnalysis,
        manifest: Optional[ManifestInfo] = None,
    ) -> List[Concept]:
        context = RuleContext(modules, graph, analysis, manifest)
        keyed = []
        for rule_index, rule in enumerate(self.rules):
            emitted = 0
            for concept in rule.evaluate(context):
                if concept.provenance is not Provenance.FACT:
                    raise ValueError(f"rule {rule.name} produced a non-FACT concept")
                keyed.append((_sort_key(concept), rule_index, emitted, concept))
                emitted += 1
            logger.debug("Rule %s emitted %d concept(s)", rule.name, emitted)

        keyed.sort(key=lambda item: (item[0], item[1], item[2]))
        concepts = [item[3] for item in keyed]
        logger.info("Extracted %d concept(s) from %d rule(s)", len(concepts), len(self.rules))
        return concepts


def _sort_key(concept: Concept) -> tuple:
    if concept.span is None:
        return (concept.file, 0, 0)
    return (concept.file, 1, concept.span.start_line)


__all__ = [
    "ConceptExtractor",
    "Rule",
    "RuleContext",
    "confidence",
    "discover_rules",
]
