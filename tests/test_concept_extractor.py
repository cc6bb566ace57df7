"""Tests for rule discovery and ordering in codemodel.concepts."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Iterable

import pytest

from codemodel import concepts as concepts_module
from codemodel.concepts import ConceptExtractor, RuleContext, confidence, discover_rules
from codemodel.concepts.base import Rule
from codemodel.graph import CycleDepthAnalyzer, DependencyGraphBuilder
from codemodel.models import Concept, ConceptKind, Provenance
from tests._fixtures.descriptors import module, span


class _MarkerRule(Rule):
    name = "marker"
    kind = ConceptKind.ARCHITECTURAL_PATTERN
    label = "Marker"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for item in reversed(context.modules):
            yield self.concept(item.path, span(3), {"seen": True})
            yield self.concept(item.path, None, {"seen": True, "other": False})


class _EchoRule(_MarkerRule):
    name = "echo"
    label = "Echo"

    def evaluate(self, context: RuleContext) -> Iterable[Concept]:
        for item in context.modules:
            yield self.concept(item.path, span(3), {"seen": True})


def _extract(extractor: ConceptExtractor, modules) -> list:
    graph = DependencyGraphBuilder().build(modules)
    return extractor.extract(modules, graph, CycleDepthAnalyzer().analyze(graph))


def test_discover_rules_returns_builtins_in_registration_order() -> None:
    names = [rule.name for rule in discover_rules()]
    assert names[:5] == ["singleton", "observer", "factory", "builder", "strategy"]
    assert names[-3:] == ["http_routing", "react_component", "data_model"]
    assert [rule.name for rule in discover_rules([])] == names


def test_discover_rules_filters_and_rejects_unknown_names() -> None:
    assert [rule.name for rule in discover_rules(["Strategy", "singleton"])] == ["singleton", "strategy"]
    with pytest.raises(ValueError, match="Unknown rules requested: nope"):
        discover_rules(["singleton", "nope"])


def test_entry_point_rules_are_loaded(monkeypatch: pytest.MonkeyPatch) -> None:
    entry = SimpleNamespace(name="marker", load=lambda: _MarkerRule)
    monkeypatch.setattr(concepts_module, "_iter_entry_points", lambda: [entry])

    rules = discover_rules(["marker"])

    assert len(rules) == 1
    assert isinstance(rules[0], _MarkerRule)


def test_concepts_are_ordered_by_file_line_rule_and_emission() -> None:
    extractor = ConceptExtractor([_MarkerRule(), _EchoRule()])

    concepts = _extract(extractor, [module("b.py"), module("a.py")])

    assert [(concept.file, concept.span is None, concept.rule) for concept in concepts] == [
        ("a.py", True, "marker"),
        ("a.py", False, "marker"),
        ("a.py", False, "echo"),
        ("b.py", True, "marker"),
        ("b.py", False, "marker"),
        ("b.py", False, "echo"),
    ]
    assert all(concept.provenance is Provenance.FACT for concept in concepts)
    assert concepts[0].confidence == 0.5


def test_extraction_is_repeatable() -> None:
    modules = [module("src/a.js", "./b.js"), module("src/b.js"), module("src/c.js", "./b.js")]
    first = _extract(ConceptExtractor(), modules)
    second = _extract(ConceptExtractor(), list(reversed(modules)))
    assert first == second


def test_confidence_rounds_to_four_places() -> None:
    assert confidence({"a": True, "b": False, "c": False}) == 0.3333
    assert confidence({}) == 0.0
