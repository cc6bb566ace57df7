"""Tests for codemodel.graph.analysis."""

from __future__ import annotations

from codemodel.graph import CycleDepthAnalyzer, DependencyGraphBuilder
from codemodel.models import GraphAnalysis
from tests._fixtures.descriptors import module


def _analyze(*modules) -> GraphAnalysis:
    graph = DependencyGraphBuilder().build(list(modules))
    return CycleDepthAnalyzer().analyze(graph)


def test_two_node_cycle_is_reported_once_with_closing_node() -> None:
    analysis = _analyze(module("a.js", "./b.js"), module("b.js", "./a.js"), module("c.js"))

    assert [cycle.nodes for cycle in analysis.cycles] == [("a.js", "b.js", "a.js")]
    assert analysis.cycles[0].members == ("a.js", "b.js")
    assert analysis.depths == {"a.js": 0, "b.js": 0, "c.js": 0}


def test_depth_is_longest_import_chain_from_a_root() -> None:
    analysis = _analyze(
        module("main.py", "service"),
        module("service.py", "repo", "util"),
        module("repo.py", "util"),
        module("util.py"),
    )

    assert analysis.cycles == ()
    assert analysis.depths == {"main.py": 0, "service.py": 1, "repo.py": 2, "util.py": 3}


def test_cycle_members_take_depth_from_outside_predecessors() -> None:
    analysis = _analyze(
        module("entry.js", "./x.js"),
        module("x.js", "./y.js"),
        module("y.js", "./x.js", "./leaf.js"),
        module("leaf.js"),
    )

    assert [cycle.nodes for cycle in analysis.cycles] == [("x.js", "y.js", "x.js")]
    assert analysis.depths["entry.js"] == 0
    assert analysis.depths["x.js"] == 0
    assert analysis.depths["y.js"] == 0
    assert analysis.depths["leaf.js"] == 1
    assert all(depth >= 0 for depth in analysis.depths.values())


def test_self_import_and_overlapping_cycles_terminate() -> None:
    analysis = _analyze(
        module("a.js", "./a.js", "./b.js"),
        module("b.js", "./c.js"),
        module("c.js", "./a.js", "./b.js"),
    )

    walks = [cycle.nodes for cycle in analysis.cycles]
    assert ("a.js", "a.js") in walks
    assert ("b.js", "c.js", "b.js") in walks
    assert set(analysis.depths) == {"a.js", "b.js", "c.js"}
    assert all(depth >= 0 for depth in analysis.depths.values())


def test_analysis_is_independent_of_input_order() -> None:
    modules = [
        module("a.js", "./b.js"),
        module("b.js", "./c.js"),
        module("c.js", "./a.js"),
        module("d.js", "./a.js"),
    ]
    first = _analyze(*modules)
    second = _analyze(*reversed(modules))
    assert first == second
