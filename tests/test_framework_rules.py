"""Tests for the framework rules in codemodel.concepts.framework."""

from __future__ import annotations

from typing import List, Optional, Sequence

from codemodel.concepts import RuleContext
from codemodel.concepts.base import Rule
from codemodel.concepts.framework import DataModelRule, HttpRoutingRule, ReactComponentRule
from codemodel.graph import CycleDepthAnalyzer, DependencyGraphBuilder
from codemodel.models import Concept, ConceptKind, ManifestInfo, ModuleDescriptor
from tests._fixtures.descriptors import normalize_text


def _run(rule: Rule, modules: Sequence[ModuleDescriptor], manifest: Optional[ManifestInfo] = None) -> List[Concept]:
    graph = DependencyGraphBuilder().build(modules)
    context = RuleContext(modules, graph, CycleDepthAnalyzer().analyze(graph), manifest)
    return list(rule.evaluate(context))


def test_express_routes_group_into_one_concept() -> None:
    module = normalize_text(
        "server.js",
        """
        const express = require('express');
        const app = express();

        app.get('/users', listUsers);
        app.post('/users', createUser);
        """,
    )
    manifest = ManifestInfo(node_packages={"express": "^4"}, frameworks=["Express"])

    (concept,) = _run(HttpRoutingRule(), [module], manifest)

    assert concept.kind is ConceptKind.FRAMEWORK_PATTERN
    assert concept.evidence["framework"] == "Express"
    assert concept.evidence["routes"] == 2
    assert concept.evidence["methods"] == "GET,POST"
    assert concept.span.start_line == 4
    assert concept.span.end_line == 5
    assert concept.confidence == 1.0


def test_routes_without_declared_framework_are_partial() -> None:
    module = normalize_text(
        "api.py",
        """
        from fastapi import APIRouter

        router = APIRouter()

        @router.get("/items")
        def list_items():
            return []
        """,
    )

    (concept,) = _run(HttpRoutingRule(), [module])

    assert concept.evidence["framework_declared"] is False
    assert concept.evidence["framework_imported"] is True
    assert concept.confidence == 0.75


def test_react_function_and_class_components() -> None:
    module = normalize_text(
        "src/Profile.jsx",
        """
        import React, { Component } from 'react';

        export function Avatar({ url }) {
          return <img src={url} />;
        }

        function formatName(user) {
          return user.name;
        }

        export default class Profile extends Component {
          render() {
            return <Avatar url="x" />;
          }
        }
        """,
    )

    concepts = _run(ReactComponentRule(), [module])

    assert [concept.evidence["component"] for concept in concepts] == ["Avatar", "Profile"]
    assert [concept.evidence["style"] for concept in concepts] == ["function", "class"]
    assert all(concept.confidence == 1.0 for concept in concepts)


def test_pascal_case_function_outside_react_context_is_ignored() -> None:
    module = normalize_text("lib/Parser.js", "export function Parse(text) { return text; }\n")
    assert _run(ReactComponentRule(), [module]) == []


def test_pydantic_and_dataclass_models() -> None:
    module = normalize_text(
        "models.py",
        """
        from dataclasses import dataclass

        from pydantic import BaseModel


        class User(BaseModel):
            name: str = ""
            email: str = ""


        @dataclass
        class Point:
            x: int = 0

            def norm(self):
                return abs(self.x)

            def scale(self, factor):
                return Point(self.x * factor)
        """,
    )

    user, point = _run(DataModelRule(), [module])

    assert user.evidence["class"] == "User"
    assert user.evidence["marker"] == "BaseModel"
    assert user.confidence == 1.0
    assert point.evidence["marker"] == "dataclass"
    assert point.evidence["data_dominant"] is False
    assert point.confidence == 0.75
