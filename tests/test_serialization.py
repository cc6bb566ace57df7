"""Tests for codemodel.serialization."""

from __future__ import annotations

import json

import pytest

from codemodel.models import ProvenanceError
from codemodel.pipeline import AnalysisPipeline
from codemodel.serialization import (
    concept_from_document,
    dump_document,
    dumps,
    graph_from_document,
    graph_to_document,
    load_document,
    loads,
    require_facts,
    to_document,
)
from tests._fixtures.repo_builder import source_files

_FILES = {
    "src/config.ts": """
        export class Config {
          private constructor() {}
          static getInstance(): Config {
            return new Config();
          }
        }
        """,
    "src/index.ts": """
        import { Config } from './config';
        import express from 'express';
        const app = express();
        app.get('/health', health);
        """,
    "README.md": "# hi\n",
}


def _result(pipeline: AnalysisPipeline):
    return pipeline.run(source_files(_FILES), {"package.json": '{"dependencies": {"express": "^4"}}'})


def test_graph_survives_a_document_round_trip(pipeline: AnalysisPipeline) -> None:
    result = _result(pipeline)

    graph, analysis = graph_from_document(json.loads(json.dumps(graph_to_document(result.graph, result.analysis))))

    assert graph == result.graph
    assert analysis == result.analysis


def test_document_contains_edges_by_path_and_fact_concepts(pipeline: AnalysisPipeline) -> None:
    document = to_document(_result(pipeline))

    assert document["version"] == 1
    assert document["summary"]["statuses"] == {"Parsed": 2, "Pending": 1}
    edges = document["graph"]["edges"]
    assert edges[0] == {
        "source": "src/index.ts",
        "target": "src/config.ts",
        "kind": "Internal",
        "specifier": "./config",
        "line": 1,
        "package": None,
    }
    assert edges[1]["package"] == "express"
    assert document["concepts"]
    assert {concept["provenance"] for concept in document["concepts"]} == {"FACT"}


@pytest.mark.parametrize("fmt", ["json", "yaml"])
def test_text_formats_load_back_to_the_same_result(pipeline: AnalysisPipeline, fmt: str) -> None:
    result = _result(pipeline)

    restored = loads(dumps(result, fmt), fmt)

    assert restored.graph == result.graph
    assert restored.modules == result.modules
    assert restored.concepts == result.concepts
    assert restored.entry_points == result.entry_points
    assert dumps(restored, fmt) == dumps(result, fmt)


def test_non_fact_concepts_are_rejected(pipeline: AnalysisPipeline) -> None:
    document = to_document(_result(pipeline))
    document["concepts"][0]["provenance"] = "INFERRED"

    with pytest.raises(ProvenanceError):
        require_facts(document["concepts"])
    with pytest.raises(ProvenanceError):
        concept_from_document(document["concepts"][0])
    with pytest.raises(ProvenanceError):
        loads(dump_document(document, "json"), "json")


def test_load_document_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        load_document("[1, 2]", "json")
    with pytest.raises(ValueError):
        load_document("a: [unclosed", "yaml")
    with pytest.raises(ValueError):
        dump_document({}, "xml")
