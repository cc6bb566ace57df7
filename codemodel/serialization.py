"""Conversion between :class:`AnalysisResult` and a plain nested document."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from .models import (
    AnalysisResult,
    ClassDescriptor,
    Concept,
    ConceptKind,
    Cycle,
    DependencyGraph,
    Edge,
    EdgeKind,
    EntryHint,
    EntryPointCandidate,
    ExportSpec,
    FieldDescriptor,
    FileRecord,
    FunctionSignature,
    GraphAnalysis,
    ImportEdgeSpec,
    Language,
    ManifestInfo,
    ModuleDescriptor,
    Node,
    ParseStatus,
    Provenance,
    ProvenanceError,
    RouteRegistration,
    SourceSpan,
)

FORMAT_VERSION = 1
FORMATS = ("json", "yaml")


# ----------------------------------------------------------------------
# Encoding


def _span(span: Optional[SourceSpan]) -> Optional[Dict[str, int]]:
    if span is None:
        return None
    return {"start_line": span.start_line, "end_line": span.end_line}


def _function(function: FunctionSignature) -> Dict[str, Any]:
    return {
        "name": function.name,
        "parameters": list(function.parameters),
        "return_type": function.return_type,
        "span": _span(function.span),
        "is_async": function.is_async,
        "is_exported": function.is_exported,
        "is_static": function.is_static,
        "visibility": function.visibility,
        "decorators": list(function.decorators),
        "instantiates": list(function.instantiates),
    }


def _class(klass: ClassDescriptor) -> Dict[str, Any]:
    return {
        "name": klass.name,
        "superclass": klass.superclass,
        "methods": [_function(method) for method in klass.methods],
        "span": _span(klass.span),
        "bases": list(klass.bases),
        "fields": [
            {"name": item.name, "line": item.line, "is_static": item.is_static, "visibility": item.visibility}
            for item in klass.fields
        ],
        "decorators": list(klass.decorators),
        "is_exported": klass.is_exported,
        "is_abstract": klass.is_abstract,
    }


def module_to_document(module: ModuleDescriptor) -> Dict[str, Any]:
    return {
        "path": module.path,
        "language": module.language.value,
        "grammar": module.grammar,
        "functions": [_function(function) for function in module.functions],
        "classes": [_class(klass) for klass in module.classes],
        "imports": [
            {
                "target": spec.target,
                "symbols": list(spec.symbols),
                "span": _span(spec.span),
                "is_reexport": spec.is_reexport,
            }
            for spec in module.imports
        ],
        "exports": [
            {"name": spec.name, "span": _span(spec.span), "is_default": spec.is_default, "source": spec.source}
            for spec in module.exports
        ],
        "routes": [
            {
                "framework": route.framework,
                "method": route.method,
                "route": route.route,
                "span": _span(route.span),
                "handler": route.handler,
            }
            for route in module.routes
        ],
        "has_main_guard": module.has_main_guard,
    }


def graph_to_document(graph: DependencyGraph, analysis: Optional[GraphAnalysis] = None) -> Dict[str, Any]:
    """Nodes keyed by path; edge endpoints are written as node paths."""
    document: Dict[str, Any] = {
        "nodes": [{"index": node.index, "path": node.path, "language": node.language.value} for node in graph.nodes],
        "edges": [
            {
                "source": graph.node_id(edge.source),
                "target": graph.node_id(edge.target) if edge.target is not None else None,
                "kind": edge.kind.value,
                "specifier": edge.specifier,
                "line": edge.line,
                "package": edge.package,
            }
            for edge in graph.edges
        ],
    }
    if analysis is not None:
        document["cycles"] = [list(cycle.nodes) for cycle in analysis.cycles]
        document["depths"] = dict(sorted(analysis.depths.items()))
    return document


def concept_to_document(concept: Concept) -> Dict[str, Any]:
    return {
        "kind": concept.kind.value,
        "name": concept.name,
        "confidence": concept.confidence,
        "file": concept.file,
        "span": _span(concept.span),
        "evidence": dict(concept.evidence),
        "rule": concept.rule,
        "provenance": concept.provenance.value,
    }


def to_document(result: AnalysisResult) -> Dict[str, Any]:
    """Return the plain structured document for a run."""
    manifest = result.manifest
    return {
        "version": FORMAT_VERSION,
        "summary": result.summary(),
        "files": [
            {
                "path": record.path,
                "language": record.language.value,
                "size": record.size,
                "status": record.status.value,
                "failure_reason": record.failure_reason,
                "grammar": record.grammar,
                "role": record.role,
            }
            for record in result.files
        ],
        "modules": [module_to_document(module) for module in result.modules],
        "graph": graph_to_document(result.graph, result.analysis),
        "entry_points": [
            {
                "path": candidate.path,
                "score": candidate.score,
                "heuristics": list(candidate.heuristics),
                "evidence": list(candidate.evidence),
            }
            for candidate in result.entry_points
        ],
        "concepts": [concept_to_document(concept) for concept in result.concepts],
        "manifest": {
            "python_packages": dict(manifest.python_packages),
            "node_packages": dict(manifest.node_packages),
            "frameworks": list(manifest.frameworks),
            "entry_hints": [
                {"kind": hint.kind, "value": hint.value, "manifest": hint.manifest}
                for hint in manifest.entry_hints
            ],
            "manifests": list(manifest.manifests),
            "warnings": list(manifest.warnings),
            "degraded": manifest.degraded,
        },
        "warnings": list(result.warnings),
    }


# ----------------------------------------------------------------------
# Decoding


def _read_span(data: Optional[Mapping[str, Any]]) -> Optional[SourceSpan]:
    if data is None:
        return None
    return SourceSpan(start_line=int(data["start_line"]), end_line=int(data["end_line"]))


def _read_function(data: Mapping[str, Any]) -> FunctionSignature:
    return FunctionSignature(
        name=data["name"],
        parameters=tuple(data.get("parameters", ())),
        span=_read_span(data["span"]),  # type: ignore[arg-type]
        return_type=data.get("return_type"),
        is_async=bool(data.get("is_async", False)),
        is_exported=bool(data.get("is_exported", False)),
        is_static=bool(data.get("is_static", False)),
        visibility=data.get("visibility", "public"),
        decorators=tuple(data.get("decorators", ())),
        instantiates=tuple(data.get("instantiates", ())),
    )


def _read_class(data: Mapping[str, Any]) -> ClassDescriptor:
    return ClassDescriptor(
        name=data["name"],
        superclass=data.get("superclass"),
        methods=tuple(_read_function(item) for item in data.get("methods", ())),
        span=_read_span(data["span"]),  # type: ignore[arg-type]
        bases=tuple(data.get("bases", ())),
        fields=tuple(
            FieldDescriptor(
                name=item["name"],
                line=int(item["line"]),
                is_static=bool(item.get("is_static", False)),
                visibility=item.get("visibility", "public"),
            )
            for item in data.get("fields", ())
        ),
        decorators=tuple(data.get("decorators", ())),
        is_exported=bool(data.get("is_exported", False)),
        is_abstract=bool(data.get("is_abstract", False)),
    )


def module_from_document(data: Mapping[str, Any]) -> ModuleDescriptor:
    return ModuleDescriptor(
        path=data["path"],
        language=Language(data["language"]),
        grammar=data["grammar"],
        functions=tuple(_read_function(item) for item in data.get("functions", ())),
        classes=tuple(_read_class(item) for item in data.get("classes", ())),
        imports=tuple(
            ImportEdgeSpec(
                target=item["target"],
                symbols=tuple(item.get("symbols", ())),
                span=_read_span(item["span"]),  # type: ignore[arg-type]
                is_reexport=bool(item.get("is_reexport", False)),
            )
            for item in data.get("imports", ())
        ),
        exports=tuple(
            ExportSpec(
                name=item["name"],
                span=_read_span(item["span"]),  # type: ignore[arg-type]
                is_default=bool(item.get("is_default", False)),
                source=item.get("source"),
            )
            for item in data.get("exports", ())
        ),
        routes=tuple(
            RouteRegistration(
                framework=item["framework"],
                method=item["method"],
                route=item["route"],
                span=_read_span(item["span"]),  # type: ignore[arg-type]
                handler=item.get("handler"),
            )
            for item in data.get("routes", ())
        ),
        has_main_guard=bool(data.get("has_main_guard", False)),
    )


def graph_from_document(data: Mapping[str, Any]) -> Tuple[DependencyGraph, GraphAnalysis]:
    nodes = tuple(
        Node(index=position, path=item["path"], language=Language(item["language"]))
        for position, item in enumerate(data.get("nodes", ()))
    )
    index_by_path = {node.path: node.index for node in nodes}
    edges: List[Edge] = []
    for item in data.get("edges", ()):
        target = item.get("target")
        edges.append(
            Edge(
                source=index_by_path[item["source"]],
                kind=EdgeKind(item["kind"]),
                specifier=item["specifier"],
                line=int(item["line"]),
                target=index_by_path[target] if target is not None else None,
                package=item.get("package"),
            )
        )
    analysis = GraphAnalysis(
        cycles=tuple(Cycle(nodes=tuple(cycle)) for cycle in data.get("cycles", ())),
        depths={path: int(depth) for path, depth in dict(data.get("depths", {})).items()},
    )
    return DependencyGraph(nodes=nodes, edges=tuple(edges)), analysis


def concept_from_document(data: Mapping[str, Any]) -> Concept:
    provenance = data.get("provenance")
    if provenance != Provenance.FACT.value:
        raise ProvenanceError(
            f"concept {data.get('name')!r} in {data.get('file')!r} has provenance {provenance!r}, expected FACT"
        )
    return Concept(
        kind=ConceptKind(data["kind"]),
        name=data["name"],
        confidence=float(data["confidence"]),
        file=data["file"],
        span=_read_span(data.get("span")),
        evidence=dict(data.get("evidence", {})),
        rule=data["rule"],
    )


def require_facts(concepts: Iterable[Mapping[str, Any]]) -> int:
    """Reject any concept record not tagged FACT; return the number checked."""
    checked = 0
    for record in concepts:
        if not isinstance(record, Mapping) or record.get("provenance") != Provenance.FACT.value:
            name = record.get("name") if isinstance(record, Mapping) else record
            raise ProvenanceError(f"concept {name!r} is not tagged FACT")
        checked += 1
    return checked


def from_document(data: Mapping[str, Any]) -> AnalysisResult:
    if not isinstance(data, Mapping):
        raise ValueError("analysis document root must be a mapping")
    require_facts(data.get("concepts", ()))
    graph, analysis = graph_from_document(data.get("graph", {}))
    manifest_data = data.get("manifest", {}) or {}
    manifest = ManifestInfo(
        python_packages=dict(manifest_data.get("python_packages", {})),
        node_packages=dict(manifest_data.get("node_packages", {})),
        frameworks=list(manifest_data.get("frameworks", [])),
        entry_hints=[
            EntryHint(kind=item["kind"], value=item["value"], manifest=item["manifest"])
            for item in manifest_data.get("entry_hints", [])
        ],
        manifests=list(manifest_data.get("manifests", [])),
        warnings=list(manifest_data.get("warnings", [])),
        degraded=bool(manifest_data.get("degraded", False)),
    )
    return AnalysisResult(
        files=[
            FileRecord(
                path=item["path"],
                language=Language(item["language"]),
                size=int(item["size"]),
                status=ParseStatus(item["status"]),
                failure_reason=item.get("failure_reason"),
                grammar=item.get("grammar"),
                role=item.get("role", "src"),
            )
            for item in data.get("files", ())
        ],
        modules=[module_from_document(item) for item in data.get("modules", ())],
        graph=graph,
        analysis=analysis,
        entry_points=[
            EntryPointCandidate(
                path=item["path"],
                score=float(item["score"]),
                heuristics=tuple(item.get("heuristics", ())),
                evidence=tuple(item.get("evidence", ())),
            )
            for item in data.get("entry_points", ())
        ],
        concepts=[concept_from_document(item) for item in data.get("concepts", ())],
        manifest=manifest,
        warnings=list(data.get("warnings", [])),
    )


# ----------------------------------------------------------------------
# Text formats


def dump_document(document: Mapping[str, Any], fmt: str = "json") -> str:
    if fmt == "json":
        return json.dumps(document, indent=2, sort_keys=True) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(dict(document), sort_keys=True, default_flow_style=False, allow_unicode=True)
    raise ValueError(f"Unsupported output format: {fmt}")


def load_document(text: str, fmt: str = "json") -> Dict[str, Any]:
    if fmt == "json":
        data = json.loads(text)
    elif fmt == "yaml":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML ({exc})") from exc
    else:
        raise ValueError(f"Unsupported output format: {fmt}")
    if not isinstance(data, dict):
        raise ValueError("analysis document root must be a mapping")
    return data


def dumps(result: AnalysisResult, fmt: str = "json") -> str:
    return dump_document(to_document(result), fmt)


def loads(text: str, fmt: str = "json") -> AnalysisResult:
    return from_document(load_document(text, fmt))


__all__ = [
    "FORMATS",
    "concept_from_document",
    "concept_to_document",
    "dump_document",
    "dumps",
    "from_document",
    "graph_from_document",
    "graph_to_document",
    "load_document",
    "loads",
    "module_from_document",
    "module_to_document",
    "require_facts",
    "to_document",
]
