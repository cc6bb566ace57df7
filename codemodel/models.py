"""Core data models shared across codemodel components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Dict, List, Mapping, Optional, Tuple, Union


class ContractViolation(RuntimeError):
    """Raised when a collaborator hands the pipeline a malformed input shape."""


class StateTransitionError(ContractViolation):
    """Raised when a file record is transitioned out of a terminal state."""


class ProvenanceError(ValueError):
    """Raised when a record that must be a FACT carries any other provenance."""


class PipelineError(RuntimeError):
    """Raised when a post-freeze stage fails; carries the partial result."""

    def __init__(self, message: str, partial: "AnalysisResult") -> None:
        super().__init__(message)
        self.partial = partial


class Language(str, Enum):
    JS_LIKE = "JsLike"
    PY_LIKE = "PyLike"
    UNKNOWN = "Unknown"


class ParseStatus(str, Enum):
    PENDING = "Pending"
    PARSED = "Parsed"
    FAILED = "Failed"


class EdgeKind(str, Enum):
    INTERNAL = "Internal"
    EXTERNAL = "External"
    UNRESOLVED = "Unresolved"


class ConceptKind(str, Enum):
    DESIGN_PATTERN = "DesignPattern"
    ARCHITECTURAL_PATTERN = "ArchitecturalPattern"
    FRAMEWORK_PATTERN = "FrameworkPattern"


class Provenance(str, Enum):
    """Origin of a record. The core only ever produces ``FACT``."""

    FACT = "FACT"


@dataclass(frozen=True)
class SourceFile:
    """One in-scope file handed over by the ingestion collaborator."""

    path: str
    content: bytes
    size: int


@dataclass
class FileRecord:
    """Classification and parse status for a single input file."""

    path: str
    language: Language
    size: int
    status: ParseStatus = ParseStatus.PENDING
    failure_reason: Optional[str] = None
    grammar: Optional[str] = None
    role: str = "src"

    def mark_parsed(self) -> None:
        self._transition(ParseStatus.PARSED, None)

    def mark_failed(self, reason: str) -> None:
        self._transition(ParseStatus.FAILED, reason)

    def _transition(self, status: ParseStatus, reason: Optional[str]) -> None:
        if self.status is not ParseStatus.PENDING:
            raise StateTransitionError(
                f"{self.path}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.failure_reason = reason


@dataclass(frozen=True)
class SourceSpan:
    start_line: int
    end_line: int


@dataclass(frozen=True)
class FunctionSignature:
    """Normalized view of a function, method or arrow function."""

    name: str
    parameters: Tuple[str, ...]
    span: SourceSpan
    return_type: Optional[str] = None
    is_async: bool = False
    is_exported: bool = False
    is_static: bool = False
    visibility: str = "public"
    decorators: Tuple[str, ...] = ()
    instantiates: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    line: int
    is_static: bool = False
    visibility: str = "public"


@dataclass(frozen=True)
class ClassDescriptor:
    """Normalized view of a class declaration."""

    name: str
    superclass: Optional[str]
    methods: Tuple[FunctionSignature, ...]
    span: SourceSpan
    bases: Tuple[str, ...] = ()
    fields: Tuple[FieldDescriptor, ...] = ()
    decorators: Tuple[str, ...] = ()
    is_exported: bool = False
    is_abstract: bool = False

    def method(self, name: str) -> Optional[FunctionSignature]:
        for method in self.methods:
            if method.name == name:
                return method
        return None


@dataclass(frozen=True)
class ImportEdgeSpec:
    """Raw import statement, unresolved until the graph builder runs."""

    target: str
    symbols: Tuple[str, ...]
    span: SourceSpan
    is_reexport: bool = False


@dataclass(frozen=True)
class ExportSpec:
    name: str
    span: SourceSpan
    is_default: bool = False
    source: Optional[str] = None


@dataclass(frozen=True)
class RouteRegistration:
    """Framework route/handler registration found inside a module."""

    framework: str
    method: str
    route: str
    span: SourceSpan
    handler: Optional[str] = None


@dataclass(frozen=True)
class ModuleDescriptor:
    """Language-agnostic structural summary of one parsed source file."""

    path: str
    language: Language
    grammar: str
    functions: Tuple[FunctionSignature, ...] = ()
    classes: Tuple[ClassDescriptor, ...] = ()
    imports: Tuple[ImportEdgeSpec, ...] = ()
    exports: Tuple[ExportSpec, ...] = ()
    routes: Tuple[RouteRegistration, ...] = ()
    has_main_guard: bool = False

    @property
    def directory_segments(self) -> Tuple[str, ...]:
        return tuple(self.path.split("/")[:-1])

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class Node:
    index: int
    path: str
    language: Language


@dataclass(frozen=True)
class Edge:
    """Import relationship; ``target`` is set for Internal edges only."""

    source: int
    kind: EdgeKind
    specifier: str
    line: int
    target: Optional[int] = None
    package: Optional[str] = None


@dataclass(frozen=True)
class DependencyGraph:
    """Frozen module graph stored as a node arena plus index-pair edges."""

    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]

    @cached_property
    def _index_by_path(self) -> Dict[str, int]:
        return {node.path: node.index for node in self.nodes}

    @cached_property
    def successors(self) -> Tuple[Tuple[int, ...], ...]:
        """Internal successor indices per node, in edge order, multiplicity kept."""
        table: List[List[int]] = [[] for _ in self.nodes]
        for edge in self.internal_edges:
            table[edge.source].append(edge.target)  # type: ignore[arg-type]
        return tuple(tuple(items) for items in table)

    @cached_property
    def predecessors(self) -> Tuple[Tuple[int, ...], ...]:
        table: List[List[int]] = [[] for _ in self.nodes]
        for edge in self.internal_edges:
            table[edge.target].append(edge.source)  # type: ignore[index]
        return tuple(tuple(items) for items in table)

    @cached_property
    def internal_edges(self) -> Tuple[Edge, ...]:
        return tuple(edge for edge in self.edges if edge.kind is EdgeKind.INTERNAL)

    def index_of(self, path: str) -> Optional[int]:
        return self._index_by_path.get(path)

    def node_id(self, index: int) -> str:
        return self.nodes[index].path

    def in_degree(self, index: int) -> int:
        return len(self.predecessors[index])

    def out_degree(self, index: int) -> int:
        return len(self.successors[index])

    def edges_from(self, index: int) -> Tuple[Edge, ...]:
        return tuple(edge for edge in self.edges if edge.source == index)


@dataclass(frozen=True)
class Cycle:
    """Closed walk over node paths; the first and last entries are equal."""

    nodes: Tuple[str, ...]

    @property
    def members(self) -> Tuple[str, ...]:
        return self.nodes[:-1]


@dataclass(frozen=True)
class GraphAnalysis:
    cycles: Tuple[Cycle, ...]
    depths: Mapping[str, int]


@dataclass(frozen=True)
class EntryPointCandidate:
    path: str
    score: float
    heuristics: Tuple[str, ...]
    evidence: Tuple[str, ...]


EvidenceValue = Union[bool, int, float, str]


@dataclass(frozen=True)
class Concept:
    """Detected pattern instance. Provenance is fixed and not a constructor argument."""

    kind: ConceptKind
    name: str
    confidence: float
    file: str
    span: Optional[SourceSpan]
    evidence: Mapping[str, EvidenceValue]
    rule: str
    provenance: Provenance = field(default=Provenance.FACT, init=False)


@dataclass(frozen=True)
class EntryHint:
    """Entry reference declared by a manifest (``path`` or dotted ``module``)."""

    kind: str
    value: str
    manifest: str


@dataclass
class ManifestInfo:
    """Dependencies and framework tags read from manifest files."""

    python_packages: Dict[str, str] = field(default_factory=dict)
    node_packages: Dict[str, str] = field(default_factory=dict)
    frameworks: List[str] = field(default_factory=list)
    entry_hints: List[EntryHint] = field(default_factory=list)
    manifests: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    degraded: bool = False

    def packages_for(self, language: Language) -> Dict[str, str]:
        if language is Language.PY_LIKE:
            return self.python_packages
        if language is Language.JS_LIKE:
            return self.node_packages
        return {}


@dataclass
class AnalysisResult:
    """Everything a pipeline run hands to downstream collaborators."""

    files: List[FileRecord]
    modules: List[ModuleDescriptor]
    graph: DependencyGraph
    analysis: GraphAnalysis
    entry_points: List[EntryPointCandidate]
    concepts: List[Concept]
    manifest: ManifestInfo
    warnings: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, object]:
        """Language distribution and parse outcome counts."""
        languages: Dict[str, int] = {}
        statuses: Dict[str, int] = {}
        for record in self.files:
            languages[record.language.value] = languages.get(record.language.value, 0) + 1
            statuses[record.status.value] = statuses.get(record.status.value, 0) + 1
        return {
            "languages": dict(sorted(languages.items())),
            "statuses": dict(sorted(statuses.items())),
            "failed": [
                {"path": record.path, "reason": record.failure_reason}
                for record in self.files
                if record.status is ParseStatus.FAILED
            ],
        }
