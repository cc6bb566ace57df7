"""Pipeline orchestration: classify, normalize in parallel, then analyze."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .classifier import FileClassifier
from .concepts import ConceptExtractor, discover_rules
from .config import DEFAULT_MAX_WORKERS, CodeModelConfig
from .entrypoints import EntryPointRanker
from .graph import CycleDepthAnalyzer, DependencyGraphBuilder, external_packages
from .logging import get_logger
from .manifests import ManifestReader
from .models import (
    AnalysisResult,
    ContractViolation,
    DependencyGraph,
    FileRecord,
    GraphAnalysis,
    Language,
    ManifestInfo,
    ModuleDescriptor,
    PipelineError,
    SourceFile,
)
from .normalizers import FileOutcome, normalize_file
from .parsing import SyntaxParser

TIMEOUT_REASON = "timeout"

logger = get_logger("pipeline")


class AnalysisPipeline:
    """Runs one analysis over an in-memory set of source files."""

    def __init__(
        self,
        *,
        time_budget: Optional[float] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        rules: Optional[Sequence[str]] = None,
        entry_weights: Optional[Mapping[str, float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if time_budget is not None and time_budget < 0:
            raise ValueError("time_budget must be non-negative")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.time_budget = time_budget
        self.max_workers = max_workers
        self.classifier = FileClassifier()
        self.manifest_reader = ManifestReader()
        self.graph_builder = DependencyGraphBuilder()
        self.graph_analyzer = CycleDepthAnalyzer()
        self.ranker = EntryPointRanker(entry_weights)
        self.extractor = ConceptExtractor(discover_rules(rules))
        self._clock = clock

    @classmethod
    def from_config(cls, config: CodeModelConfig) -> "AnalysisPipeline":
        return cls(
            time_budget=config.analysis.time_budget,
            max_workers=config.analysis.max_workers,
            rules=config.rules.enabled,
            entry_weights=config.entrypoints.weights,
        )

    def run(
        self,
        files: Sequence[SourceFile],
        manifests: Optional[Mapping[str, str]] = None,
    ) -> AnalysisResult:
        """Analyze ``files``; contract violations propagate, data problems do not."""
        started = self._clock()
        deadline = started + self.time_budget if self.time_budget is not None else None

        records = self.classifier.classify(files)
        manifest = self.manifest_reader.read(manifests if manifests is not None else {})
        contents = {item.path: item.content for item in files}

        pending = [record for record in records if record.language is not Language.UNKNOWN]
        outcomes = self._normalize_all(pending, contents, deadline)

        modules: List[ModuleDescriptor] = []
        timed_out = 0
        for record in pending:
            outcome = outcomes.get(record.path)
            if outcome is None:
                record.mark_failed(TIMEOUT_REASON)
                timed_out += 1
            elif outcome.descriptor is not None:
                record.mark_parsed()
                modules.append(outcome.descriptor)
            else:
                record.mark_failed(outcome.reason or "unknown failure")
        modules.sort(key=lambda module: module.path)

        warnings = list(manifest.warnings)
        if timed_out:
            warnings.append(f"time budget exhausted: {timed_out} file(s) not normalized")
            logger.warning("Time budget exhausted: %d file(s) not normalized", timed_out)
        failed = sum(1 for record in pending if record.failure_reason is not None)
        logger.info(
            "Normalized %d of %d source files (%d failed, %d unknown)",
            len(modules),
            len(pending),
            failed,
            len(records) - len(pending),
        )

        try:
            graph = self.graph_builder.build(modules, external_packages(manifest))
            analysis = self.graph_analyzer.analyze(graph)
            entry_points = self.ranker.rank(graph, modules, manifest)
            concepts = self.extractor.extract(modules, graph, analysis, manifest)
        except ContractViolation:
            raise
        except Exception as exc:
            partial = _partial_result(records, modules, manifest, warnings)
            raise PipelineError(f"analysis failed after normalization: {exc}", partial) from exc

        logger.debug("Pipeline finished in %.3fs", self._clock() - started)
        return AnalysisResult(
            files=records,
            modules=modules,
            graph=graph,
            analysis=analysis,
            entry_points=entry_points,
            concepts=concepts,
            manifest=manifest,
            warnings=warnings,
        )

    def _normalize_all(
        self,
        records: Sequence[FileRecord],
        contents: Mapping[str, bytes],
        deadline: Optional[float],
    ) -> Dict[str, FileOutcome]:
        """Fan out per-file normalization and wait at a single barrier.

        Outcomes are returned, not applied; records are only touched by the
        calling thread. When the budget expires, queued files are cancelled and
        no further file starts; a file already inside the parser cannot be
        interrupted, so interpreter exit may still wait for at most one file
        per worker. Its outcome is discarded.
        """
        if not records:
            return {}

        parser = SyntaxParser()
        expired = threading.Event()
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="codemodel")
        futures: Dict[Future[FileOutcome], str] = {}
        try:
            for record in records:
                future = executor.submit(_normalize_in_budget, expired, record, contents[record.path], parser)
                futures[future] = record.path
            remaining = None if deadline is None else max(0.0, deadline - self._clock())
            done, not_done = wait(futures, timeout=remaining)
            if not_done:
                expired.set()
            for future in not_done:
                future.cancel()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if not_done:
            logger.debug("Abandoning %d unfinished normalization task(s)", len(not_done))
        return {futures[future]: future.result() for future in done}


def _normalize_in_budget(
    expired: threading.Event, record: FileRecord, content: bytes, parser: SyntaxParser
) -> FileOutcome:
    if expired.is_set():
        return FileOutcome(path=record.path, reason=TIMEOUT_REASON)
    return normalize_file(record, content, parser)


def _partial_result(
    records: List[FileRecord],
    modules: List[ModuleDescriptor],
    manifest: ManifestInfo,
    warnings: List[str],
) -> AnalysisResult:
    return AnalysisResult(
        files=records,
        modules=modules,
        graph=DependencyGraph(nodes=(), edges=()),
        analysis=GraphAnalysis(cycles=(), depths={}),
        entry_points=[],
        concepts=[],
        manifest=manifest,
        warnings=warnings,
    )


__all__ = ["AnalysisPipeline", "TIMEOUT_REASON"]
