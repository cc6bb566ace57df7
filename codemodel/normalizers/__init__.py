"""Language normalizers and the per-file normalization boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from ..logging import get_logger
from ..models import FileRecord, Language, ModuleDescriptor
from ..parsing import ParseFailure, SyntaxParser
from .base import Normalizer
from .javascript import JavaScriptNormalizer
from .python import PythonNormalizer

logger = get_logger("normalizers")

_REGISTRY: Dict[Language, Normalizer] = {
    Language.PY_LIKE: PythonNormalizer(),
    Language.JS_LIKE: JavaScriptNormalizer(),
}


@dataclass(frozen=True)
class FileOutcome:
    """Result of normalizing one file: a descriptor or a failure reason."""

    path: str
    descriptor: Optional[ModuleDescriptor] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.descriptor is not None


def normalizer_for(language: Language) -> Optional[Normalizer]:
    return _REGISTRY.get(language)


def normalize_file(
    record: FileRecord, content: bytes, parser: Optional[SyntaxParser] = None
) -> FileOutcome:
    """Parse and normalize a single file.

    Data problems (syntax errors, undecodable bytes, normalizer crashes) are
    reported through the returned outcome instead of being raised.
    """

    normalizer = normalizer_for(record.language)
    if normalizer is None or record.grammar is None:
        return FileOutcome(path=record.path, reason=f"unsupported language {record.language.value}")

    parser = parser or SyntaxParser()
    try:
        parsed = parser.parse(record.grammar, content)
        descriptor = normalizer.normalize(record.path, parsed)
    except ParseFailure as exc:
        logger.debug("Parse failure in %s: %s", record.path, exc.reason)
        return FileOutcome(path=record.path, reason=exc.reason)
    except Exception as exc:
        logger.debug("Normalizer error in %s", record.path, exc_info=True)
        return FileOutcome(path=record.path, reason=f"normalizer error: {type(exc).__name__}")
    return FileOutcome(path=record.path, descriptor=descriptor)


__all__ = [
    "FileOutcome",
    "JavaScriptNormalizer",
    "Normalizer",
    "PythonNormalizer",
    "normalize_file",
    "normalizer_for",
]
