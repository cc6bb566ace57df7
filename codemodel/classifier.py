"""File classification by extension and path role."""

from __future__ import annotations

from typing import List, Optional, Sequence, Set, Tuple

from .logging import get_logger
from .models import ContractViolation, FileRecord, Language, SourceFile

_LANGUAGE_BY_SUFFIX: dict[str, tuple[Language, str]] = {
    ".py": (Language.PY_LIKE, "python"),
    ".pyi": (Language.PY_LIKE, "python"),
    ".js": (Language.JS_LIKE, "javascript"),
    ".jsx": (Language.JS_LIKE, "javascript"),
    ".mjs": (Language.JS_LIKE, "javascript"),
    ".cjs": (Language.JS_LIKE, "javascript"),
    ".ts": (Language.JS_LIKE, "typescript"),
    ".mts": (Language.JS_LIKE, "typescript"),
    ".cts": (Language.JS_LIKE, "typescript"),
    ".tsx": (Language.JS_LIKE, "tsx"),
}

_ROLE_RULES: tuple[tuple[str, str], ...] = (
    ("tests", "test"),
    ("test", "test"),
    ("__tests__", "test"),
    ("docs", "docs"),
    ("doc", "docs"),
    ("examples", "examples"),
    ("example", "examples"),
    ("config", "config"),
    ("infra", "infra"),
)

logger = get_logger("classifier")


def detect_language(path: str) -> Tuple[Language, Optional[str]]:
    """Return the language family and grammar name for ``path``."""
    name = path.rsplit("/", 1)[-1].lower()
    if "." not in name:
        return Language.UNKNOWN, None
    suffix = name[name.rfind(".") :]
    return _LANGUAGE_BY_SUFFIX.get(suffix, (Language.UNKNOWN, None))


def detect_role(relative_path: str) -> str:
    parts = relative_path.split("/")
    directories = parts[:-1]
    for segment, role in _ROLE_RULES:
        if segment in directories:
            return role
    filename = parts[-1].lower()
    if filename.startswith("test_") or ".test." in filename or ".spec." in filename:
        return "test"
    if filename.endswith((".md", ".rst")):
        return "docs"
    return "src"


def validate_inputs(files: Sequence[SourceFile]) -> None:
    """Reject malformed collaborator input; these are contract failures, not data issues."""
    if isinstance(files, (str, bytes)) or not isinstance(files, Sequence):
        raise ContractViolation("files must be a sequence of SourceFile entries")
    seen: Set[str] = set()
    for position, item in enumerate(files):
        if not isinstance(item, SourceFile):
            raise ContractViolation(f"files[{position}] is {type(item).__name__}, expected SourceFile")
        path = item.path
        if not isinstance(path, str) or not path:
            raise ContractViolation(f"files[{position}] has an empty or non-string path")
        if path.startswith("/") or "\\" in path:
            raise ContractViolation(f"{path!r} must be a relative POSIX path")
        if any(part in {"", ".", ".."} for part in path.split("/")):
            raise ContractViolation(f"{path!r} contains empty, '.' or '..' segments")
        if path in seen:
            raise ContractViolation(f"duplicate path {path!r}")
        seen.add(path)
        if not isinstance(item.content, (bytes, bytearray)):
            raise ContractViolation(f"{path}: content must be bytes")
        if isinstance(item.size, bool) or not isinstance(item.size, int) or item.size < 0:
            raise ContractViolation(f"{path}: size must be a non-negative integer")
        if item.size != len(item.content):
            raise ContractViolation(
                f"{path}: declared size {item.size} does not match content length {len(item.content)}"
            )


class FileClassifier:
    """Tags each input file with a language family, grammar and role."""

    def classify(self, files: Sequence[SourceFile]) -> List[FileRecord]:
        validate_inputs(files)
        records: List[FileRecord] = []
        for item in sorted(files, key=lambda entry: entry.path):
            language, grammar = detect_language(item.path)
            records.append(
                FileRecord(
                    path=item.path,
                    language=language,
                    size=item.size,
                    grammar=grammar,
                    role=detect_role(item.path),
                )
            )
        recognised = sum(1 for record in records if record.language is not Language.UNKNOWN)
        logger.debug("Classified %d files (%d recognised)", len(records), recognised)
        return records


__all__ = ["FileClassifier", "detect_language", "detect_role", "validate_inputs"]
