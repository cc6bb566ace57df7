"""Reference ingestion adapter: load a working tree into pipeline inputs."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from .config import CONFIG_FILENAME, ConfigError, load_config
from .logging import get_logger
from .manifests import is_manifest
from .models import SourceFile

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
    ".next",
    "dist",
    "build",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

DEFAULT_MAX_FILE_BYTES = 1024 * 1024

logger = get_logger("ingest")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .codemodel.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str, negate: bool = False) -> Optional[IgnoreRule]:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def parse_gitignore(text: str) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


@dataclass
class LoadedRepository:
    """Pipeline inputs read from a directory."""

    root: Path
    files: List[SourceFile] = field(default_factory=list)
    manifests: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)


class RepoLoader:
    """Walks a directory honoring built-in, .gitignore and configured exclusions."""

    def __init__(
        self,
        exclude_paths: Sequence[str] = (),
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    ) -> None:
        self.exclude_paths = list(exclude_paths)
        self.max_file_bytes = max_file_bytes

    def load(self, root: str | Path) -> LoadedRepository:
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        rules = self._load_ignore_rules(root_path)
        loaded = LoadedRepository(root=root_path)
        for path in _iter_files(root_path, rules):
            rel_path = path.relative_to(root_path).as_posix()
            size = path.stat().st_size
            if size > self.max_file_bytes:
                loaded.skipped.append(rel_path)
                logger.debug("Skipping %s (%d bytes exceeds limit)", rel_path, size)
                continue
            content = path.read_bytes()
            loaded.files.append(SourceFile(path=rel_path, content=content, size=len(content)))
            if is_manifest(rel_path):
                loaded.manifests[rel_path] = content.decode("utf-8", errors="replace")

        loaded.files.sort(key=lambda item: item.path)
        logger.info(
            "Loaded %d files (%d manifests) from %s",
            len(loaded.files),
            len(loaded.manifests),
            root_path,
        )
        return loaded

    def _load_ignore_rules(self, root: Path) -> List[IgnoreRule]:
        gitignore = root / ".gitignore"
        rules = parse_gitignore(gitignore.read_text(encoding="utf-8")) if gitignore.exists() else []
        patterns = list(self.exclude_paths)
        try:
            patterns.extend(load_config(root / CONFIG_FILENAME).analysis.exclude_paths)
        except ConfigError as exc:
            logger.warning("Ignoring exclude_paths from %s: %s", CONFIG_FILENAME, exc)
        for pattern in patterns:
            rule = build_ignore_rule(pattern)
            if rule is not None:
                rules.append(rule)
        return rules


def _iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if should_ignore(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if should_ignore(rel_path, False, rules):
                continue
            candidate = current_dir / filename
            if candidate.is_symlink() or not candidate.is_file():
                continue
            yield candidate


__all__ = [
    "IgnoreRule",
    "LoadedRepository",
    "RepoLoader",
    "build_ignore_rule",
    "parse_gitignore",
    "should_ignore",
]
