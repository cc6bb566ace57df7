"""Helper utilities for constructing temporary repositories in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Dict, List, Mapping

from codemodel.ingest import LoadedRepository, RepoLoader
from codemodel.models import SourceFile


def source_file(path: str, content: str) -> SourceFile:
    """Build an in-memory input file from dedented text."""
    data = textwrap.dedent(content).lstrip("\n").encode("utf-8")
    return SourceFile(path=path, content=data, size=len(data))


def source_files(files: Mapping[str, str]) -> List[SourceFile]:
    return [source_file(path, content) for path, content in files.items()]


class RepoBuilder:
    """Utility for writing files into a throwaway repository and reloading it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()
        self._loader = RepoLoader()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the repository."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def load(self) -> LoadedRepository:
        """Return fresh pipeline inputs for the repository contents."""
        return self._loader.load(self.root)

    def manifests(self) -> Dict[str, str]:
        return self.load().manifests

    def path(self) -> Path:
        """Return the repository root path."""
        return self.root


__all__ = ["RepoBuilder", "source_file", "source_files"]
