from __future__ import annotations

from pathlib import Path

import pytest

from codemodel.pipeline import AnalysisPipeline
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def pipeline() -> AnalysisPipeline:
    """A pipeline with a small worker pool and no time budget."""
    return AnalysisPipeline(max_workers=2)
