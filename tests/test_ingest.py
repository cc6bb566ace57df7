"""Tests for codemodel.ingest."""

from __future__ import annotations

from pathlib import Path

import pytest

from codemodel.ingest import RepoLoader, parse_gitignore, should_ignore
from tests._fixtures.repo_builder import RepoBuilder


def test_load_collects_files_and_manifests(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/app.py": "print('hi')\n",
            "web/index.js": "console.log('hi');\n",
            "package.json": '{"name": "web"}\n',
            "requirements.txt": "flask\n",
            "node_modules/left-pad/index.js": "module.exports = 1;\n",
            ".venv/lib/site.py": "x = 1\n",
        }
    )

    loaded = repo_builder.load()

    paths = [item.path for item in loaded.files]
    assert paths == ["package.json", "requirements.txt", "src/app.py", "web/index.js"]
    assert sorted(loaded.manifests) == ["package.json", "requirements.txt"]
    assert loaded.manifests["requirements.txt"] == "flask\n"
    app = next(item for item in loaded.files if item.path == "src/app.py")
    assert app.content == b"print('hi')\n"
    assert app.size == len(app.content)


def test_gitignore_and_configured_exclusions(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".gitignore": "generated/\n*.log\n!keep.log\n",
            ".codemodel.yml": "analysis:\n  exclude_paths:\n    - fixtures/\n",
            "generated/out.js": "x\n",
            "fixtures/sample.py": "x = 1\n",
            "debug.log": "noise\n",
            "keep.log": "keep\n",
            "main.py": "x = 1\n",
        }
    )

    paths = {item.path for item in repo_builder.load().files}

    assert "generated/out.js" not in paths
    assert "fixtures/sample.py" not in paths
    assert "debug.log" not in paths
    assert {"keep.log", "main.py", ".gitignore", ".codemodel.yml"} <= paths


def test_oversized_files_are_skipped(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"big.js": "x" * 64, "small.js": "y\n"})

    loaded = RepoLoader(max_file_bytes=16).load(repo_builder.path())

    assert [item.path for item in loaded.files] == ["small.js"]
    assert loaded.skipped == ["big.js"]


def test_load_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    with pytest.raises(FileNotFoundError) as excinfo:
        RepoLoader().load(missing)
    assert str(missing) in str(excinfo.value)


def test_load_rejects_file_path(tmp_path: Path) -> None:
    target = tmp_path / "file.py"
    target.write_text("x = 1\n", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        RepoLoader().load(target)


def test_ignore_rules_last_match_wins() -> None:
    rules = parse_gitignore("# comment\nbuild/\n*.tmp\n!important.tmp\n/root-only.txt\n")

    assert should_ignore("build", True, rules)
    assert should_ignore("pkg/cache.tmp", False, rules)
    assert not should_ignore("important.tmp", False, rules)
    assert should_ignore("root-only.txt", False, rules)
    assert not should_ignore("src/main.py", False, rules)
