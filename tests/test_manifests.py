"""Tests for codemodel.manifests."""

from __future__ import annotations

import json

import pytest

from codemodel.manifests import ManifestReader, is_manifest
from codemodel.models import ContractViolation, EntryHint


def test_package_json_dependencies_frameworks_and_entries() -> None:
    text = json.dumps(
        {
            "name": "web",
            "main": "./dist/server.js",
            "bin": {"web": "bin/cli.js"},
            "dependencies": {"express": "^4.18.0", "react": "18.2.0"},
            "devDependencies": {"jest": "^29.0.0"},
        }
    )

    info = ManifestReader().read({"apps/web/package.json": text})

    assert info.node_packages == {"express": "^4.18.0", "react": "18.2.0", "jest": "^29.0.0"}
    assert info.frameworks == ["Express", "React"]
    assert info.entry_hints == [
        EntryHint(kind="path", value="apps/web/dist/server.js", manifest="apps/web/package.json"),
        EntryHint(kind="path", value="apps/web/bin/cli.js", manifest="apps/web/package.json"),
    ]
    assert info.degraded is False


def test_pyproject_and_requirements_are_merged() -> None:
    pyproject = """
[project]
name = "svc"
dependencies = ["fastapi>=0.110", "pydantic[email]>=2"]

[project.optional-dependencies]
test = ["pytest>=8"]

[project.scripts]
svc = "svc.cli:main"
"""
    requirements = "# pinned\nrequests==2.31.0\n-r base.txt\nuvicorn[standard]>=0.29 ; python_version > '3.8'\n"

    info = ManifestReader().read({"pyproject.toml": pyproject, "requirements.txt": requirements})

    assert info.python_packages["fastapi"] == ">=0.110"
    assert info.python_packages["pydantic"] == ">=2"
    assert info.python_packages["pytest"] == ">=8"
    assert info.python_packages["requests"] == "==2.31.0"
    assert info.python_packages["uvicorn"] == ">=0.29"
    assert info.frameworks == ["FastAPI", "Pydantic"]
    assert info.entry_hints == [EntryHint(kind="module", value="svc.cli", manifest="pyproject.toml")]
    assert info.manifests == ["pyproject.toml", "requirements.txt"]


def test_malformed_manifest_degrades_without_raising() -> None:
    info = ManifestReader().read({"package.json": "{not json", "requirements.txt": "flask\n"})

    assert info.degraded is True
    assert len(info.warnings) == 1
    assert info.warnings[0].startswith("package.json: invalid JSON")
    assert info.python_packages == {"flask": "*"}
    assert info.frameworks == ["Flask"]


def test_unrecognised_paths_are_skipped() -> None:
    info = ManifestReader().read({"notes.txt": "flask\n"})
    assert info.manifests == []
    assert info.python_packages == {}


def test_non_mapping_input_is_a_contract_violation() -> None:
    with pytest.raises(ContractViolation):
        ManifestReader().read(["package.json"])  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "path, expected",
    [
        ("package.json", True),
        ("svc/pyproject.toml", True),
        ("requirements-dev.txt", True),
        ("requirements/base.txt", True),
        ("Pipfile", True),
        ("setup.cfg", False),
        ("docs/requirements.md", False),
    ],
)
def test_is_manifest(path: str, expected: bool) -> None:
    assert is_manifest(path) is expected
