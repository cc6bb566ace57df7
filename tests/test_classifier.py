"""Tests for codemodel.classifier."""

from __future__ import annotations

import pytest

from codemodel.classifier import FileClassifier, detect_language, detect_role
from codemodel.models import ContractViolation, Language, ParseStatus, SourceFile
from tests._fixtures.repo_builder import source_files


def test_classify_tags_language_grammar_and_role() -> None:
    files = source_files(
        {
            "src/app.py": "print('hi')\n",
            "web/App.tsx": "export const x = 1;\n",
            "lib/util.mjs": "export default 1;\n",
            "tests/test_app.py": "def test_ok():\n    assert True\n",
            "README.md": "# Readme\n",
        }
    )

    records = {record.path: record for record in FileClassifier().classify(files)}

    assert records["src/app.py"].language is Language.PY_LIKE
    assert records["src/app.py"].grammar == "python"
    assert records["web/App.tsx"].grammar == "tsx"
    assert records["lib/util.mjs"].language is Language.JS_LIKE
    assert records["tests/test_app.py"].role == "test"
    assert records["README.md"].language is Language.UNKNOWN
    assert records["README.md"].grammar is None
    assert all(record.status is ParseStatus.PENDING for record in records.values())


def test_classify_orders_records_by_path() -> None:
    files = source_files({"b.py": "", "a.py": "", "c/d.js": ""})
    paths = [record.path for record in FileClassifier().classify(files)]
    assert paths == ["a.py", "b.py", "c/d.js"]


def test_detect_language_handles_extensionless_names() -> None:
    assert detect_language("Makefile") == (Language.UNKNOWN, None)
    assert detect_language("types.d.ts") == (Language.JS_LIKE, "typescript")


def test_detect_role_uses_directories_and_filenames() -> None:
    assert detect_role("docs/guide/intro.py") == "docs"
    assert detect_role("src/widget.spec.ts") == "test"
    assert detect_role("src/widget.ts") == "src"


@pytest.mark.parametrize(
    "files",
    [
        [SourceFile(path="/abs.py", content=b"", size=0)],
        [SourceFile(path="a/../b.py", content=b"", size=0)],
        [SourceFile(path="a.py", content=b"x", size=5)],
        [SourceFile(path="a.py", content=b"", size=0), SourceFile(path="a.py", content=b"", size=0)],
        ["a.py"],
    ],
)
def test_malformed_inputs_are_contract_violations(files: list) -> None:
    with pytest.raises(ContractViolation):
        FileClassifier().classify(files)


def test_non_sequence_input_is_rejected() -> None:
    generator = (item for item in source_files({"a.py": ""}))
    with pytest.raises(ContractViolation):
        FileClassifier().classify(generator)  # type: ignore[arg-type]
