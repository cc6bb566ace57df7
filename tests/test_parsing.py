"""Tests for codemodel.parsing and the per-file normalization boundary."""

from __future__ import annotations

import pytest

from codemodel.models import FileRecord, Language
from codemodel.normalizers import normalize_file, normalizer_for
from codemodel.parsing import ParseFailure, SyntaxParser


def test_parse_returns_tree_for_valid_source() -> None:
    parsed = SyntaxParser().parse("python", b"def main():\n    return 1\n")
    assert parsed.grammar == "python"
    assert parsed.root.type == "module"
    assert not parsed.root.has_error


def test_syntax_error_reports_line() -> None:
    with pytest.raises(ParseFailure) as excinfo:
        SyntaxParser().parse("python", b"x = 1\ndef broken(:\n    pass\n")
    assert "line 2" in excinfo.value.reason


def test_invalid_utf8_is_a_parse_failure() -> None:
    with pytest.raises(ParseFailure) as excinfo:
        SyntaxParser().parse("javascript", b"const x = '\xff\xfe';\n")
    assert "UTF-8" in excinfo.value.reason


def test_unknown_grammar_is_rejected() -> None:
    with pytest.raises(ParseFailure):
        SyntaxParser().parse("cobol", b"")


def test_normalize_file_isolates_failures() -> None:
    record = FileRecord(path="bad.js", language=Language.JS_LIKE, size=10, grammar="javascript")
    outcome = normalize_file(record, b"function (\n")

    assert not outcome.ok
    assert outcome.descriptor is None
    assert outcome.reason is not None
    assert outcome.reason.startswith(("syntax error", "missing token"))


def test_normalize_file_reports_unsupported_language() -> None:
    record = FileRecord(path="notes.txt", language=Language.UNKNOWN, size=0)
    outcome = normalize_file(record, b"")
    assert outcome.reason == "unsupported language Unknown"
    assert normalizer_for(Language.UNKNOWN) is None


def test_normalize_file_wraps_normalizer_crashes(monkeypatch: pytest.MonkeyPatch) -> None:
    normalizer = normalizer_for(Language.PY_LIKE)

    def _explode(path: str, parsed: object) -> None:
        raise KeyError("boom")

    monkeypatch.setattr(normalizer, "normalize", _explode)
    record = FileRecord(path="a.py", language=Language.PY_LIKE, size=2, grammar="python")

    outcome = normalize_file(record, b"x\n")

    assert outcome.reason == "normalizer error: KeyError"
