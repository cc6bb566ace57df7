"""Tests for codemodel.logging."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from codemodel.logging import configure_logging, get_logger, resolve_level


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_get_logger_is_namespaced() -> None:
    assert get_logger("pipeline").name == "codemodel.pipeline"
    assert get_logger().name == "codemodel"


def test_configure_logging_replaces_handlers_and_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "run.log"

    configure_logging(verbose=False)
    logger = configure_logging(verbose=True, log_file=log_file)
    get_logger("test").debug("hello from test")

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    for handler in logger.handlers:
        handler.flush()
    assert "hello from test" in log_file.read_text(encoding="utf-8")

    _reset(logger)


def test_log_file_keeps_debug_records_below_console_level(tmp_path: Path) -> None:
    log_file = tmp_path / "quiet.log"

    logger = configure_logging(level="warning", log_file=log_file)
    get_logger("pipeline").debug("normalizer detail")

    stream, file_handler = logger.handlers
    assert stream.level == logging.WARNING
    assert file_handler.level == logging.DEBUG
    file_handler.flush()
    assert "codemodel.pipeline" in log_file.read_text(encoding="utf-8")

    _reset(logger)


def test_resolve_level() -> None:
    assert resolve_level(None) == logging.INFO
    assert resolve_level("error") == logging.ERROR
    assert resolve_level("error", verbose=True) == logging.DEBUG
    with pytest.raises(ValueError):
        resolve_level("chatty")
