"""Logger hierarchy and handler setup for codemodel runs."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "codemodel"
_STREAM_FORMAT = "[codemodel] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a stage logger such as ``codemodel.pipeline``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def resolve_level(name: str | None, *, verbose: bool = False) -> int:
    """Map a configured level name to a logging constant; ``verbose`` wins."""
    if verbose:
        return logging.DEBUG
    if name is None:
        return logging.INFO
    upper = name.upper()
    if upper not in LEVELS:
        raise ValueError(f"unknown log level {name!r}; expected one of {', '.join(LEVELS)}")
    return getattr(logging, upper)


def configure_logging(
    *,
    verbose: bool = False,
    level: str | None = None,
    log_file: Path | None = None,
) -> logging.Logger:
    """Install console and optional file handlers on the ``codemodel`` logger.

    The console follows ``level`` (or DEBUG when ``verbose``). A log file always
    receives DEBUG records so per-file normalization failures stay inspectable
    after a quiet run. Repeated calls replace the previous handlers.
    """
    console_level = resolve_level(level, verbose=verbose)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else console_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(console_level)
    stream_handler.setFormatter(logging.Formatter(_STREAM_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["LEVELS", "configure_logging", "get_logger", "resolve_level"]
