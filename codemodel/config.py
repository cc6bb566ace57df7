"""Configuration loading for codemodel (.codemodel.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .logging import LEVELS

CONFIG_FILENAME = ".codemodel.yml"
DEFAULT_MAX_WORKERS = 8


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class AnalysisConfig:
    """Pipeline budget, parallelism and path exclusions."""

    time_budget: Optional[float] = None
    max_workers: int = DEFAULT_MAX_WORKERS
    exclude_paths: List[str] = field(default_factory=list)


@dataclass
class RulesConfig:
    """Concept rule enablement; an empty list enables every rule."""

    enabled: List[str] = field(default_factory=list)


@dataclass
class EntryPointsConfig:
    weights: Dict[str, float] = field(default_factory=dict)


@dataclass
class OutputConfig:
    format: str = "json"


@dataclass
class LoggingConfig:
    """Console level and optional log file, relative to the repository root."""

    level: Optional[str] = None
    file: Optional[Path] = None


@dataclass
class CodeModelConfig:
    """Represents the settings defined in .codemodel.yml."""

    root: Path
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    entrypoints: EntryPointsConfig = field(default_factory=EntryPointsConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: Path) -> CodeModelConfig:
    """Load configuration from disk; a missing file yields defaults."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return CodeModelConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    analysis_data = _as_dict(data.get("analysis"))
    analysis = AnalysisConfig()
    if analysis_data:
        budget = analysis_data.get("time_budget")
        if budget is not None:
            analysis.time_budget = _as_float(budget)
            if analysis.time_budget is None or analysis.time_budget <= 0:
                raise ConfigError("analysis.time_budget must be a positive number of seconds")
        workers = analysis_data.get("max_workers")
        if workers is not None:
            parsed = _as_int(workers)
            if parsed is None or parsed < 1:
                raise ConfigError("analysis.max_workers must be a positive integer")
            analysis.max_workers = parsed
        analysis.exclude_paths = _as_str_list(analysis_data.get("exclude_paths"))

    rules = RulesConfig(enabled=_as_str_list(_as_dict(data.get("rules")).get("enabled")))

    weights: Dict[str, float] = {}
    for name, value in _as_dict(_as_dict(data.get("entrypoints")).get("weights")).items():
        weight = _as_float(value)
        if weight is None:
            raise ConfigError(f"entrypoints.weights.{name} must be a number")
        weights[str(name)] = weight

    output = OutputConfig()
    output_format = _as_str(_as_dict(data.get("output")).get("format"))
    if output_format is not None:
        if output_format not in {"json", "yaml"}:
            raise ConfigError("output.format must be 'json' or 'yaml'")
        output.format = output_format

    logging_data = _as_dict(data.get("logging"))
    logging_config = LoggingConfig()
    level = _as_str(logging_data.get("level"))
    if level is not None:
        if level.upper() not in LEVELS:
            raise ConfigError(f"logging.level must be one of {', '.join(LEVELS)}")
        logging_config.level = level.upper()
    log_file = _as_str(logging_data.get("file"))
    if log_file:
        logging_config.file = (root / log_file).resolve()

    return CodeModelConfig(
        root=root,
        analysis=analysis,
        rules=rules,
        entrypoints=EntryPointsConfig(weights=weights),
        output=output,
        logging=logging_config,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "AnalysisConfig",
    "CONFIG_FILENAME",
    "CodeModelConfig",
    "ConfigError",
    "EntryPointsConfig",
    "LoggingConfig",
    "OutputConfig",
    "RulesConfig",
    "load_config",
]
