"""Tests for codemodel.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from codemodel.config import CodeModelConfig, ConfigError, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, CodeModelConfig)
    assert config.root == tmp_path.resolve()
    assert config.analysis.time_budget is None
    assert config.analysis.max_workers == 8
    assert config.analysis.exclude_paths == []
    assert config.rules.enabled == []
    assert config.entrypoints.weights == {}
    assert config.output.format == "json"
    assert config.logging.level is None
    assert config.logging.file is None


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".codemodel.yml"
    config_file.write_text(
        """
analysis:
  time_budget: 30
  max_workers: "4"
  exclude_paths:
    - "fixtures/"
    - "*.min.js"
rules:
  enabled: [singleton, http_routing]
entrypoints:
  weights:
    manifest_main: 5
    route_registrations: 0.5
output:
  format: yaml
logging:
  level: warning
  file: logs/codemodel.log
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.root == tmp_path.resolve()
    assert config.analysis.time_budget == 30.0
    assert config.analysis.max_workers == 4
    assert config.analysis.exclude_paths == ["fixtures/", "*.min.js"]
    assert config.rules.enabled == ["singleton", "http_routing"]
    assert config.entrypoints.weights == {"manifest_main": 5.0, "route_registrations": 0.5}
    assert config.output.format == "yaml"
    assert config.logging.level == "WARNING"
    assert config.logging.file == (tmp_path / "logs" / "codemodel.log").resolve()


def test_empty_config_file_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / ".codemodel.yml").write_text("\n", encoding="utf-8")
    assert load_config(tmp_path).analysis.max_workers == 8


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "analysis:\n  time_budget: 0\n",
        "analysis:\n  max_workers: many\n",
        "entrypoints:\n  weights:\n    zero_in_degree: heavy\n",
        "output:\n  format: xml\n",
        "logging:\n  level: loud\n",
        "analysis: [unclosed\n",
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, text: str) -> None:
    (tmp_path / ".codemodel.yml").write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)
