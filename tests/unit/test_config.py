"""Tests for configuration loading."""

import pytest

from autoflow.config import AutoflowConfig, load_config
from autoflow.errors import ValidationError
from autoflow.schedule import CompositeScheduleEvaluator, get_evaluator


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "autoflow.yaml"
    config_path.write_text(
        """
engine:
  max_steps: 50
scheduler:
  timezone: Europe/Berlin
http:
  timeout: 2.5
"""
    )
    monkeypatch.setenv("AUTOFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.engine.max_steps == 50
    assert config.engine.default_delay_seconds == 1.0
    assert config.scheduler.timezone == "Europe/Berlin"
    assert config.http.timeout == 2.5


def test_load_config_defaults_when_missing(tmp_path, monkeypatch):
    monkeypatch.setenv("AUTOFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("AUTOFLOW_LOG_LEVEL", raising=False)

    config = load_config()
    assert config == AutoflowConfig()


def test_log_level_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("AUTOFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("AUTOFLOW_LOG_LEVEL", "debug")

    assert load_config().log_level == "DEBUG"


def test_get_evaluator_uses_config_timezone():
    config = AutoflowConfig(scheduler={"timezone": "Asia/Tokyo"})
    evaluator = get_evaluator(config)
    assert isinstance(evaluator, CompositeScheduleEvaluator)
    evaluator.validate("0 9 * * *")


def test_invalid_config_file_is_rejected(tmp_path, monkeypatch):
    config_path = tmp_path / "autoflow.yaml"
    config_path.write_text("engine:\n  max_steps: 0\n")
    monkeypatch.setenv("AUTOFLOW_CONFIG", str(config_path))

    with pytest.raises(ValidationError, match="Invalid config file"):
        load_config()
