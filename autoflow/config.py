from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    DEFAULT_DELAY_SECONDS,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_STEPS,
    DEFAULT_TIMEZONE,
)
from .errors import ValidationError


class EngineConfig(BaseModel):
    """Workflow engine limits."""

    max_steps: int = Field(default=DEFAULT_MAX_STEPS, gt=0)
    default_delay_seconds: float = Field(default=DEFAULT_DELAY_SECONDS, ge=0)


class SchedulerConfig(BaseModel):
    """Settings shared by task and trigger timers."""

    timezone: str = DEFAULT_TIMEZONE


class HttpConfig(BaseModel):
    """Outbound call settings for webhook and api_call actions."""

    timeout: float = DEFAULT_HTTP_TIMEOUT


class AutoflowConfig(BaseModel):
    """Top-level configuration model."""

    engine: EngineConfig = EngineConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    http: HttpConfig = HttpConfig()
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> AutoflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to AUTOFLOW_CONFIG env
            variable or 'autoflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("AUTOFLOW_CONFIG", "autoflow.yaml")
    config = AutoflowConfig()
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        try:
            config = AutoflowConfig.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid config file {config_path}: {exc}") from exc

    env_level = os.getenv("AUTOFLOW_LOG_LEVEL")
    if env_level:
        config.log_level = env_level.upper()
    return config
