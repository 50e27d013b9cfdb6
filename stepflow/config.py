from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_NODE_TIMEOUT,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BASE,
    DEFAULT_RETRY_JITTER,
)


class ExecutorConfig(BaseModel):
    """Graph executor settings."""

    node_timeout: Optional[float] = DEFAULT_NODE_TIMEOUT
    max_concurrency: Optional[int] = None


class RetryConfig(BaseModel):
    """Default retry policy for connector handlers."""

    attempts: int = DEFAULT_RETRY_ATTEMPTS
    base: float = DEFAULT_RETRY_BASE
    jitter: float = DEFAULT_RETRY_JITTER


class StepflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    executor: ExecutorConfig = ExecutorConfig()
    retry: RetryConfig = RetryConfig()


def load_config(path: Optional[str] = None) -> StepflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STEPFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("STEPFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StepflowConfig(**data)
    else:
        config = StepflowConfig()

    env_db_url = os.getenv("STEPFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
