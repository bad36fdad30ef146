from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .constants import (
    DEFAULT_AI_MODEL,
    DEFAULT_AI_PROVIDER,
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BACKOFF_JITTER,
    DEFAULT_BACKOFF_MAX_DELAY,
    DEFAULT_CLAIM_TTL_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_NODE_TIMEOUT_SECONDS,
    DEFAULT_SCHEDULER_BATCH_SIZE,
    DEFAULT_SCHEDULER_CONCURRENCY,
    DEFAULT_SCHEDULER_INTERVAL_SECONDS,
    DEFAULT_WEBHOOK_TIMEOUT_SECONDS,
    MAX_SCHEDULER_INTERVAL_SECONDS,
)


class RetryConfig(BaseModel):
    """Retry policy for AI and action nodes."""

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    backoff_base: float = Field(default=DEFAULT_BACKOFF_BASE, ge=0)
    jitter: float = Field(default=DEFAULT_BACKOFF_JITTER, ge=0)
    max_delay: float = Field(default=DEFAULT_BACKOFF_MAX_DELAY, ge=0)


class SchedulerConfig(BaseModel):
    """Polling settings for resuming suspended executions."""

    interval_seconds: float = Field(
        default=DEFAULT_SCHEDULER_INTERVAL_SECONDS,
        gt=0,
        le=MAX_SCHEDULER_INTERVAL_SECONDS,
    )
    batch_size: int = Field(default=DEFAULT_SCHEDULER_BATCH_SIZE, ge=1)
    max_concurrency: int = Field(default=DEFAULT_SCHEDULER_CONCURRENCY, ge=1)


class AIConfig(BaseModel):
    """Defaults for the AI collaborator."""

    provider: str = DEFAULT_AI_PROVIDER
    default_model: str = DEFAULT_AI_MODEL


class ActionsConfig(BaseModel):
    """Settings for the built-in action handlers."""

    webhook_timeout: float = Field(default=DEFAULT_WEBHOOK_TIMEOUT_SECONDS, gt=0)


class BreezeflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    retry: RetryConfig = RetryConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    ai: AIConfig = AIConfig()
    actions: ActionsConfig = ActionsConfig()
    node_timeout_seconds: float = Field(default=DEFAULT_NODE_TIMEOUT_SECONDS, gt=0)
    claim_ttl_seconds: int = Field(default=DEFAULT_CLAIM_TTL_SECONDS, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @model_validator(mode="after")
    def _lease_outlasts_attempt(self) -> "BreezeflowConfig":
        # The lease is renewed before every attempt, so it must cover one
        # attempt plus the backoff that precedes the next one.
        longest_gap = self.node_timeout_seconds + self.retry.max_delay
        if self.claim_ttl_seconds <= longest_gap:
            raise ValueError(
                f"claim_ttl_seconds ({self.claim_ttl_seconds}) must exceed "
                f"node_timeout_seconds + retry.max_delay ({longest_gap:g})"
            )
        return self


def load_config(path: Optional[str] = None) -> BreezeflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to BREEZEFLOW_CONFIG env
            variable or 'breezeflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("BREEZEFLOW_CONFIG", "breezeflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = BreezeflowConfig(**data)
    else:
        config = BreezeflowConfig()

    env_db_url = os.getenv("BREEZEFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
