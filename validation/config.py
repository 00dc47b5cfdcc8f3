"""
Settings for sparkwms-sync.

Provides a pydantic-settings model read from SPARKWMS_-prefixed environment
variables, overridable by keyword arguments, with fail-fast validation.
There is no implicit default queue file: every process states its
queue_path explicitly.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

import pydantic
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.log import create_logger
from validation.errors import ConfigError

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Config")

ENV_PREFIX = "SPARKWMS_"


class CorruptQueuePolicy(str, Enum):
    """What to do when the queue file exists but cannot be parsed."""
    EMPTY = "empty"   # log a warning and start from an empty queue
    RAISE = "raise"   # raise QueueCorruptError, operator must intervene


class SyncSettings(BaseSettings):
    """
    sparkwms-sync configuration.

    Required:
        queue_path: Path of the durable commit queue file

    Optional tunables:
        connect_string: postgresql:// connection string of the remote database
        sql_endpoint: Explicit SQL-over-HTTP URL (default: derived from connect_string)
        idle_interval: Seconds to wait when the queue is empty (default: 1.0)
        backoff_interval: Seconds to wait after a failed probe or submit (default: 5.0)
        probe_timeout: Timeout for the liveness probe in seconds (default: 5.0)
        submit_timeout: Timeout for one submission in seconds (default: 30.0)
        corrupt_queue_policy: "empty" or "raise" (default: "empty")
        max_attempts: Failed submissions before dead-lettering the head
                      (default: None, retry forever)
        dead_letter_path: Dead letter database (default: <queue_path>.dead.db)
        log_level: Logging level name (default: "info")
        json_logs: Emit JSON log lines (default: True)
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)

    queue_path: Path

    connect_string: Optional[str] = None
    sql_endpoint: Optional[str] = None

    idle_interval: float = Field(default=1.0, ge=0.05, le=60.0)
    backoff_interval: float = Field(default=5.0, ge=0.1, le=600.0)
    probe_timeout: float = Field(default=5.0, ge=0.5, le=60.0)
    submit_timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    corrupt_queue_policy: CorruptQueuePolicy = CorruptQueuePolicy.EMPTY
    max_attempts: Optional[int] = Field(default=None, ge=1, le=10_000)
    dead_letter_path: Optional[Path] = None

    log_level: str = "info"
    json_logs: bool = True

    @field_validator('connect_string')
    @classmethod
    def validate_connect_string(cls, v: Optional[str]) -> Optional[str]:
        """Connection string must be a postgres URL when provided."""
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if not v.startswith(('postgres://', 'postgresql://')):
            raise ValueError('connect_string must start with postgres:// or postgresql://')
        return v

    @field_validator('sql_endpoint')
    @classmethod
    def validate_sql_endpoint(cls, v: Optional[str]) -> Optional[str]:
        """SQL endpoint must be an http(s) URL when provided."""
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if not v.startswith(('http://', 'https://')):
            raise ValueError('sql_endpoint must start with http:// or https://')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Log level must be a known level name."""
        v = v.strip().lower()
        if v not in ('trace', 'debug', 'info', 'warning', 'error'):
            raise ValueError(f"unknown log level '{v}'")
        return v

    @property
    def resolved_dead_letter_path(self) -> Path:
        """Dead-letter file path, defaulting to a sibling of the queue file."""
        if self.dead_letter_path is not None:
            return self.dead_letter_path
        from commit_queue.dead_letter import dead_letter_path_for
        return dead_letter_path_for(self.queue_path)

    def require_remote(self) -> str:
        """Return connect_string or raise ConfigError if it is missing."""
        if not self.connect_string:
            raise ConfigError(f"connect_string is required (set {ENV_PREFIX}CONNECT_STRING)")
        return self.connect_string


def load_settings(**overrides) -> SyncSettings:
    """
    Build SyncSettings from the environment plus explicit overrides.

    None-valued overrides are ignored so CLI flags that were not given do
    not mask environment values.

    Raises:
        ConfigError: Required settings missing or values out of range
    """
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        settings = SyncSettings(**overrides)
    except pydantic.ValidationError as exc:
        missing = []
        problems = []
        for error in exc.errors():
            loc = error.get('loc', ())
            field = str(loc[0]) if loc else '?'
            if error.get('type') == 'missing':
                missing.append(f"{ENV_PREFIX}{field.upper()}")
            else:
                problems.append(f"{field}: {error.get('msg')}")
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}") from exc
        raise ConfigError(f"Invalid configuration: {'; '.join(problems)}") from exc

    log_debug(
        f"Settings loaded: queue_path={settings.queue_path} "
        f"remote={'yes' if settings.connect_string else 'no'} "
        f"max_attempts={settings.max_attempts}"
    )
    return settings
