"""Configuration models for persevere.

Pydantic models describing retry policies, logging, and the package-wide
defaults. A ``RetryPolicy`` is supplied per ``execute`` call; the
``ResilienceConfig`` only provides defaults for callers that omit one and
can be loaded from YAML.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from persevere.core.constants import (
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    FALLBACK_CACHE_MAX_AGE_SECONDS,
)
from persevere.core.errors.exceptions import ConfigurationError


class RetryPolicy(BaseModel):
    """Retry and fallback configuration for one executor invocation.

    Immutable once created. ``fallback_value`` is tracked by *presence*
    rather than value: ``RetryPolicy(fallback_value=None)`` configures
    ``None`` as the fallback, while ``RetryPolicy()`` configures none.

    Example:
        policy = RetryPolicy(max_retries=2, base_delay_seconds=0.05, fallback_value=[])
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        description="Retries after the first attempt (0 = try once, never retry)",
    )
    base_delay_seconds: float = Field(
        default=DEFAULT_BASE_DELAY_SECONDS,
        ge=0,
        description="Delay before the first retry; doubled for each later retry",
    )
    max_delay_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Optional cap on a single backoff delay (None = uncapped)",
    )
    jitter_factor: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Random extra delay as a fraction of the computed delay (added, never subtracted)",
    )
    fallback_value: Any = Field(
        default=None,
        description="Value returned instead of raising once retries are exhausted",
    )
    fallback_factory: Callable[[], Any] | None = Field(
        default=None,
        description="Zero-argument callable (sync or async) producing a fallback",
        exclude=True,
    )
    use_cached_fallback: bool = Field(
        default=False,
        description="Fall back to the last cached success value for this operation",
    )

    @model_validator(mode="after")
    def _validate_delay_range(self) -> RetryPolicy:
        if self.max_delay_seconds is not None and self.base_delay_seconds > self.max_delay_seconds:
            raise ValueError(
                f"base_delay_seconds ({self.base_delay_seconds}) must not exceed "
                f"max_delay_seconds ({self.max_delay_seconds})"
            )
        return self

    @property
    def has_fallback(self) -> bool:
        """True if a fallback value was explicitly configured."""
        return "fallback_value" in self.model_fields_set

    def with_overrides(self, **overrides: Any) -> RetryPolicy:
        """Return a validated copy with some fields replaced.

        Fields explicitly set on this policy stay set on the copy, so a
        configured fallback survives overriding unrelated fields.
        """
        data = {name: getattr(self, name) for name in self.model_fields_set}
        data.update(overrides)
        return RetryPolicy(**data)


class LogConfig(BaseModel):
    """Configuration for structured logging.

    Controls log level, output format, and file rotation settings.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable, "
        "both for console to stderr and JSON to file",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for log file output (required if format='both')",
    )
    max_file_size_mb: int = Field(
        default=50,
        gt=0,
        le=1000,
        description="Maximum log file size before rotation (MB)",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of rotated log files to keep",
    )
    include_timestamps: bool = Field(
        default=True,
        description="Include ISO8601 UTC timestamps in log entries",
    )
    include_context: bool = Field(
        default=True,
        description="Include operation context (component, request_id) in log entries",
    )

    @model_validator(mode="after")
    def _check_file_path_required(self) -> LogConfig:
        """Validate that file_path is set when format requires file output."""
        if self.format == "both" and self.file_path is None:
            raise ValueError(
                f"file_path is required when format='{self.format}'"
            )
        return self


class ResilienceConfig(BaseModel):
    """Package-wide defaults for resilient execution.

    Example YAML:
        defaults:
          max_retries: 5
          base_delay_seconds: 0.5
        logging:
          level: DEBUG
          format: json
        fallback_cache_max_age_seconds: 120
    """

    defaults: RetryPolicy = Field(
        default_factory=RetryPolicy,
        description="Policy used when execute() is called without one",
    )
    logging: LogConfig = Field(default_factory=LogConfig)
    fallback_cache_max_age_seconds: float = Field(
        default=FALLBACK_CACHE_MAX_AGE_SECONDS,
        gt=0,
        description="Maximum age of a cached value usable as a fallback",
    )

    def default_policy(self) -> RetryPolicy:
        return self.defaults

    @classmethod
    def from_yaml(cls, path: Path) -> ResilienceConfig:
        """Load configuration from a YAML file.

        Raises:
            ConfigurationError: If the file cannot be read, parsed or validated.
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration: {e}", source=path) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", source=path) from e
        return cls._validate_data(data, source=path)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> ResilienceConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", source="<string>") from e
        return cls._validate_data(data, source="<string>")

    @classmethod
    def _validate_data(cls, data: Any, source: Path | str) -> ResilienceConfig:
        # An empty document means "all defaults"
        if data is None:
            data = {}
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}", source=source) from e
