"""Structured logging infrastructure for persevere.

Provides structured logging using structlog with persevere-specific context
such as the invoking component, operation name and request ID. Supports
console and JSON output, optionally to a rotating file.

Example usage:
    from persevere.core.logging import get_logger, configure_logging, with_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("executor")

    # Log with auto-context
    logger.info("attempt_started", attempt=2)

    # Use an operation context for automatic correlation
    ctx = OperationContext(component="tasks", operation_name="fetch", request_id="r-1")
    with with_context(ctx):
        logger.info("attempt_failed")  # Includes component, operation_name, request_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from persevere.core.constants import REQUEST_ID_PREFIX

if TYPE_CHECKING:
    from persevere.core.config import LogConfig

# Sensitive field patterns that should never be logged
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "api-key",
    "token",
    "secret",
    "password",
    "credential",
    "cookie",
    "bearer",
    "authorization",
})


def generate_request_id() -> str:
    """Generate a correlation ID for callers that do not supply one."""
    return f"{REQUEST_ID_PREFIX}{uuid.uuid4().hex[:16]}"


@dataclass(frozen=True)
class OperationContext:
    """Immutable identification of a call site for logs and audit records.

    Created by the caller for each invocation and discarded once the call
    completes. Its fields are automatically included in all log entries when
    set via `with_context()`.

    Attributes:
        component: Name of the invoking subsystem (e.g., "tasks", "sync").
        operation_name: Name of the wrapped operation (e.g., "fetch_tasks").
        request_id: Caller-supplied correlation ID.
    """

    component: str
    operation_name: str
    request_id: str = field(default_factory=generate_request_id)

    @property
    def key(self) -> str:
        """Stable ``component.operation_name`` key for per-operation state."""
        return f"{self.component}.{self.operation_name}"

    def with_request_id(self, request_id: str) -> OperationContext:
        """Create a new context for the same call site with another request ID."""
        return OperationContext(
            component=self.component,
            operation_name=self.operation_name,
            request_id=request_id,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging."""
        return {
            "component": self.component,
            "operation_name": self.operation_name,
            "request_id": self.request_id,
        }


# Task-safe context variable for OperationContext
# Using ContextVar ensures proper isolation between concurrent executions
_current_context: ContextVar[OperationContext | None] = ContextVar(
    "persevere_context", default=None
)


def get_current_context() -> OperationContext | None:
    """Get the current OperationContext if set."""
    return _current_context.get()


def set_context(ctx: OperationContext) -> None:
    """Set the current OperationContext.

    Generally prefer using `with_context()` for automatic cleanup.
    """
    _current_context.set(ctx)


def clear_context() -> None:
    """Clear the current OperationContext."""
    _current_context.set(None)


@contextmanager
def with_context(ctx: OperationContext) -> Iterator[OperationContext]:
    """Context manager that sets OperationContext for the duration of a block.

    All log calls within the block will automatically include the context
    fields when the _add_context processor is active.

    Args:
        ctx: The OperationContext to use for the block.

    Yields:
        The OperationContext that was set.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    """Return "[REDACTED]" for values whose key looks sensitive."""
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that sanitizes sensitive fields.

    Nested dicts are sanitized one level deep.
    """
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {
                k: _sanitize_value(k, v) for k, v in value.items()
            }
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds OperationContext fields to log entries.

    Explicit bindings take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            if key not in event_dict:
                event_dict[key] = value
    return event_dict


class PersevereLogger:
    """Logger wrapper around structlog bound to a component name.

    Note: The underlying structlog logger is fetched lazily on every call so
    that loggers created at module import time still respect configuration
    set later via configure_logging().
    """

    def __init__(
        self,
        component: str,
        **initial_context: Any,
    ) -> None:
        """Initialize a logger for a component.

        Args:
            component: The component name (e.g., "executor", "audit").
            **initial_context: Additional context to bind.
        """
        self._component = component
        self._context: dict[str, Any] = {"logger": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> PersevereLogger:
        """Create a new logger with additional bound context."""
        new_logger = PersevereLogger.__new__(PersevereLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def unbind(self, *keys: str) -> PersevereLogger:
        """Create a new logger with specified keys removed."""
        new_logger = PersevereLogger.__new__(PersevereLogger)
        new_logger._component = self._component
        new_logger._context = {k: v for k, v in self._context.items() if k not in keys}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def critical(self, event: str, **kw: Any) -> None:
        self._get_logger().critical(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an exception with traceback.

        Should be called from within an exception handler.
        """
        self._get_logger().exception(event, **kw)


def _get_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    """Build the structlog processor chain ending in ``renderer``."""
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,  # Filter before processing
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]

    if include_context:
        processors.append(_add_context)

    if include_timestamps:
        processors.append(_add_timestamp)

    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])

    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure persevere structured logging.

    This should be called once at application startup before any logging occurs.

    Args:
        level: Minimum log level to capture.
        format: Output format - "json" for structured, "console" for human-readable,
            "both" for console to stderr and JSON to file (requires file_path).
        file_path: Optional file path for log output. Required if format="both".
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to include ISO8601 timestamps in log entries.
        include_context: Whether to include OperationContext fields in log entries.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)

    handlers: list[logging.Handler] = []

    if format == "console" or format == "both":
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

    if format == "json" or format == "both":
        if file_path:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            handlers.append(file_handler)
        elif format == "json":
            # JSON to stdout if no file specified
            json_handler = logging.StreamHandler(sys.stdout)
            json_handler.setLevel(log_level)
            handlers.append(json_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    # NOTE: cache_logger_on_first_use=False ensures loggers respect runtime config
    # even when created at module import time before configure_logging() is called
    structlog.configure(
        processors=_get_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging_from_config(config: LogConfig) -> None:
    """Configure logging from a validated LogConfig model."""
    configure_logging(
        level=config.level,
        format=config.format,
        file_path=config.file_path,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
        include_timestamps=config.include_timestamps,
        include_context=config.include_context,
    )


def get_logger(component: str, **initial_context: Any) -> PersevereLogger:
    """Get a persevere logger for a component.

    The returned logger automatically includes OperationContext fields
    when logging inside a `with_context()` block.

    Example:
        logger = get_logger("executor")
        ctx = OperationContext(component="tasks", operation_name="fetch")
        with with_context(ctx):
            logger.info("attempt_started")  # Includes component, request_id
    """
    return PersevereLogger(component, **initial_context)


__all__ = [
    "OperationContext",
    "PersevereLogger",
    "SENSITIVE_PATTERNS",
    "clear_context",
    "configure_logging",
    "configure_logging_from_config",
    "generate_request_id",
    "get_current_context",
    "get_logger",
    "set_context",
    "with_context",
]
