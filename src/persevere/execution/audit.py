"""Audit records and sinks for resilient execution.

The executor reports every retried failure and every final resolution to
an injected ``AuditSink``. Reporting is one-way: the executor never awaits
a sink and never lets a sink failure change the outcome of an execution.

Sinks may implement ``record`` as a plain method or as a coroutine
function. Coroutine sinks are scheduled as background tasks on the running
loop; their exceptions are logged by a done-callback.

Example usage:
    from persevere.execution.audit import InMemoryAuditSink

    sink = InMemoryAuditSink()
    executor = ResilientExecutor(audit_sink=sink)
    await executor.execute(fetch, ctx, policy)
    [r.outcome for r in sink.records]  # [FAILURE, FAILURE, SUCCESS]
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from persevere.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS
from persevere.core.logging import OperationContext, get_logger

_logger = get_logger("audit")


class AuditOutcome(str, Enum):
    """What an audit record reports."""

    SUCCESS = "success"
    """The operation returned a value."""

    FAILURE = "failure"
    """An attempt failed (``final`` tells whether the error was propagated)."""

    FALLBACK_USED = "fallback_used"
    """All attempts failed and a fallback value was returned instead."""


@dataclass(frozen=True)
class AttemptOutcome:
    """Record of a single attempt within one execution.

    Attributes:
        attempt_number: 1-based attempt index.
        succeeded: Whether the operation returned a value.
        error: The exception raised, present iff the attempt failed.
        delay_before_attempt: Backoff slept before this attempt (seconds).
    """

    attempt_number: int
    succeeded: bool
    error: BaseException | None = None
    delay_before_attempt: float = 0.0

    def __post_init__(self) -> None:
        if self.attempt_number < 1:
            raise ValueError(f"attempt_number must be >= 1, got {self.attempt_number}")
        if self.succeeded == (self.error is not None):
            raise ValueError("error must be set exactly when the attempt failed")

    def to_dict(self) -> dict[str, object]:
        return {
            "attempt_number": self.attempt_number,
            "succeeded": self.succeeded,
            "error": str(self.error)[:TRUNCATE_ERROR_MESSAGE_CHARS] if self.error else None,
            "delay_before_attempt": round(self.delay_before_attempt, 3),
        }


@dataclass(frozen=True)
class AuditRecord:
    """Structured record handed to an audit sink.

    Attributes:
        context: The call site being executed.
        attempt_number: Attempt the record refers to (for final records,
            the number of attempts made).
        outcome: SUCCESS, FAILURE or FALLBACK_USED.
        error_message: Message of the failure, if any.
        final: True for the record describing how the execution resolved.
        error_class: Classification of the failure ("transient"/"terminal").
        attempts: Attempt history up to and including this record.
        timestamp: When the record was created (UTC).
    """

    context: OperationContext
    attempt_number: int
    outcome: AuditOutcome
    error_message: str | None = None
    final: bool = False
    error_class: str | None = None
    attempts: tuple[AttemptOutcome, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for logging/serialization."""
        return {
            **self.context.to_dict(),
            "attempt_number": self.attempt_number,
            "outcome": self.outcome.value,
            "error_message": self.error_message,
            "final": self.final,
            "error_class": self.error_class,
            "attempts": [a.to_dict() for a in self.attempts],
            "timestamp": self.timestamp.isoformat(),
        }


@runtime_checkable
class AuditSink(Protocol):
    """Collaborator that receives audit records.

    Must tolerate concurrent calls from independent executions.
    """

    def record(self, record: AuditRecord) -> None | Awaitable[None]: ...


class NullAuditSink:
    """Sink that discards every record."""

    def record(self, record: AuditRecord) -> None:
        return None


class InMemoryAuditSink:
    """Sink that keeps records in arrival order.

    Useful for diagnostics and tests. Intended for use from a single event
    loop thread.
    """

    def __init__(self) -> None:
        self.records: list[AuditRecord] = []

    def record(self, record: AuditRecord) -> None:
        self.records.append(record)

    def for_request(self, request_id: str) -> list[AuditRecord]:
        """Records belonging to one execution."""
        return [r for r in self.records if r.context.request_id == request_id]

    @property
    def final_records(self) -> list[AuditRecord]:
        return [r for r in self.records if r.final]

    def clear(self) -> None:
        self.records.clear()


class LoggingAuditSink:
    """Sink that writes records through the structured logger.

    Failures are logged at warning level, fallbacks at info, successes at
    debug.
    """

    def __init__(self, component: str = "audit") -> None:
        self._logger = get_logger(component)

    def record(self, record: AuditRecord) -> None:
        fields = record.to_dict()
        fields.pop("attempts")
        event = f"audit.{record.outcome.value}"
        if record.outcome is AuditOutcome.FAILURE:
            self._logger.warning(event, **fields)
        elif record.outcome is AuditOutcome.FALLBACK_USED:
            self._logger.info(event, **fields)
        else:
            self._logger.debug(event, **fields)


# Strong references to in-flight sink tasks so they are not garbage collected
_pending_tasks: set[asyncio.Task[Any]] = set()


def log_task_exception(
    task: asyncio.Task[Any],
    event: str,
) -> BaseException | None:
    """Extract and log an exception from a completed background task.

    Returns:
        The exception if one was found, ``None`` if the task completed
        normally or was cancelled.
    """
    if task.cancelled():
        return None
    exc = task.exception()
    if exc is not None:
        _logger.warning(event, error=str(exc), task_name=task.get_name())
    return exc


def _on_sink_task_done(task: asyncio.Task[Any]) -> None:
    _pending_tasks.discard(task)
    log_task_exception(task, "audit.sink_failed")


async def _await_sink(pending: Awaitable[None]) -> None:
    await pending


def notify_sink(sink: AuditSink, record: AuditRecord) -> None:
    """Deliver a record to a sink without waiting and without raising.

    Synchronous sinks run inline; their exceptions are logged and dropped.
    Awaitable results are scheduled on the running loop and left to finish
    on their own.
    """
    try:
        pending = sink.record(record)
    except Exception as e:
        _logger.warning(
            "audit.sink_failed",
            error=str(e),
            error_type=type(e).__name__,
            outcome=record.outcome.value,
        )
        return

    if pending is None or not inspect.isawaitable(pending):
        return

    try:
        task = asyncio.get_running_loop().create_task(
            _await_sink(pending), name=f"audit-{record.context.request_id}"
        )
    except RuntimeError:
        # No running loop: nothing can drive the awaitable
        if inspect.iscoroutine(pending):
            pending.close()
        _logger.warning("audit.sink_skipped", reason="no running event loop")
        return

    _pending_tasks.add(task)
    task.add_done_callback(_on_sink_task_done)


async def drain_pending_notifications() -> None:
    """Wait for scheduled sink tasks to finish (used at shutdown and in tests)."""
    while _pending_tasks:
        await asyncio.gather(*list(_pending_tasks), return_exceptions=True)


__all__ = [
    "AttemptOutcome",
    "AuditOutcome",
    "AuditRecord",
    "AuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "NullAuditSink",
    "drain_pending_notifications",
    "log_task_exception",
    "notify_sink",
]
