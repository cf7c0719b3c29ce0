"""Resilient execution: retry loop, backoff, fallbacks and audit reporting."""

from persevere.execution.audit import (
    AttemptOutcome,
    AuditOutcome,
    AuditRecord,
    AuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
    NullAuditSink,
)
from persevere.execution.backoff import BackoffSchedule
from persevere.execution.executor import (
    ResilientExecutor,
    SleepFunc,
    clear_executors,
    execute_with_resilience,
    get_executor,
)
from persevere.execution.fallback import CachedFallback, FallbackCache
from persevere.execution.recovery import RecoveryStrategy

__all__ = [
    "AttemptOutcome",
    "AuditOutcome",
    "AuditRecord",
    "AuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "NullAuditSink",
    "BackoffSchedule",
    "ResilientExecutor",
    "SleepFunc",
    "clear_executors",
    "execute_with_resilience",
    "get_executor",
    "CachedFallback",
    "FallbackCache",
    "RecoveryStrategy",
]
