"""persevere: retry, backoff and fallback for fallible async operations."""

from persevere.core.config import LogConfig, ResilienceConfig, RetryPolicy
from persevere.core.errors import (
    ConfigurationError,
    ErrorClass,
    ErrorClassifier,
    ErrorClassifierProtocol,
    PersevereError,
)
from persevere.core.logging import OperationContext, configure_logging, get_logger
from persevere.execution import (
    AttemptOutcome,
    AuditOutcome,
    AuditRecord,
    AuditSink,
    BackoffSchedule,
    FallbackCache,
    InMemoryAuditSink,
    LoggingAuditSink,
    NullAuditSink,
    RecoveryStrategy,
    ResilientExecutor,
    clear_executors,
    execute_with_resilience,
    get_executor,
)

__version__ = "0.1.0"

__all__ = [
    "LogConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "ConfigurationError",
    "ErrorClass",
    "ErrorClassifier",
    "ErrorClassifierProtocol",
    "PersevereError",
    "OperationContext",
    "configure_logging",
    "get_logger",
    "AttemptOutcome",
    "AuditOutcome",
    "AuditRecord",
    "AuditSink",
    "BackoffSchedule",
    "FallbackCache",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "NullAuditSink",
    "RecoveryStrategy",
    "ResilientExecutor",
    "clear_executors",
    "execute_with_resilience",
    "get_executor",
]
