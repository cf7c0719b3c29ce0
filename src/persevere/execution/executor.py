"""Resilient execution of fallible asynchronous operations.

Wraps an awaitable-returning, zero-argument callable with automatic retry,
exponential backoff, error classification and fallback substitution.

Each call to ``execute`` is a sequential state machine:

1. Attempt the operation.
2. On success, report and return the value.
3. On failure, classify the error. TERMINAL errors resolve immediately;
   TRANSIENT errors are retried after a backoff delay while
   ``attempt <= max_retries``.
4. Resolve: return a recovered result or a fallback (explicit value,
   factory, or cached value) if one is available; otherwise re-raise the
   last error unmodified.

The operation is invoked between 1 and ``max_retries + 1`` times. Retries
are never concurrent, and the backoff sleep is the only suspension point
the executor adds; cancelling the calling task cancels the sleep.

Example usage:
    from persevere import OperationContext, ResilientExecutor, RetryPolicy

    executor = ResilientExecutor()
    tasks = await executor.execute(
        lambda: client.fetch_tasks(project_id),
        OperationContext(component="tasks", operation_name="fetch_tasks"),
        RetryPolicy(max_retries=2, base_delay_seconds=0.5, fallback_value=[]),
    )
"""

from __future__ import annotations

import asyncio
import inspect
import random
from collections.abc import Awaitable, Callable, Iterable
from threading import Lock
from typing import Any, Protocol, TypeVar

from persevere.core.config import ResilienceConfig, RetryPolicy
from persevere.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS
from persevere.core.errors import ErrorClass, ErrorClassifier, ErrorClassifierProtocol
from persevere.core.logging import OperationContext, get_logger, with_context
from persevere.execution.audit import (
    AttemptOutcome,
    AuditOutcome,
    AuditRecord,
    AuditSink,
    LoggingAuditSink,
    notify_sink,
)
from persevere.execution.backoff import BackoffSchedule
from persevere.execution.fallback import FallbackCache
from persevere.execution.recovery import RecoveryStrategy

T = TypeVar("T")

# Module-level logger for executor events
_logger = get_logger("executor")

# Marker for "no fallback could be produced"; distinct from a None fallback
_NO_FALLBACK: Any = object()


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...


class ResilientExecutor:
    """Runs operations with retry, backoff and fallback resolution.

    Holds only configuration and collaborators; all per-call state lives
    inside ``execute``, so one executor can serve any number of concurrent
    executions.

    Attributes:
        audit_sink: Receives one record per retried failure and one per
            resolution.
        classifier: Decides whether a failure is worth retrying.
        default_policy: Policy used when ``execute`` is given none.
        fallback_cache: Latest success values, used by policies that set
            ``use_cached_fallback``.
        recovery_strategies: Hooks tried, in order, before any fallback.
    """

    def __init__(
        self,
        audit_sink: AuditSink | None = None,
        classifier: ErrorClassifierProtocol | None = None,
        default_policy: RetryPolicy | None = None,
        fallback_cache: FallbackCache | None = None,
        sleep_func: SleepFunc | None = None,
        rng: random.Random | None = None,
        recovery_strategies: Iterable[RecoveryStrategy] = (),
    ) -> None:
        """Initialize the executor.

        Args:
            audit_sink: Audit collaborator. Defaults to a LoggingAuditSink.
            classifier: Error classification strategy. Defaults to the
                keyword-based ErrorClassifier.
            default_policy: Policy for calls that omit one.
            fallback_cache: Shared cache of success values.
            sleep_func: Injectable async sleep for time control in tests.
            rng: Random source for backoff jitter.
            recovery_strategies: Initial recovery hooks.
        """
        self.audit_sink: AuditSink = (
            audit_sink if audit_sink is not None else LoggingAuditSink()
        )
        self.classifier: ErrorClassifierProtocol = (
            classifier if classifier is not None else ErrorClassifier()
        )
        self.default_policy = default_policy if default_policy is not None else RetryPolicy()
        self.fallback_cache = fallback_cache if fallback_cache is not None else FallbackCache()
        self.recovery_strategies: list[RecoveryStrategy] = list(recovery_strategies)
        self._sleep: SleepFunc = sleep_func if sleep_func is not None else asyncio.sleep
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def from_config(cls, config: ResilienceConfig, **kwargs: Any) -> ResilientExecutor:
        """Build an executor from package-wide configuration.

        The default policy and the fallback cache age come from ``config``.
        Logging is process-wide and is not touched here; call
        ``configure_logging_from_config(config.logging)`` once at startup.

        Args:
            config: Loaded resilience configuration.
            **kwargs: Other ResilientExecutor arguments (audit_sink, ...).

        Example:
            config = ResilienceConfig.from_yaml(Path("resilience.yaml"))
            configure_logging_from_config(config.logging)
            executor = ResilientExecutor.from_config(config)
        """
        kwargs.setdefault("default_policy", config.default_policy())
        kwargs.setdefault(
            "fallback_cache",
            FallbackCache(default_max_age_seconds=config.fallback_cache_max_age_seconds),
        )
        return cls(**kwargs)

    def add_recovery_strategy(self, strategy: RecoveryStrategy) -> None:
        """Register a recovery hook, tried after those already registered."""
        self.recovery_strategies.append(strategy)
        _logger.debug("executor.recovery_strategy_added", strategy=strategy.name)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: OperationContext,
        policy: RetryPolicy | None = None,
    ) -> T:
        """Execute ``operation`` with retry, backoff and fallback handling.

        Args:
            operation: Zero-argument callable returning an awaitable. It must
                be safe to invoke again after a failure.
            context: Identification of the call site for logs and audits.
            policy: Retry/fallback policy; defaults to ``default_policy``.

        Returns:
            The operation's result, or the fallback when every attempt
            failed (or the failure was terminal) and a fallback is available.

        Raises:
            Exception: The last error raised by ``operation`` when no
                fallback is available.
        """
        policy = policy if policy is not None else self.default_policy
        schedule = BackoffSchedule.from_policy(policy, rng=self._rng)
        attempts: list[AttemptOutcome] = []
        attempt = 1
        delay = 0.0

        with with_context(context):
            while True:
                try:
                    result = await operation()
                except Exception as e:
                    attempts.append(
                        AttemptOutcome(
                            attempt_number=attempt,
                            succeeded=False,
                            error=e,
                            delay_before_attempt=delay,
                        )
                    )
                    error_class = self.classifier.classify_exception(e)
                    _logger.warning(
                        "executor.attempt_failed",
                        attempt=attempt,
                        max_attempts=policy.max_retries + 1,
                        error_class=error_class.value,
                        error_type=type(e).__name__,
                        error=str(e)[:TRUNCATE_ERROR_MESSAGE_CHARS],
                    )

                    if error_class is ErrorClass.TRANSIENT and attempt <= policy.max_retries:
                        self._report(
                            context,
                            attempt,
                            AuditOutcome.FAILURE,
                            attempts,
                            error=e,
                            error_class=error_class,
                        )
                        delay = schedule.delay_for_retry(attempt)
                        _logger.info(
                            "executor.retry_scheduled",
                            retry=attempt,
                            delay_seconds=round(delay, 3),
                        )
                        await self._sleep(delay)
                        attempt += 1
                        continue

                    last_error = e
                    last_class = error_class
                    break

                attempts.append(
                    AttemptOutcome(
                        attempt_number=attempt,
                        succeeded=True,
                        delay_before_attempt=delay,
                    )
                )
                if policy.use_cached_fallback:
                    self.fallback_cache.put(context.key, result, source=context.request_id)
                self._report(context, attempt, AuditOutcome.SUCCESS, attempts, final=True)
                _logger.debug("executor.succeeded", attempts=attempt)
                return result

            # Resolution: every path here has a failed final attempt
            fallback, fallback_source = await self._resolve_fallback(context, policy, last_error)
            if fallback is not _NO_FALLBACK:
                self._report(
                    context,
                    attempt,
                    AuditOutcome.FALLBACK_USED,
                    attempts,
                    error=last_error,
                    error_class=last_class,
                    final=True,
                )
                _logger.info(
                    "executor.fallback_used",
                    attempts=attempt,
                    fallback_source=fallback_source,
                    error_class=last_class.value,
                    error=str(last_error)[:TRUNCATE_ERROR_MESSAGE_CHARS],
                )
                return fallback  # type: ignore[no-any-return]

            self._report(
                context,
                attempt,
                AuditOutcome.FAILURE,
                attempts,
                error=last_error,
                error_class=last_class,
                final=True,
            )
            _logger.error(
                "executor.failed",
                attempts=attempt,
                error_class=last_class.value,
                retries_exhausted=last_class is ErrorClass.TRANSIENT,
                error_type=type(last_error).__name__,
                error=str(last_error)[:TRUNCATE_ERROR_MESSAGE_CHARS],
            )
            raise last_error

    async def _resolve_fallback(
        self,
        context: OperationContext,
        policy: RetryPolicy,
        error: BaseException,
    ) -> tuple[Any, str | None]:
        """Find a substitute result for a failed execution.

        Sources are tried in order: recovery strategies, explicit value,
        factory, cache.

        Returns:
            (fallback, source name), or (_NO_FALLBACK, None) if none applies.
        """
        for strategy in self.recovery_strategies:
            try:
                if not strategy.can_recover(error, context):
                    continue
                _logger.info("executor.recovery_attempted", strategy=strategy.name)
                value = strategy.recover(error, context)
                if inspect.isawaitable(value):
                    value = await value
                return value, f"recovery:{strategy.name}"
            except Exception as e:
                _logger.warning(
                    "executor.recovery_failed",
                    strategy=strategy.name,
                    error_type=type(e).__name__,
                    error=str(e)[:TRUNCATE_ERROR_MESSAGE_CHARS],
                )

        if policy.has_fallback:
            return policy.fallback_value, "value"

        if policy.fallback_factory is not None:
            try:
                value = policy.fallback_factory()
                if inspect.isawaitable(value):
                    value = await value
                return value, "factory"
            except Exception as e:
                _logger.warning(
                    "executor.fallback_factory_failed",
                    error_type=type(e).__name__,
                    error=str(e)[:TRUNCATE_ERROR_MESSAGE_CHARS],
                )

        if policy.use_cached_fallback:
            entry = self.fallback_cache.get(context.key)
            if entry is not None:
                return entry.value, "cache"

        return _NO_FALLBACK, None

    def _report(
        self,
        context: OperationContext,
        attempt: int,
        outcome: AuditOutcome,
        attempts: list[AttemptOutcome],
        *,
        error: BaseException | None = None,
        error_class: ErrorClass | None = None,
        final: bool = False,
    ) -> None:
        notify_sink(
            self.audit_sink,
            AuditRecord(
                context=context,
                attempt_number=attempt,
                outcome=outcome,
                error_message=str(error) if error is not None else None,
                final=final,
                error_class=error_class.value if error_class is not None else None,
                attempts=tuple(attempts),
            ),
        )


# =============================================================================
# Per-component executor registry
# =============================================================================

_executors: dict[str, ResilientExecutor] = {}
_executors_lock = Lock()


def get_executor(component: str, **kwargs: Any) -> ResilientExecutor:
    """Get the shared executor for a component, creating it on first use.

    Args:
        component: Name of the invoking subsystem.
        **kwargs: ResilientExecutor arguments, used only on creation.

    Returns:
        The executor registered for ``component``.
    """
    with _executors_lock:
        executor = _executors.get(component)
        if executor is None:
            executor = ResilientExecutor(**kwargs)
            _executors[component] = executor
            _logger.debug("executor.registered", registered_component=component)
        return executor


def clear_executors() -> None:
    """Drop all registered executors (for tests and reconfiguration)."""
    with _executors_lock:
        _executors.clear()


async def execute_with_resilience(
    operation: Callable[[], Awaitable[T]],
    context: OperationContext,
    policy: RetryPolicy | None = None,
) -> T:
    """Execute ``operation`` with the executor registered for its component.

    Example:
        >>> result = await execute_with_resilience(
        ...     lambda: client.get_status(),
        ...     OperationContext(component="status", operation_name="get_status"),
        ...     RetryPolicy(max_retries=2, fallback_value=None),
        ... )
    """
    return await get_executor(context.component).execute(operation, context, policy)


__all__ = [
    "ResilientExecutor",
    "SleepFunc",
    "clear_executors",
    "execute_with_resilience",
    "get_executor",
]
