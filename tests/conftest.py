"""Pytest fixtures for persevere tests."""

import logging
from collections.abc import Generator

import pytest
import structlog

from persevere.core.logging import OperationContext, clear_context
from persevere.execution.audit import InMemoryAuditSink
from persevere.execution.executor import ResilientExecutor, clear_executors
from tests.helpers import RecordingSleep


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    structlog.reset_defaults()
    clear_context()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    structlog.reset_defaults()
    clear_context()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture(autouse=True)
def reset_executor_registry() -> Generator[None, None, None]:
    """Keep the per-component executor registry empty between tests."""
    clear_executors()
    yield
    clear_executors()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def context() -> OperationContext:
    return OperationContext(
        component="TestComponent",
        operation_name="testOperation",
        request_id="test-123",
    )


@pytest.fixture
def executor(audit_sink: InMemoryAuditSink, recording_sleep: RecordingSleep) -> ResilientExecutor:
    """Executor wired to an in-memory sink and a non-blocking sleep."""
    return ResilientExecutor(audit_sink=audit_sink, sleep_func=recording_sleep)
