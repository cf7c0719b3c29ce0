"""ErrorClassifier implementation for keyword-based error classification.

Decides whether a failure is TRANSIENT (worth retrying) or TERMINAL from the
free text of its message. Matching is a case-insensitive substring search
against a hand-maintained allow-list of connectivity indicators; anything
that does not match is TERMINAL.

The allow-list is a pragmatic but fragile strategy: a message that happens
to contain "reset" or "retry" is retried even when the underlying failure is
permanent, and a connectivity failure with unusual wording is not. The
executor only depends on ``ErrorClassifierProtocol``, so a structured
error-code classifier can replace this one without touching the retry loop.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from persevere.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS
from persevere.core.logging import get_logger

from .codes import ErrorClass

# Module-level logger for error classification
_logger = get_logger("errors")


# =============================================================================
# Default transient indicators.
# Kept at module scope so the list is easily reviewable/testable as data.
# Each entry is a literal substring, matched case-insensitively.
# =============================================================================

DEFAULT_TRANSIENT_INDICATORS: tuple[str, ...] = (
    "network",
    "connection",
    "timeout",
    "timed out",
    "econnrefused",
    "econnreset",
    "econnaborted",
    "etimedout",
    "unavailable",
    "retry",
    "temporar",  # temporary, temporarily
    "reset",
)


def _compile_indicators(indicators: Iterable[str]) -> re.Pattern[str] | None:
    """Merge literal indicators into one case-insensitive alternation regex."""
    escaped = [re.escape(i) for i in indicators if i]
    if not escaped:
        return None
    return re.compile("|".join(escaped), re.IGNORECASE)


@runtime_checkable
class ErrorClassifierProtocol(Protocol):
    """Strategy interface the executor uses to classify failures."""

    def classify_exception(self, error: BaseException) -> ErrorClass: ...


class ErrorClassifier:
    """Classifies error messages as TRANSIENT or TERMINAL.

    Stateless after construction and safe to share between any number of
    concurrent executions.

    Example:
        classifier = ErrorClassifier()
        classifier.classify("ECONNREFUSED: Connection refused")  # TRANSIENT
        classifier.classify("Permission denied")  # TERMINAL
    """

    def __init__(self, transient_indicators: Iterable[str] | None = None) -> None:
        """Initialize classifier with transient indicators.

        Args:
            transient_indicators: Substrings marking a message as transient.
                Defaults to DEFAULT_TRANSIENT_INDICATORS.
        """
        if transient_indicators is None:
            transient_indicators = DEFAULT_TRANSIENT_INDICATORS
        self.transient_indicators: tuple[str, ...] = tuple(transient_indicators)
        self._combined = _compile_indicators(self.transient_indicators)

    def classify(self, message: object) -> ErrorClass:
        """Classify an error message.

        Args:
            message: The textual message of a failure. Anything that is not
                a non-empty string classifies as TERMINAL (fail closed).

        Returns:
            ErrorClass.TRANSIENT if any indicator occurs in the message,
            ErrorClass.TERMINAL otherwise.
        """
        if not isinstance(message, str) or not message:
            return ErrorClass.TERMINAL

        match = self._combined.search(message) if self._combined else None
        result = ErrorClass.TRANSIENT if match else ErrorClass.TERMINAL

        _logger.debug(
            "error_classified",
            error_class=result.value,
            indicator=match.group(0).lower() if match else None,
            message=message[:TRUNCATE_ERROR_MESSAGE_CHARS],
        )
        return result

    def classify_exception(self, error: BaseException) -> ErrorClass:
        """Classify an exception by its message text."""
        return self.classify(str(error))

    def is_transient(self, message: object) -> bool:
        return self.classify(message) is ErrorClass.TRANSIENT
