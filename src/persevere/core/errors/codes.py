"""Error classes used to make retry decisions.

persevere sorts every failure into one of two classes:

**TRANSIENT**
    Network/connectivity-flavored failures that are likely to succeed if
    the operation is attempted again (connection refused, timeouts,
    temporarily unavailable services).

**TERMINAL**
    Everything else: validation errors, authorization failures, missing
    resources, business-rule violations, configuration errors and any
    message the classifier does not recognize. Retrying these is futile.

Usage
-----

Example::

    error_class = classifier.classify_exception(exc)
    if error_class.is_retriable:
        await asyncio.sleep(delay)
"""

from __future__ import annotations

from enum import Enum


class ErrorClass(str, Enum):
    """Retry-eligibility tag produced by the error classifier.

    Carries no data beyond its identity; the executor matches on it to
    decide between retrying and resolving.
    """

    TRANSIENT = "transient"
    """Worth retrying: connectivity-related and likely to clear up."""

    TERMINAL = "terminal"
    """Retry is futile: surface the error (or a fallback) immediately."""

    @property
    def is_retriable(self) -> bool:
        return self is ErrorClass.TRANSIENT
