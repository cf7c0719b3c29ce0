"""Error classification and handling.

Re-exports all public symbols.
"""

from persevere.core.errors.codes import ErrorClass
from persevere.core.errors.exceptions import ConfigurationError, PersevereError
from persevere.core.errors.classifier import (
    DEFAULT_TRANSIENT_INDICATORS,
    ErrorClassifier,
    ErrorClassifierProtocol,
)

__all__ = [
    "ErrorClass",
    "ConfigurationError",
    "PersevereError",
    "DEFAULT_TRANSIENT_INDICATORS",
    "ErrorClassifier",
    "ErrorClassifierProtocol",
]
