"""Exceptions raised by persevere itself.

Errors raised by wrapped operations are never converted into these types;
the executor re-raises them unmodified. This hierarchy only covers
problems with persevere's own setup.
"""

from __future__ import annotations

from pathlib import Path


class PersevereError(Exception):
    """Base class for all persevere errors."""


class ConfigurationError(PersevereError):
    """A resilience configuration could not be loaded or validated.

    Attributes:
        source: File path or ``"<string>"`` the configuration came from.
    """

    def __init__(self, message: str, source: Path | str | None = None) -> None:
        super().__init__(message)
        self.source = source

    def __str__(self) -> str:
        base = super().__str__()
        if self.source is None:
            return base
        return f"{base} (source: {self.source})"
