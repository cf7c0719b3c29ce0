"""Cache of recent success values usable as fallbacks.

When a policy sets ``use_cached_fallback``, an execution that fails without
an explicit fallback returns the last value the same operation produced,
provided it is younger than the configured maximum age.

Entries are keyed by ``component.operation_name`` (see
``OperationContext.key``).
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any

from persevere.core.constants import FALLBACK_CACHE_MAX_AGE_SECONDS
from persevere.core.logging import get_logger

_logger = get_logger("fallback_cache")


@dataclass(frozen=True)
class CachedFallback:
    """A cached value together with where and when it was obtained.

    Attributes:
        value: The cached success value.
        stored_at: Monotonic timestamp of the store.
        source: Free-form label of the producer (usually the request ID).
    """

    value: Any
    stored_at: float
    source: str

    def age(self, now: float) -> float:
        return now - self.stored_at


class FallbackCache:
    """Thread-safe store of the latest success value per operation.

    Example:
        cache = FallbackCache()
        cache.put("tasks.fetch", tasks, source="req_1")
        entry = cache.get("tasks.fetch", max_age_seconds=60)
        if entry is not None:
            return entry.value
    """

    def __init__(
        self,
        default_max_age_seconds: float = FALLBACK_CACHE_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            default_max_age_seconds: Age limit used when ``get`` is not given one.
            clock: Monotonic time source; injectable for tests.
        """
        if default_max_age_seconds <= 0:
            raise ValueError("default_max_age_seconds must be positive")
        self.default_max_age_seconds = default_max_age_seconds
        self._clock = clock
        self._entries: dict[str, CachedFallback] = {}
        self._lock = Lock()

    def put(self, key: str, value: Any, source: str) -> None:
        """Store ``value`` as the latest result for ``key``."""
        with self._lock:
            self._entries[key] = CachedFallback(
                value=value, stored_at=self._clock(), source=source
            )

    def get(self, key: str, max_age_seconds: float | None = None) -> CachedFallback | None:
        """Return the entry for ``key`` if it is fresh enough.

        Expired entries are evicted.
        """
        max_age = self.default_max_age_seconds if max_age_seconds is None else max_age_seconds
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            age = entry.age(self._clock())
            if age > max_age:
                del self._entries[key]
                _logger.debug("fallback_cache.expired", key=key, age_seconds=round(age, 2))
                return None
            return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
