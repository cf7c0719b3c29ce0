"""Exponential backoff schedule for retry delays.

The delay before retry *k* (1-indexed) is ``base_delay * 2 ** (k - 1)``:
the first retry waits exactly ``base_delay``, the second twice that, and
so on. An optional cap bounds a single delay, and optional jitter only
ever *adds* time, so the executor always waits at least the computed
exponential delay.

Example usage:
    from persevere.execution.backoff import BackoffSchedule

    schedule = BackoffSchedule(base_delay=0.5)
    schedule.delay_for_retry(1)  # 0.5
    schedule.delay_for_retry(3)  # 2.0
    schedule.delays(4)           # [0.5, 1.0, 2.0, 4.0]
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from persevere.core.config import RetryPolicy
from persevere.core.constants import BACKOFF_MULTIPLIER


@dataclass(frozen=True)
class BackoffSchedule:
    """Computes backoff delays for successive retries.

    Attributes:
        base_delay: Delay in seconds before the first retry.
        max_delay: Optional cap on any single delay.
        exponential_base: Multiplier between successive delays.
        jitter_factor: Extra random delay as a fraction (0.0-1.0) of the
            computed delay. Zero keeps the schedule deterministic.
        rng: Random source for jitter; inject a seeded one for tests.
    """

    base_delay: float
    max_delay: float | None = None
    exponential_base: float = BACKOFF_MULTIPLIER
    jitter_factor: float = 0.0
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay is not None and self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")
        if not 0.0 <= self.jitter_factor <= 1.0:
            raise ValueError(f"jitter_factor must be 0.0-1.0, got {self.jitter_factor}")

    @classmethod
    def from_policy(
        cls,
        policy: RetryPolicy,
        rng: random.Random | None = None,
    ) -> BackoffSchedule:
        """Build the schedule described by a retry policy."""
        return cls(
            base_delay=policy.base_delay_seconds,
            max_delay=policy.max_delay_seconds,
            jitter_factor=policy.jitter_factor,
            rng=rng or random.Random(),
        )

    def delay_for_retry(self, retry_number: int) -> float:
        """Delay in seconds before the given retry.

        Args:
            retry_number: 1 for the first retry (second attempt), 2 for the
                second retry, and so on.

        Returns:
            The backoff delay, capped and jittered as configured.
        """
        if retry_number < 1:
            raise ValueError(f"retry_number must be >= 1, got {retry_number}")

        delay = self.base_delay * (self.exponential_base ** (retry_number - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return self._apply_jitter(delay)

    def delays(self, retries: int) -> list[float]:
        """Delays for the first ``retries`` retries, in order."""
        return [self.delay_for_retry(k) for k in range(1, retries + 1)]

    def _apply_jitter(self, delay: float) -> float:
        # Add 0-jitter_factor of the delay; never shortens the wait
        if self.jitter_factor <= 0:
            return delay
        return delay + delay * self.jitter_factor * self.rng.random()
