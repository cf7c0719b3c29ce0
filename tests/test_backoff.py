"""Tests for persevere.execution.backoff module."""

import random

import pytest

from persevere.core.config import RetryPolicy
from persevere.execution.backoff import BackoffSchedule


class TestExponentialDelays:
    """Delay before retry k is base * 2**(k-1)."""

    def test_first_retry_waits_base_delay(self) -> None:
        assert BackoffSchedule(base_delay=0.1).delay_for_retry(1) == pytest.approx(0.1)

    def test_doubles_per_retry(self) -> None:
        schedule = BackoffSchedule(base_delay=1.0)
        assert schedule.delays(5) == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_zero_base_delay(self) -> None:
        assert BackoffSchedule(base_delay=0.0).delays(3) == [0.0, 0.0, 0.0]

    def test_retry_number_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="retry_number must be"):
            BackoffSchedule(base_delay=1.0).delay_for_retry(0)

    def test_delays_zero_retries(self) -> None:
        assert BackoffSchedule(base_delay=1.0).delays(0) == []


class TestCapAndJitter:
    def test_max_delay_caps(self) -> None:
        schedule = BackoffSchedule(base_delay=1.0, max_delay=5.0)
        assert schedule.delays(5) == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_jitter_only_adds(self) -> None:
        schedule = BackoffSchedule(base_delay=1.0, jitter_factor=0.5, rng=random.Random(42))
        for k in range(1, 6):
            base = 2 ** (k - 1)
            delay = schedule.delay_for_retry(k)
            assert base <= delay <= base * 1.5

    def test_seeded_jitter_is_reproducible(self) -> None:
        a = BackoffSchedule(base_delay=1.0, jitter_factor=0.25, rng=random.Random(7))
        b = BackoffSchedule(base_delay=1.0, jitter_factor=0.25, rng=random.Random(7))
        assert a.delays(4) == b.delays(4)


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"base_delay": -1.0}, "base_delay must be"),
            ({"base_delay": 10.0, "max_delay": 5.0}, "max_delay must be"),
            ({"base_delay": 1.0, "exponential_base": 0.5}, "exponential_base must be"),
            ({"base_delay": 1.0, "jitter_factor": 1.5}, "jitter_factor must be"),
        ],
        ids=["negative-base", "cap-below-base", "shrinking-base", "jitter-too-large"],
    )
    def test_invalid(self, kwargs: dict, match: str) -> None:
        with pytest.raises(ValueError, match=match):
            BackoffSchedule(**kwargs)


class TestFromPolicy:
    def test_copies_policy_timing(self) -> None:
        policy = RetryPolicy(base_delay_seconds=0.25, max_delay_seconds=1.0, jitter_factor=0.1)
        schedule = BackoffSchedule.from_policy(policy)

        assert schedule.base_delay == 0.25
        assert schedule.max_delay == 1.0
        assert schedule.jitter_factor == 0.1

    def test_default_policy_schedule(self) -> None:
        schedule = BackoffSchedule.from_policy(RetryPolicy())
        assert schedule.delays(3) == [1.0, 2.0, 4.0]
