"""Unit tests for backoff and jitter strategies."""

from __future__ import annotations

import random

import pytest

from reliable_delivery.resilience.retry import ExponentialBackoff, FullJitter, NoJitter


class TestExponentialBackoff:
    @pytest.mark.parametrize("attempt,expected", [(1, 0.5), (2, 1.0), (3, 2.0), (4, 4.0)])
    def test_doubles_per_attempt(self, attempt: int, expected: float) -> None:
        assert ExponentialBackoff(base_delay=0.5).compute(attempt) == expected

    def test_capped_at_max(self) -> None:
        assert ExponentialBackoff(base_delay=1.0, max_delay=10.0).compute(20) == 10.0

    def test_huge_attempt_does_not_overflow(self) -> None:
        assert ExponentialBackoff(base_delay=1.0, max_delay=10.0).compute(5000) == 10.0

    def test_attempt_zero_uses_base(self) -> None:
        assert ExponentialBackoff(base_delay=0.5).compute(0) == 0.5

    def test_rejects_non_positive_base(self) -> None:
        with pytest.raises(ValueError):
            ExponentialBackoff(base_delay=0)

    def test_rejects_max_below_base(self) -> None:
        with pytest.raises(ValueError):
            ExponentialBackoff(base_delay=2.0, max_delay=1.0)


class TestJitter:
    def test_no_jitter_is_identity(self) -> None:
        assert NoJitter().apply(3.0) == 3.0

    def test_full_jitter_within_bounds(self) -> None:
        jitter = FullJitter()
        for _ in range(100):
            assert 0.0 <= jitter.apply(2.0) <= 2.0

    def test_full_jitter_seeded_is_reproducible(self) -> None:
        first = FullJitter(random.Random(7))
        second = FullJitter(random.Random(7))
        assert [first.apply(1.0) for _ in range(5)] == [second.apply(1.0) for _ in range(5)]

    def test_zero_delay_stays_zero(self) -> None:
        assert FullJitter().apply(0.0) == 0.0
