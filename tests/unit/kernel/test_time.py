"""Unit tests for kernel time utilities."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from reliable_delivery.kernel.time import FrozenClock, SystemClock, as_utc, utc_now


class TestSystemClock:
    def test_now_returns_utc_aware_datetime(self) -> None:
        result = SystemClock().now()
        assert result.tzinfo is not None
        assert result.utcoffset() == timedelta(0)

    def test_timestamp_returns_float(self) -> None:
        ts = SystemClock().timestamp()
        assert isinstance(ts, float)
        assert ts > 0


class TestFrozenClock:
    def test_now_is_fixed(self) -> None:
        fixed = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)
        clk = FrozenClock(fixed)
        assert clk.now() == fixed
        assert clk.now() == fixed

    def test_advance(self) -> None:
        clk = FrozenClock(datetime(2026, 3, 1, tzinfo=UTC))
        clk.advance(minutes=5)
        assert clk.now() == datetime(2026, 3, 1, 0, 5, tzinfo=UTC)

    def test_advance_by_timedelta_returns_new_instant(self) -> None:
        clk = FrozenClock(datetime(2026, 3, 1, tzinfo=UTC))
        assert clk.advance(timedelta(hours=1), minutes=30) == datetime(2026, 3, 1, 1, 30, tzinfo=UTC)

    def test_cannot_move_backwards(self) -> None:
        with pytest.raises(ValueError):
            FrozenClock(datetime(2026, 3, 1, tzinfo=UTC)).advance(seconds=-1)

    def test_requires_aware_start(self) -> None:
        with pytest.raises(ValueError):
            FrozenClock(datetime(2026, 3, 1))

    def test_timestamp_matches_now(self) -> None:
        clk = FrozenClock(datetime(2026, 3, 1, tzinfo=UTC))
        assert clk.timestamp() == clk.now().timestamp()


class TestHelpers:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo is not None

    def test_as_utc_attaches_tz_to_naive(self) -> None:
        assert as_utc(datetime(2026, 1, 1, 12)) == datetime(2026, 1, 1, 12, tzinfo=UTC)

    def test_as_utc_keeps_aware(self) -> None:
        aware = datetime(2026, 1, 1, tzinfo=UTC)
        assert as_utc(aware) is aware

    def test_as_utc_none(self) -> None:
        assert as_utc(None) is None
