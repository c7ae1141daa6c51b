"""Resilience – redelivery backoff for the outbox relay."""
from __future__ import annotations

import abc


class BackoffStrategy(abc.ABC):
    """Seconds to hold a record back after its *attempts*-th failed send."""

    @abc.abstractmethod
    def compute(self, attempt: int) -> float: ...


class ExponentialBackoff(BackoffStrategy):
    """``base_delay * 2^(attempt - 1)``, never more than ``max_delay``.

    Attempt ``1`` (the first failure) waits ``base_delay``; attempts below
    ``1`` are treated as the first.
    """

    def __init__(self, base_delay: float = 0.5, max_delay: float = 300.0) -> None:
        if base_delay <= 0:
            raise ValueError(f"base_delay must be > 0, got {base_delay}")
        if max_delay < base_delay:
            raise ValueError(f"max_delay ({max_delay}) must be >= base_delay ({base_delay})")
        self._base = base_delay
        self._max = max_delay

    @property
    def max_delay(self) -> float:
        return self._max

    def compute(self, attempt: int) -> float:
        exponent = max(attempt - 1, 0)
        # float(2**1024) raises OverflowError
        if exponent >= 64:
            return self._max
        return min(self._base * (2**exponent), self._max)


__all__ = ["BackoffStrategy", "ExponentialBackoff"]
