"""Resilience – jitter applied to relay redelivery delays."""
from __future__ import annotations

import abc
import random


class JitterStrategy(abc.ABC):
    """Randomise a backoff delay so relays do not retry in lockstep."""

    @abc.abstractmethod
    def apply(self, delay: float) -> float: ...


class NoJitter(JitterStrategy):
    """Deterministic delays; used by tests that assert ``next_retry_at``."""

    def apply(self, delay: float) -> float:
        return delay


class FullJitter(JitterStrategy):
    """Uniform in ``[0, delay]``.

    Pass a seeded ``random.Random`` as *rng* for a reproducible sequence.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def apply(self, delay: float) -> float:
        if delay <= 0:
            return 0.0
        return self._rng.uniform(0, delay)


__all__ = ["FullJitter", "JitterStrategy", "NoJitter"]
