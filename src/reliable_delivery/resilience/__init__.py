"""Resilience – backoff, jitter and timeouts."""

from reliable_delivery.resilience.retry import (
    BackoffStrategy,
    ExponentialBackoff,
    FullJitter,
    JitterStrategy,
    NoJitter,
)
from reliable_delivery.resilience.timeouts import TimeoutPolicy

__all__ = [
    "BackoffStrategy",
    "ExponentialBackoff",
    "FullJitter",
    "JitterStrategy",
    "NoJitter",
    "TimeoutPolicy",
]
