from reliable_delivery.resilience.retry.backoff import BackoffStrategy, ExponentialBackoff
from reliable_delivery.resilience.retry.jitter import FullJitter, JitterStrategy, NoJitter

__all__ = [
    "BackoffStrategy",
    "ExponentialBackoff",
    "FullJitter",
    "JitterStrategy",
    "NoJitter",
]
