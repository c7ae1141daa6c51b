"""Application idempotency – exactly-once execution per idempotency key."""
from reliable_delivery.application.idempotency.in_memory import InMemoryIdempotencyBackend
from reliable_delivery.application.idempotency.serializer import (
    JsonResponseSerializer,
    ResponseSerializer,
)
from reliable_delivery.application.idempotency.store import IdempotencyKeyStore, Operation

__all__ = [
    "IdempotencyKeyStore",
    "InMemoryIdempotencyBackend",
    "JsonResponseSerializer",
    "Operation",
    "ResponseSerializer",
]
