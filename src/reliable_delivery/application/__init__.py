"""Application – delivery use cases (framework-agnostic)."""

from reliable_delivery.application.idempotency import (
    IdempotencyKeyStore,
    InMemoryIdempotencyBackend,
    JsonResponseSerializer,
    ResponseSerializer,
)
from reliable_delivery.application.inbox import InboxProcessor, InMemoryInboxStore
from reliable_delivery.application.outbox import (
    InMemoryDeadLetterStore,
    InMemoryOutboxStore,
    OutboxRelay,
    RelayReport,
)
from reliable_delivery.application.saga import (
    FunctionStep,
    InMemorySagaStore,
    SagaCompensationFailedError,
    SagaContext,
    SagaCoordinator,
    SagaFailedError,
    SagaInstance,
    SagaStatus,
    SagaStep,
    SagaStore,
)

__all__ = [
    "FunctionStep",
    "IdempotencyKeyStore",
    "InMemoryDeadLetterStore",
    "InMemoryIdempotencyBackend",
    "InMemoryInboxStore",
    "InMemoryOutboxStore",
    "InboxProcessor",
    "JsonResponseSerializer",
    "OutboxRelay",
    "RelayReport",
    "ResponseSerializer",
    "SagaCompensationFailedError",
    "SagaContext",
    "SagaCoordinator",
    "SagaFailedError",
    "SagaInstance",
    "SagaStatus",
    "SagaStep",
    "SagaStore",
]
