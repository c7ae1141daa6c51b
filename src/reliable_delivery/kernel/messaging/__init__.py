"""Kernel messaging – messages, outbox, inbox, idempotency, dead letters (ports only)."""
from reliable_delivery.kernel.messaging.message import (
    EventName,
    IntegrationMessage,
    MessageId,
    MessageTransport,
)
from reliable_delivery.kernel.messaging.outbox import (
    DispatchState,
    OutboxRecord,
    OutboxStore,
)
from reliable_delivery.kernel.messaging.inbox import InboxRecord, InboxStore
from reliable_delivery.kernel.messaging.idempotency import (
    IdempotencyBackend,
    IdempotencyKey,
    IdempotencyRecord,
    IdempotencyStatus,
    UNSTORABLE_RESPONSE,
)
from reliable_delivery.kernel.messaging.dead_letter import DeadLetterEntry, DeadLetterStore

__all__ = [
    "DeadLetterEntry",
    "DeadLetterStore",
    "DispatchState",
    "EventName",
    "IdempotencyBackend",
    "IdempotencyKey",
    "IdempotencyRecord",
    "IdempotencyStatus",
    "InboxRecord",
    "InboxStore",
    "IntegrationMessage",
    "MessageId",
    "MessageTransport",
    "OutboxRecord",
    "OutboxStore",
    "UNSTORABLE_RESPONSE",
]
