"""Application outbox – relay plus in-memory outbox and dead-letter stores."""
from reliable_delivery.application.outbox.dead_letter import InMemoryDeadLetterStore
from reliable_delivery.application.outbox.in_memory import InMemoryOutboxStore
from reliable_delivery.application.outbox.relay import OutboxRelay, RelayReport

__all__ = [
    "InMemoryDeadLetterStore",
    "InMemoryOutboxStore",
    "OutboxRelay",
    "RelayReport",
]
