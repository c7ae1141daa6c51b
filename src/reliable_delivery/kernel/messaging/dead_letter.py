"""Kernel messaging – dead-letter queue port."""
from __future__ import annotations

import abc
import dataclasses
from datetime import UTC, datetime
from uuid import uuid4

from reliable_delivery.kernel.messaging.message import IntegrationMessage


@dataclasses.dataclass
class DeadLetterEntry:
    """A message that could not be delivered after all retries."""

    message: IntegrationMessage
    reason: str = ""
    attempts: int = 0
    id: str = dataclasses.field(default_factory=lambda: str(uuid4()))
    failed_at: datetime = dataclasses.field(default_factory=lambda: datetime.now(UTC))
    replayed: bool = False


class DeadLetterStore(abc.ABC):
    """Port: holding area for messages awaiting manual inspection."""

    @abc.abstractmethod
    async def push(self, entry: DeadLetterEntry) -> None: ...

    @abc.abstractmethod
    async def list(self, limit: int = 100) -> list[DeadLetterEntry]:
        """Return at most *limit* entries that were not replayed (oldest first)."""

    @abc.abstractmethod
    async def get(self, entry_id: str) -> DeadLetterEntry | None: ...

    @abc.abstractmethod
    async def mark_replayed(self, entry_id: str) -> None: ...


__all__ = ["DeadLetterEntry", "DeadLetterStore"]
