"""Kernel messaging – inbox (deduplication) port."""
from __future__ import annotations

import abc
import dataclasses
from datetime import UTC, datetime


@dataclasses.dataclass(frozen=True)
class InboxRecord:
    """Marker that *message_id* has been claimed for processing."""

    message_id: str
    processed_at: datetime = dataclasses.field(default_factory=lambda: datetime.now(UTC))


class InboxStore(abc.ABC):
    """Port: at-most-once gate for inbound messages.

    ``try_process`` must be an atomic test-and-insert (unique constraint,
    ``SET NX``, ``dict.setdefault``...).  A read-then-write implementation
    races between two concurrent deliveries of the same message.
    """

    @abc.abstractmethod
    async def try_process(self, message_id: str) -> bool:
        """Return ``True`` only for the first caller presenting *message_id*."""

    @abc.abstractmethod
    async def release(self, message_id: str) -> None:
        """Forget a claim whose business effect did not complete."""

    @abc.abstractmethod
    async def contains(self, message_id: str) -> bool: ...

    @abc.abstractmethod
    async def purge_processed_before(self, cutoff: datetime) -> int:
        """Drop records older than *cutoff* (retention window); return the count."""


__all__ = ["InboxRecord", "InboxStore"]
