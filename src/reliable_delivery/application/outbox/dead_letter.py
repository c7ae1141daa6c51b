"""Application outbox – InMemoryDeadLetterStore."""
from __future__ import annotations

from reliable_delivery.kernel.messaging import DeadLetterEntry, DeadLetterStore


class InMemoryDeadLetterStore(DeadLetterStore):
    """List-backed dead-letter queue for tests."""

    def __init__(self) -> None:
        self._entries: dict[str, DeadLetterEntry] = {}

    async def push(self, entry: DeadLetterEntry) -> None:
        self._entries[entry.id] = entry

    async def list(self, limit: int = 100) -> list[DeadLetterEntry]:
        return [e for e in self._entries.values() if not e.replayed][:limit]

    async def get(self, entry_id: str) -> DeadLetterEntry | None:
        return self._entries.get(entry_id)

    async def mark_replayed(self, entry_id: str) -> None:
        entry = self._entries.get(entry_id)
        if entry is not None:
            entry.replayed = True


__all__ = ["InMemoryDeadLetterStore"]
