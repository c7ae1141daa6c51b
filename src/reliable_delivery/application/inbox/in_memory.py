"""Application inbox – InMemoryInboxStore."""
from __future__ import annotations

from datetime import datetime

from reliable_delivery.kernel.messaging import InboxRecord, InboxStore
from reliable_delivery.kernel.time import Clock, SystemClock


class InMemoryInboxStore(InboxStore):
    """Dict-backed deduplicator.

    ``dict.setdefault`` inserts and returns the winner in one step, which
    makes ``try_process`` a per-key test-and-insert without any lock.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._records: dict[str, InboxRecord] = {}
        self._clock = clock or SystemClock()

    async def try_process(self, message_id: str) -> bool:
        record = InboxRecord(message_id=message_id, processed_at=self._clock.now())
        return self._records.setdefault(message_id, record) is record

    async def release(self, message_id: str) -> None:
        self._records.pop(message_id, None)

    async def contains(self, message_id: str) -> bool:
        return message_id in self._records

    async def purge_processed_before(self, cutoff: datetime) -> int:
        expired = [k for k, r in list(self._records.items()) if r.processed_at < cutoff]
        for key in expired:
            self._records.pop(key, None)
        return len(expired)

    def all_records(self) -> list[InboxRecord]:
        return list(self._records.values())


__all__ = ["InMemoryInboxStore"]
