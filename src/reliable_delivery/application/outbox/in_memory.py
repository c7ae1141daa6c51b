"""Application outbox – InMemoryOutboxStore."""
from __future__ import annotations

import dataclasses
import itertools
import threading
from datetime import datetime

from reliable_delivery.kernel.errors import ConflictError
from reliable_delivery.kernel.messaging import (
    DispatchState,
    IntegrationMessage,
    OutboxRecord,
    OutboxStore,
)


class InMemoryOutboxStore(OutboxStore):
    """Dict-backed outbox for tests and single-process use.

    Each transition holds only the lock of the record it touches.
    """

    def __init__(self) -> None:
        self._records: dict[str, OutboxRecord] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._positions = itertools.count(1)

    def _lock(self, record_id: str) -> threading.Lock:
        # only live records are tracked; an unknown id gets a throwaway lock
        if record_id not in self._records:
            return threading.Lock()
        return self._locks.setdefault(record_id, threading.Lock())

    async def save(self, message: IntegrationMessage) -> OutboxRecord:
        record = OutboxRecord(message=message, position=next(self._positions))
        if self._records.setdefault(message.message_id, record) is not record:
            raise ConflictError(f"Outbox already holds message '{message.message_id}'")
        return dataclasses.replace(record)

    async def list_undispatched(
        self,
        limit: int = 100,
        due_at: datetime | None = None,
    ) -> list[OutboxRecord]:
        pending = [
            r for r in list(self._records.values())
            if r.state is DispatchState.PENDING and (due_at is None or r.is_due(due_at))
        ]
        pending.sort(key=lambda r: r.position)
        return [dataclasses.replace(r) for r in pending[:limit]]

    async def try_claim(
        self,
        record_id: str,
        owner: str,
        now: datetime,
        lease_until: datetime,
    ) -> OutboxRecord | None:
        record = self._records.get(record_id)
        if record is None:
            return None
        with self._lock(record_id):
            if not record.is_claimable(now):
                return None
            record.claimed_by = owner
            record.claimed_until = lease_until
            return dataclasses.replace(record)

    async def mark_dispatched(self, record_id: str, owner: str, now: datetime) -> bool:
        with self._lock(record_id):
            record = self._owned(record_id, owner)
            if record is None:
                return False
            record.state = DispatchState.DISPATCHED
            record.dispatched_at = now
            record.claimed_by = None
            record.claimed_until = None
            return True

    async def record_failure(
        self,
        record_id: str,
        owner: str,
        error: str,
        next_retry_at: datetime,
    ) -> bool:
        with self._lock(record_id):
            record = self._owned(record_id, owner)
            if record is None:
                return False
            record.attempts += 1
            record.last_error = error
            record.next_retry_at = next_retry_at
            record.claimed_by = None
            record.claimed_until = None
            return True

    async def mark_failed(self, record_id: str, owner: str, error: str) -> bool:
        with self._lock(record_id):
            record = self._owned(record_id, owner)
            if record is None:
                return False
            record.attempts += 1
            record.last_error = error
            record.state = DispatchState.FAILED
            record.claimed_by = None
            record.claimed_until = None
            return True

    async def requeue(self, record_id: str) -> bool:
        with self._lock(record_id):
            record = self._records.get(record_id)
            if record is None or record.state is not DispatchState.FAILED:
                return False
            record.state = DispatchState.PENDING
            record.attempts = 0
            record.next_retry_at = None
            return True

    async def get(self, record_id: str) -> OutboxRecord | None:
        record = self._records.get(record_id)
        return dataclasses.replace(record) if record is not None else None

    async def archive_dispatched(self, before: datetime) -> int:
        archived = 0
        for record_id, record in list(self._records.items()):
            if (
                record.state is DispatchState.DISPATCHED
                and record.dispatched_at is not None
                and record.dispatched_at < before
            ):
                with self._lock(record_id):
                    del self._records[record_id]
                    self._locks.pop(record_id, None)
                archived += 1
        return archived

    async def count_pending(self) -> int:
        return sum(1 for r in list(self._records.values()) if r.state is DispatchState.PENDING)

    def all_records(self) -> list[OutboxRecord]:
        """Return every stored record in insertion order (useful in tests)."""
        return sorted((dataclasses.replace(r) for r in self._records.values()), key=lambda r: r.position)

    def _owned(self, record_id: str, owner: str) -> OutboxRecord | None:
        record = self._records.get(record_id)
        if record is None or record.state is not DispatchState.PENDING or record.claimed_by != owner:
            return None
        return record


__all__ = ["InMemoryOutboxStore"]
