"""Application idempotency – InMemoryIdempotencyBackend."""
from __future__ import annotations

import dataclasses
import threading
from datetime import datetime

from reliable_delivery.kernel.messaging import (
    IdempotencyBackend,
    IdempotencyRecord,
    IdempotencyStatus,
)


class InMemoryIdempotencyBackend(IdempotencyBackend):
    """Dict-backed idempotency records guarded by one lock per key."""

    def __init__(self) -> None:
        self._records: dict[str, IdempotencyRecord] = {}
        self._locks: dict[str, threading.Lock] = {}

    def _lock(self, key: str) -> threading.Lock:
        return self._locks.setdefault(key, threading.Lock())

    async def begin(
        self,
        key: str,
        *,
        now: datetime,
        expires_at: datetime,
        locked_until: datetime,
    ) -> IdempotencyRecord | None:
        with self._lock(key):
            current = self._records.get(key)
            if current is None or current.is_reclaimable(now):
                self._records[key] = IdempotencyRecord(
                    key=key,
                    created_at=now,
                    expires_at=expires_at,
                    locked_until=locked_until,
                )
                return None
            return dataclasses.replace(current)

    async def get(self, key: str) -> IdempotencyRecord | None:
        record = self._records.get(key)
        return dataclasses.replace(record) if record is not None else None

    async def complete(self, key: str, response: bytes) -> None:
        with self._lock(key):
            record = self._records.get(key)
            if record is not None:
                record.status = IdempotencyStatus.COMPLETED
                record.response = response
                record.locked_until = None

    async def abandon(self, key: str) -> None:
        with self._lock(key):
            record = self._records.get(key)
            if record is not None and record.status is IdempotencyStatus.PROCESSING:
                del self._records[key]
            if key not in self._records:
                self._locks.pop(key, None)

    async def purge_expired(self, now: datetime) -> int:
        purged = 0
        for key in list(self._records):
            with self._lock(key):
                record = self._records.get(key)
                if record is not None and record.is_expired(now):
                    del self._records[key]
                    self._locks.pop(key, None)
                    purged += 1
        return purged

    def all_keys(self) -> list[str]:
        return list(self._records.keys())


__all__ = ["InMemoryIdempotencyBackend"]
