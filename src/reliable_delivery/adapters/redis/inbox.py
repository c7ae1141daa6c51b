"""Redis adapter – RedisInboxStore."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from reliable_delivery.adapters.redis.client import storage_errors
from reliable_delivery.kernel.messaging import InboxStore
from reliable_delivery.kernel.time import Clock, SystemClock


class RedisInboxStore(InboxStore):
    """Inbox keyed by ``SET key value NX EX retention``.

    The value is the processing timestamp (epoch seconds).  Redis expires
    records after *retention_seconds*; :meth:`purge_processed_before` covers
    shorter ad-hoc retention windows.
    """

    def __init__(
        self,
        client: Any,
        *,
        retention_seconds: int = 7 * 86400,
        prefix: str = "inbox:",
        clock: Clock | None = None,
    ) -> None:
        self._client = client
        self._retention = retention_seconds
        self._prefix = prefix
        self._clock = clock or SystemClock()

    def _key(self, message_id: str) -> str:
        return f"{self._prefix}{message_id}"

    async def try_process(self, message_id: str) -> bool:
        async with storage_errors("inbox"):
            stamp = str(self._clock.timestamp())
            result = await self._client.set(self._key(message_id), stamp, nx=True, ex=self._retention)
        return bool(result)

    async def release(self, message_id: str) -> None:
        async with storage_errors("inbox"):
            await self._client.delete(self._key(message_id))

    async def contains(self, message_id: str) -> bool:
        async with storage_errors("inbox"):
            return bool(await self._client.exists(self._key(message_id)))

    async def purge_processed_before(self, cutoff: datetime) -> int:
        limit = cutoff.timestamp()
        purged = 0
        async with storage_errors("inbox"):
            async for key in self._client.scan_iter(match=f"{self._prefix}*"):
                raw = await self._client.get(key)
                if raw is not None and float(raw) < limit:
                    purged += await self._client.delete(key)
        return purged


__all__ = ["RedisInboxStore"]
