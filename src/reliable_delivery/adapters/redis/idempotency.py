"""Redis adapter – RedisIdempotencyBackend."""
from __future__ import annotations

import base64
import json
import math
from datetime import UTC, datetime
from typing import Any

from reliable_delivery.adapters.redis.client import storage_errors
from reliable_delivery.kernel.messaging import (
    IdempotencyBackend,
    IdempotencyRecord,
    IdempotencyStatus,
)

# KEYS[1] record key; ARGV[1] new record, ARGV[2] now (epoch s), ARGV[3] ttl (ms).
# Returns nil when the caller now owns the key, else the live record.
_BEGIN = """
local current = redis.call("GET", KEYS[1])
if current then
    local rec = cjson.decode(current)
    local now = tonumber(ARGV[2])
    local expired = rec.expires_at <= now
    local stale = rec.status == "PROCESSING" and rec.locked_until > 0 and rec.locked_until <= now
    if not expired and not stale then
        return current
    end
end
redis.call("SET", KEYS[1], ARGV[1], "PX", ARGV[3])
return false
"""

# ARGV[1] base64 response.
_COMPLETE = """
local current = redis.call("GET", KEYS[1])
if not current then
    return 0
end
local rec = cjson.decode(current)
rec.status = "COMPLETED"
rec.response = ARGV[1]
rec.locked_until = 0
redis.call("SET", KEYS[1], cjson.encode(rec), "KEEPTTL")
return 1
"""

_ABANDON = """
local current = redis.call("GET", KEYS[1])
if current and cjson.decode(current).status == "PROCESSING" then
    return redis.call("DEL", KEYS[1])
end
return 0
"""


class RedisIdempotencyBackend(IdempotencyBackend):
    """Idempotency records as JSON strings with a Redis TTL.

    Claims, takeovers and completion run as Lua scripts so each is atomic
    on the server.  Expiry is left to Redis, so :meth:`purge_expired` has
    nothing to do.
    """

    def __init__(self, client: Any, *, prefix: str = "idempotency:") -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def begin(
        self,
        key: str,
        *,
        now: datetime,
        expires_at: datetime,
        locked_until: datetime,
    ) -> IdempotencyRecord | None:
        record = {
            "key": key,
            "status": IdempotencyStatus.PROCESSING.value,
            "response": None,
            "created_at": now.timestamp(),
            "expires_at": expires_at.timestamp(),
            "locked_until": locked_until.timestamp(),
        }
        ttl_ms = max(1, math.ceil((expires_at - now).total_seconds() * 1000))
        async with storage_errors("idempotency"):
            current = await self._client.eval(
                _BEGIN, 1, self._key(key), json.dumps(record), str(now.timestamp()), str(ttl_ms)
            )
        if current is None:
            return None
        return self._decode(current)

    async def get(self, key: str) -> IdempotencyRecord | None:
        async with storage_errors("idempotency"):
            raw = await self._client.get(self._key(key))
        return self._decode(raw) if raw is not None else None

    async def complete(self, key: str, response: bytes) -> None:
        async with storage_errors("idempotency"):
            await self._client.eval(_COMPLETE, 1, self._key(key), base64.b64encode(response).decode())

    async def abandon(self, key: str) -> None:
        async with storage_errors("idempotency"):
            await self._client.eval(_ABANDON, 1, self._key(key))

    async def purge_expired(self, now: datetime) -> int:
        return 0

    def _decode(self, raw: bytes | str) -> IdempotencyRecord:
        data = json.loads(raw)
        response = data.get("response")
        locked_until = data.get("locked_until") or 0
        return IdempotencyRecord(
            key=data["key"],
            status=IdempotencyStatus(data["status"]),
            response=base64.b64decode(response) if response else None,
            created_at=datetime.fromtimestamp(data["created_at"], UTC),
            expires_at=datetime.fromtimestamp(data["expires_at"], UTC),
            locked_until=datetime.fromtimestamp(locked_until, UTC) if locked_until else None,
        )


__all__ = ["RedisIdempotencyBackend"]
