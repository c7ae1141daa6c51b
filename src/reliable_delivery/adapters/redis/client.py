"""Redis adapter – client construction and error translation."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from reliable_delivery.kernel.errors import StorageError


def redis_client(url: str, **kwargs: Any) -> aioredis.Redis:
    """Return an async client for *url* (``redis://host:6379/0``)."""
    return aioredis.from_url(url, **kwargs)


@asynccontextmanager
async def storage_errors(store: str) -> AsyncIterator[None]:
    """Re-raise any :class:`~redis.exceptions.RedisError` as ``StorageError``."""
    try:
        yield
    except RedisError as exc:
        raise StorageError(f"{store} store operation failed: {exc}", store=store, cause=exc) from exc


__all__ = ["redis_client", "storage_errors"]
