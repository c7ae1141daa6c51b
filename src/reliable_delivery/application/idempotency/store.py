"""Application idempotency – IdempotencyKeyStore."""
from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable

from reliable_delivery.application.idempotency.serializer import (
    JsonResponseSerializer,
    ResponseSerializer,
)
from reliable_delivery.config import DeliverySettings
from reliable_delivery.kernel.errors import (
    RequestInProgressError,
    SerializationError,
    UnstorableResponseError,
    ValidationError,
)
from reliable_delivery.kernel.messaging import (
    IdempotencyBackend,
    IdempotencyKey,
    IdempotencyStatus,
    UNSTORABLE_RESPONSE,
)
from reliable_delivery.kernel.time import Clock, SystemClock
from reliable_delivery.observability.logging import get_logger

logger = get_logger(__name__)

Operation = Callable[[], Awaitable[Any]]


class IdempotencyKeyStore:
    """Runs an operation at most once per idempotency key.

    * A stored response is replayed without calling the operation.
    * Concurrent callers in this process share the first caller's result.
    * Callers in other processes poll the backend until the owner completes,
      and get :class:`RequestInProgressError` after ``wait_timeout``.
    * A failed or cancelled operation abandons its key; nothing is cached.
    * An operation whose result cannot be serialised still consumes its key:
      it and every later call raise :class:`UnstorableResponseError`.
    * Every caller receives the *deserialized* stored response, so the first
      caller and all replays observe the same value.

    Example::

        store = IdempotencyKeyStore(backend)
        receipt = await store.execute("pay-req-88", lambda: gateway.charge(49.99))
    """

    def __init__(
        self,
        backend: IdempotencyBackend,
        *,
        settings: DeliverySettings | None = None,
        serializer: ResponseSerializer | None = None,
        clock: Clock | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        settings = settings or DeliverySettings()
        self._backend = backend
        self._serializer = serializer or JsonResponseSerializer()
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=settings.idempotency_ttl_seconds)
        self._lock_for = timedelta(seconds=settings.idempotency_lock_seconds)
        self._wait_timeout = settings.idempotency_wait_timeout_seconds
        self._poll_interval = poll_interval
        self._inflight: dict[str, asyncio.Future[Any]] = {}

    async def execute(
        self,
        key: str | IdempotencyKey,
        operation: Operation,
        *,
        ttl: timedelta | None = None,
    ) -> Any:
        """Return the response for *key*, running *operation* only if needed."""
        key_str = str(key)
        if not key_str:
            raise ValidationError("Idempotency key must not be empty")

        inflight = self._inflight.get(key_str)
        if inflight is not None:
            logger.info("idempotency.coalesced", key=key_str)
            return await asyncio.shield(inflight)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[key_str] = future
        try:
            result = await self._execute(key_str, operation, ttl or self._ttl)
        except BaseException as exc:
            if isinstance(exc, asyncio.CancelledError):
                # waiters were not cancelled themselves; tell them to retry
                future.set_exception(RequestInProgressError(key_str))
            else:
                future.set_exception(exc)
            future.exception()  # mark retrieved when nobody is waiting
            raise
        finally:
            self._inflight.pop(key_str, None)
        future.set_result(result)
        return result

    async def purge_expired(self) -> int:
        return await self._backend.purge_expired(self._clock.now())

    async def _execute(self, key: str, operation: Operation, ttl: timedelta) -> Any:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._wait_timeout
        while True:
            now = self._clock.now()
            existing = await self._backend.begin(
                key,
                now=now,
                expires_at=now + ttl,
                locked_until=now + self._lock_for,
            )
            if existing is None:
                break
            if existing.status is IdempotencyStatus.COMPLETED and existing.response is not None:
                if existing.is_unstorable:
                    raise UnstorableResponseError(
                        f"Operation for key {key!r} already ran; its result was not stored",
                        idempotency_key=key,
                    )
                logger.info("idempotency.replayed", key=key)
                return self._serializer.loads(existing.response)
            if loop.time() >= deadline:
                logger.warning("idempotency.in_progress", key=key)
                raise RequestInProgressError(key)
            await asyncio.sleep(self._poll_interval)

        try:
            result = await operation()
        except BaseException:
            await self._backend.abandon(key)
            logger.warning("idempotency.operation_failed", key=key)
            raise
        try:
            payload = self._serializer.dumps(result)
        except SerializationError as exc:
            # the side effect happened; the key stays consumed
            await self._backend.complete(key, UNSTORABLE_RESPONSE)
            logger.error("idempotency.response_unstorable", key=key, error=exc)
            raise UnstorableResponseError(
                f"Operation for key {key!r} ran but its result could not be stored: {exc.message}",
                idempotency_key=key,
                cause=exc,
            ) from exc
        await self._backend.complete(key, payload)
        logger.info("idempotency.executed", key=key)
        return self._serializer.loads(payload)


__all__ = ["IdempotencyKeyStore", "Operation"]
