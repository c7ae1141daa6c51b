"""Application inbox – InboxProcessor."""
from __future__ import annotations

from datetime import timedelta
from typing import Any, Awaitable, Callable

from reliable_delivery.kernel.messaging import InboxStore, IntegrationMessage
from reliable_delivery.kernel.time import Clock, SystemClock
from reliable_delivery.observability.logging import get_logger

__all__ = ["InboxProcessor", "MessageHandler"]

MessageHandler = Callable[[IntegrationMessage], Awaitable[Any]]

logger = get_logger(__name__)


class InboxProcessor:
    """Applies a message's business effect at most once per ``message_id``.

    The handler only runs when :meth:`InboxStore.try_process` grants the
    claim.  If the handler raises, the claim is released and the exception
    propagates so the transport redelivers the message.
    """

    def __init__(self, store: InboxStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()

    async def process(self, message: IntegrationMessage, handler: MessageHandler) -> bool:
        """Return ``True`` if *handler* ran, ``False`` for a duplicate delivery."""
        if not await self._store.try_process(message.message_id):
            logger.info("inbox.duplicate", message_id=message.message_id, event_name=message.event_name)
            return False

        try:
            await handler(message)
        except BaseException:
            await self._store.release(message.message_id)
            logger.warning("inbox.handler_failed", message_id=message.message_id, event_name=message.event_name)
            raise

        logger.debug("inbox.processed", message_id=message.message_id, event_name=message.event_name)
        return True

    async def purge(self, retention: timedelta) -> int:
        """Drop inbox records older than *retention*."""
        purged = await self._store.purge_processed_before(self._clock.now() - retention)
        if purged:
            logger.info("inbox.purged", count=purged)
        return purged
