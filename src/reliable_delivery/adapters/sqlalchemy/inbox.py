"""SQLAlchemy adapter – SqlAlchemyInboxStore."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from reliable_delivery.adapters.sqlalchemy.models import inbox_table
from reliable_delivery.adapters.sqlalchemy.session import SqlAlchemyStore, insert_if_absent
from reliable_delivery.kernel.messaging import InboxStore
from reliable_delivery.kernel.time import Clock, SystemClock


class SqlAlchemyInboxStore(SqlAlchemyStore, InboxStore):
    """Inbox backed by a primary-key constraint on ``message_id``.

    ``try_process`` is a single ``INSERT ... ON CONFLICT DO NOTHING``; the
    database decides the winner between concurrent deliveries.
    """

    store_name = "inbox"

    def __init__(
        self,
        session_factory: Any,
        session: AsyncSession | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session_factory, session)
        self._clock = clock or SystemClock()

    async def try_process(self, message_id: str) -> bool:
        async with self._transaction() as session:
            return await insert_if_absent(
                session,
                inbox_table,
                {"message_id": message_id, "processed_at": self._clock.now()},
            )

    async def release(self, message_id: str) -> None:
        async with self._transaction() as session:
            await session.execute(delete(inbox_table).where(inbox_table.c.message_id == message_id))

    async def contains(self, message_id: str) -> bool:
        stmt = select(inbox_table.c.message_id).where(inbox_table.c.message_id == message_id)
        async with self._transaction() as session:
            return (await session.execute(stmt)).first() is not None

    async def purge_processed_before(self, cutoff: datetime) -> int:
        stmt = delete(inbox_table).where(inbox_table.c.processed_at < cutoff)
        async with self._transaction() as session:
            result = await session.execute(stmt)
        return result.rowcount


__all__ = ["SqlAlchemyInboxStore"]
