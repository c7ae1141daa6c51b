"""SQLAlchemy adapter – SqlAlchemyDeadLetterStore."""
from __future__ import annotations

from typing import Any

from sqlalchemy import insert, select, update

from reliable_delivery.adapters.sqlalchemy.models import (
    dead_letter_table,
    message_from_dict,
    message_to_dict,
)
from reliable_delivery.adapters.sqlalchemy.session import SqlAlchemyStore
from reliable_delivery.kernel.messaging import DeadLetterEntry, DeadLetterStore
from reliable_delivery.kernel.time import as_utc

t = dead_letter_table


class SqlAlchemyDeadLetterStore(SqlAlchemyStore, DeadLetterStore):
    """Durable dead-letter queue; entries stay until replayed."""

    store_name = "dead_letter"

    async def push(self, entry: DeadLetterEntry) -> None:
        async with self._transaction() as session:
            await session.execute(
                insert(t).values(
                    id=entry.id,
                    message=message_to_dict(entry.message),
                    reason=entry.reason,
                    attempts=entry.attempts,
                    failed_at=entry.failed_at,
                    replayed=entry.replayed,
                )
            )

    async def list(self, limit: int = 100) -> list[DeadLetterEntry]:
        stmt = select(t).where(t.c.replayed.is_(False)).order_by(t.c.failed_at).limit(limit)
        async with self._transaction() as session:
            rows = (await session.execute(stmt)).fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def get(self, entry_id: str) -> DeadLetterEntry | None:
        async with self._transaction() as session:
            row = (await session.execute(select(t).where(t.c.id == entry_id))).first()
        return self._row_to_entry(row) if row is not None else None

    async def mark_replayed(self, entry_id: str) -> None:
        async with self._transaction() as session:
            await session.execute(update(t).where(t.c.id == entry_id).values(replayed=True))

    def _row_to_entry(self, row: Any) -> DeadLetterEntry:
        return DeadLetterEntry(
            message=message_from_dict(row.message),
            reason=row.reason,
            attempts=row.attempts,
            id=row.id,
            failed_at=as_utc(row.failed_at),
            replayed=row.replayed,
        )


__all__ = ["SqlAlchemyDeadLetterStore"]
