"""SQLAlchemy adapter – SqlAlchemyIdempotencyBackend."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete, or_, select, update

from reliable_delivery.adapters.sqlalchemy.models import idempotency_table, utc_or_none
from reliable_delivery.adapters.sqlalchemy.session import SqlAlchemyStore, insert_if_absent
from reliable_delivery.kernel.messaging import (
    IdempotencyBackend,
    IdempotencyRecord,
    IdempotencyStatus,
)
from reliable_delivery.kernel.time import as_utc

t = idempotency_table


class SqlAlchemyIdempotencyBackend(SqlAlchemyStore, IdempotencyBackend):
    """Idempotency records in a relational table.

    ``begin`` claims a key with an insert-if-absent; an expired or stale
    record is taken over with a conditional ``UPDATE`` so exactly one caller
    wins the takeover.
    """

    store_name = "idempotency"

    async def begin(
        self,
        key: str,
        *,
        now: datetime,
        expires_at: datetime,
        locked_until: datetime,
    ) -> IdempotencyRecord | None:
        fresh = {
            "status": IdempotencyStatus.PROCESSING.value,
            "response": None,
            "created_at": now,
            "expires_at": expires_at,
            "locked_until": locked_until,
        }
        takeover = (
            update(t)
            .where(t.c.key == key)
            .where(
                or_(
                    t.c.expires_at <= now,
                    and_(
                        t.c.status == IdempotencyStatus.PROCESSING.value,
                        t.c.locked_until <= now,
                    ),
                )
            )
            .values(**fresh)
        )
        async with self._transaction() as session:
            if await insert_if_absent(session, t, {"key": key, **fresh}):
                return None
            if (await session.execute(takeover)).rowcount == 1:
                return None
            row = (await session.execute(select(t).where(t.c.key == key))).first()
        if row is None:
            # abandoned between our insert and read; the next poll claims it
            return IdempotencyRecord(key=key, created_at=now, locked_until=now)
        return self._row_to_record(row)

    async def get(self, key: str) -> IdempotencyRecord | None:
        async with self._transaction() as session:
            row = (await session.execute(select(t).where(t.c.key == key))).first()
        return self._row_to_record(row) if row is not None else None

    async def complete(self, key: str, response: bytes) -> None:
        stmt = (
            update(t)
            .where(t.c.key == key)
            .values(status=IdempotencyStatus.COMPLETED.value, response=response, locked_until=None)
        )
        async with self._transaction() as session:
            await session.execute(stmt)

    async def abandon(self, key: str) -> None:
        stmt = (
            delete(t)
            .where(t.c.key == key)
            .where(t.c.status == IdempotencyStatus.PROCESSING.value)
        )
        async with self._transaction() as session:
            await session.execute(stmt)

    async def purge_expired(self, now: datetime) -> int:
        async with self._transaction() as session:
            result = await session.execute(delete(t).where(t.c.expires_at <= now))
        return result.rowcount

    def _row_to_record(self, row: Any) -> IdempotencyRecord:
        return IdempotencyRecord(
            key=row.key,
            status=IdempotencyStatus(row.status),
            response=bytes(row.response) if row.response is not None else None,
            created_at=as_utc(row.created_at),
            expires_at=utc_or_none(row.expires_at),
            locked_until=utc_or_none(row.locked_until),
        )


__all__ = ["SqlAlchemyIdempotencyBackend"]
