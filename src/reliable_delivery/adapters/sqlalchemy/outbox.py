"""SQLAlchemy adapter – SqlAlchemyOutboxStore."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reliable_delivery.adapters.sqlalchemy.models import outbox_table, utc_or_none
from reliable_delivery.adapters.sqlalchemy.session import SqlAlchemyStore
from reliable_delivery.kernel.errors import ConflictError
from reliable_delivery.kernel.messaging import (
    DispatchState,
    IntegrationMessage,
    OutboxRecord,
    OutboxStore,
)
from reliable_delivery.kernel.time import as_utc

t = outbox_table


class SqlAlchemyOutboxStore(SqlAlchemyStore, OutboxStore):
    """Outbox table in the service's own database.

    Call ``save`` through :meth:`in_transaction` (or
    :class:`~reliable_delivery.adapters.sqlalchemy.uow.SqlAlchemyUnitOfWork`)
    so the record commits or rolls back together with the business write::

        async with session.begin():
            session.add(order)
            await outbox.in_transaction(session).save(order_placed)

    Relay transitions are single conditional ``UPDATE`` statements; a
    ``rowcount`` of zero means another relay owns the record.
    """

    store_name = "outbox"

    def in_transaction(self, session: AsyncSession) -> "SqlAlchemyOutboxStore":
        """Return a store bound to *session*; the caller commits."""
        return SqlAlchemyOutboxStore(self._factory, session=session)

    async def save(self, message: IntegrationMessage) -> OutboxRecord:
        async with self._transaction() as session:
            try:
                result = await session.execute(
                    insert(t).values(
                        message_id=message.message_id,
                        event_name=message.event_name,
                        aggregate_id=message.aggregate_id,
                        payload=message.payload,
                        headers=message.headers,
                        created_at=message.created_at,
                        state=DispatchState.PENDING.value,
                        attempts=0,
                    )
                )
            except IntegrityError as exc:
                raise ConflictError(
                    f"Outbox already holds message '{message.message_id}'", cause=exc
                ) from exc
        return OutboxRecord(message=message, position=result.inserted_primary_key[0])

    async def list_undispatched(
        self,
        limit: int = 100,
        due_at: datetime | None = None,
    ) -> list[OutboxRecord]:
        stmt = select(t).where(t.c.state == DispatchState.PENDING.value)
        if due_at is not None:
            stmt = stmt.where(or_(t.c.next_retry_at.is_(None), t.c.next_retry_at <= due_at))
        stmt = stmt.order_by(t.c.position).limit(limit)
        async with self._transaction() as session:
            rows = (await session.execute(stmt)).fetchall()
        return [self._row_to_record(row) for row in rows]

    async def try_claim(
        self,
        record_id: str,
        owner: str,
        now: datetime,
        lease_until: datetime,
    ) -> OutboxRecord | None:
        stmt = (
            update(t)
            .where(t.c.message_id == record_id)
            .where(t.c.state == DispatchState.PENDING.value)
            .where(or_(t.c.claimed_until.is_(None), t.c.claimed_until <= now))
            .values(claimed_by=owner, claimed_until=lease_until)
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
            if result.rowcount != 1:
                return None
            row = (await session.execute(select(t).where(t.c.message_id == record_id))).first()
        return self._row_to_record(row) if row is not None else None

    async def mark_dispatched(self, record_id: str, owner: str, now: datetime) -> bool:
        return await self._owned_update(
            record_id,
            owner,
            state=DispatchState.DISPATCHED.value,
            dispatched_at=now,
        )

    async def record_failure(
        self,
        record_id: str,
        owner: str,
        error: str,
        next_retry_at: datetime,
    ) -> bool:
        return await self._owned_update(
            record_id,
            owner,
            attempts=t.c.attempts + 1,
            last_error=error,
            next_retry_at=next_retry_at,
        )

    async def mark_failed(self, record_id: str, owner: str, error: str) -> bool:
        return await self._owned_update(
            record_id,
            owner,
            attempts=t.c.attempts + 1,
            last_error=error,
            state=DispatchState.FAILED.value,
        )

    async def requeue(self, record_id: str) -> bool:
        stmt = (
            update(t)
            .where(t.c.message_id == record_id)
            .where(t.c.state == DispatchState.FAILED.value)
            .values(state=DispatchState.PENDING.value, attempts=0, next_retry_at=None)
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
        return result.rowcount == 1

    async def get(self, record_id: str) -> OutboxRecord | None:
        async with self._transaction() as session:
            row = (await session.execute(select(t).where(t.c.message_id == record_id))).first()
        return self._row_to_record(row) if row is not None else None

    async def archive_dispatched(self, before: datetime) -> int:
        stmt = (
            delete(t)
            .where(t.c.state == DispatchState.DISPATCHED.value)
            .where(t.c.dispatched_at < before)
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
        return result.rowcount

    async def count_pending(self) -> int:
        stmt = select(func.count()).select_from(t).where(t.c.state == DispatchState.PENDING.value)
        async with self._transaction() as session:
            return (await session.execute(stmt)).scalar() or 0

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _owned_update(self, record_id: str, owner: str, **values: Any) -> bool:
        stmt = (
            update(t)
            .where(t.c.message_id == record_id)
            .where(t.c.state == DispatchState.PENDING.value)
            .where(t.c.claimed_by == owner)
            .values(claimed_by=None, claimed_until=None, **values)
        )
        async with self._transaction() as session:
            result = await session.execute(stmt)
        return result.rowcount == 1

    def _row_to_record(self, row: Any) -> OutboxRecord:
        message = IntegrationMessage(
            event_name=row.event_name,
            aggregate_id=row.aggregate_id,
            payload=row.payload or {},
            message_id=row.message_id,
            headers=row.headers or {},
            created_at=as_utc(row.created_at),
        )
        return OutboxRecord(
            message=message,
            state=DispatchState(row.state),
            attempts=row.attempts,
            next_retry_at=utc_or_none(row.next_retry_at),
            claimed_by=row.claimed_by,
            claimed_until=utc_or_none(row.claimed_until),
            last_error=row.last_error,
            dispatched_at=utc_or_none(row.dispatched_at),
            position=row.position,
        )


__all__ = ["SqlAlchemyOutboxStore"]
