"""SQLAlchemy adapter – SqlAlchemySagaStore."""
from __future__ import annotations

from sqlalchemy import select, update

from reliable_delivery.adapters.sqlalchemy.models import saga_table
from reliable_delivery.adapters.sqlalchemy.session import SqlAlchemyStore, insert_if_absent
from reliable_delivery.application.saga import SagaInstance, SagaStore
from reliable_delivery.kernel.errors import ConcurrencyError

t = saga_table


class SqlAlchemySagaStore(SqlAlchemyStore, SagaStore):
    """Saga instances as one JSON document per row, guarded by ``version``.

    A new saga (``version == 0``) is inserted; an existing one is updated
    with ``WHERE version = :expected``.  Losing either race raises
    :class:`~reliable_delivery.kernel.errors.ConcurrencyError`.
    """

    store_name = "saga"

    async def save(self, instance: SagaInstance) -> None:
        expected = instance.version
        state = instance.to_dict()
        state["version"] = expected + 1
        values = {
            "status": instance.status.value,
            "version": expected + 1,
            "state": state,
            "updated_at": instance.updated_at,
        }
        async with self._transaction() as session:
            if expected == 0:
                saved = await insert_if_absent(session, t, {"saga_id": instance.saga_id, **values})
            else:
                result = await session.execute(
                    update(t)
                    .where(t.c.saga_id == instance.saga_id)
                    .where(t.c.version == expected)
                    .values(**values)
                )
                saved = result.rowcount == 1
            if not saved:
                raise ConcurrencyError("SagaInstance", instance.saga_id, expected)
        instance.version = expected + 1

    async def load(self, saga_id: str) -> SagaInstance | None:
        async with self._transaction() as session:
            row = (await session.execute(select(t.c.state).where(t.c.saga_id == saga_id))).first()
        return SagaInstance.from_dict(row.state) if row is not None else None


__all__ = ["SqlAlchemySagaStore"]
