"""SQLAlchemy adapter – SqlAlchemyUnitOfWork."""
from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reliable_delivery.adapters.sqlalchemy.outbox import SqlAlchemyOutboxStore
from reliable_delivery.kernel.errors import StorageError


class SqlAlchemyUnitOfWork:
    """One session shared by the business write and its outbox records.

    Leaving the block cleanly commits both; leaving it with an exception rolls
    both back::

        async with SqlAlchemyUnitOfWork(session_factory) as uow:
            await uow.session.execute(insert(orders).values(reference="order-42"))
            await uow.outbox.save(IntegrationMessage("OrderPlaced", "order-42"))

    A failed commit is reported as :class:`StorageError`.
    """

    def __init__(self, session_factory: Any) -> None:
        self._factory = session_factory
        self._session: AsyncSession | None = None
        self._outbox: SqlAlchemyOutboxStore | None = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("SqlAlchemyUnitOfWork is only usable inside 'async with'")
        return self._session

    @property
    def outbox(self) -> SqlAlchemyOutboxStore:
        if self._outbox is None:
            raise RuntimeError("SqlAlchemyUnitOfWork is only usable inside 'async with'")
        return self._outbox

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        if self._session is not None:
            raise RuntimeError("SqlAlchemyUnitOfWork cannot be entered twice")
        self._session = self._factory()
        self._outbox = SqlAlchemyOutboxStore(self._factory, session=self._session)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        session = self.session
        try:
            if exc_type is None:
                await self.commit()
            else:
                await session.rollback()
        finally:
            self._session = self._outbox = None
            await session.close()

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StorageError(f"Unit of work commit failed: {exc}", store="outbox", cause=exc) from exc

    async def rollback(self) -> None:
        await self.session.rollback()


__all__ = ["SqlAlchemyUnitOfWork"]
