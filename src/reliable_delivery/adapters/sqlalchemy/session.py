"""SQLAlchemy adapter – SqlAlchemySessionFactory and the store base class."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy import Table, insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from reliable_delivery.adapters.sqlalchemy.models import create_tables
from reliable_delivery.kernel.errors import StorageError


class SqlAlchemySessionFactory:
    """Creates async SQLAlchemy sessions from an engine URL."""

    def __init__(self, database_url: str, **engine_kwargs: Any) -> None:
        self._engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)

    @property
    def engine(self) -> Any:
        return self._engine

    def __call__(self) -> AsyncSession:
        return self._session_factory()

    async def create_tables(self) -> None:
        await create_tables(self._engine)

    async def dispose(self) -> None:
        await self._engine.dispose()


class SqlAlchemyStore:
    """Shared plumbing for the SQLAlchemy-backed stores.

    Each public operation runs in its own short transaction opened from
    *session_factory*.  When *session* is given the store joins that session
    instead and never commits; the owner of the session does.

    Every :class:`~sqlalchemy.exc.SQLAlchemyError` leaves the store as a
    :class:`~reliable_delivery.kernel.errors.StorageError`.
    """

    store_name = "sqlalchemy"

    def __init__(self, session_factory: Any, session: AsyncSession | None = None) -> None:
        self._factory = session_factory
        self._session = session

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            if self._session is not None:
                yield self._session
            else:
                async with self._factory() as session, session.begin():
                    yield session
        except SQLAlchemyError as exc:
            raise StorageError(
                f"{self.store_name} store operation failed: {exc}",
                store=self.store_name,
                cause=exc,
            ) from exc


async def insert_if_absent(session: AsyncSession, table: Table, values: dict[str, Any]) -> bool:
    """``INSERT`` that silently loses to an existing primary key.

    Returns ``True`` when the row was inserted.  Uses ``ON CONFLICT DO
    NOTHING`` on PostgreSQL and SQLite, and a savepoint plus unique-violation
    check elsewhere.
    """
    dialect = session.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        dialect_insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = dialect_insert(table).values(**values).on_conflict_do_nothing()
        result = await session.execute(stmt)
        return result.rowcount == 1
    try:
        async with session.begin_nested():
            await session.execute(insert(table).values(**values))
    except IntegrityError:
        return False
    return True


__all__ = ["SqlAlchemySessionFactory", "SqlAlchemyStore", "insert_if_absent"]
