"""SQLAlchemy adapter – table definitions for every delivery store.

The tables are plain Core :class:`~sqlalchemy.Table` objects on one shared
:data:`metadata`; include it in your Alembic ``target_metadata`` or call
:func:`create_tables` at start-up.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
)

from reliable_delivery.kernel.messaging import IntegrationMessage
from reliable_delivery.kernel.time import as_utc

metadata = MetaData()

outbox_table = Table(
    "outbox_messages",
    metadata,
    Column("position", Integer, primary_key=True, autoincrement=True),
    Column("message_id", String(128), nullable=False, unique=True),
    Column("event_name", String(256), nullable=False),
    Column("aggregate_id", String(256), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("headers", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("state", String(16), nullable=False, index=True),
    Column("attempts", Integer, nullable=False, default=0),
    Column("next_retry_at", DateTime(timezone=True), nullable=True),
    Column("claimed_by", String(128), nullable=True),
    Column("claimed_until", DateTime(timezone=True), nullable=True),
    Column("last_error", Text, nullable=True),
    Column("dispatched_at", DateTime(timezone=True), nullable=True),
)

inbox_table = Table(
    "inbox_messages",
    metadata,
    Column("message_id", String(128), primary_key=True),
    Column("processed_at", DateTime(timezone=True), nullable=False, index=True),
)

idempotency_table = Table(
    "idempotency_records",
    metadata,
    Column("key", String(512), primary_key=True),
    Column("status", String(16), nullable=False),
    Column("response", LargeBinary, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=True, index=True),
    Column("locked_until", DateTime(timezone=True), nullable=True),
)

saga_table = Table(
    "saga_instances",
    metadata,
    Column("saga_id", String(256), primary_key=True),
    Column("status", String(16), nullable=False, index=True),
    Column("version", Integer, nullable=False),
    Column("state", JSON, nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

dead_letter_table = Table(
    "dead_letters",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("message", JSON, nullable=False),
    Column("reason", Text, nullable=False),
    Column("attempts", Integer, nullable=False),
    Column("failed_at", DateTime(timezone=True), nullable=False, index=True),
    Column("replayed", Boolean, nullable=False, default=False),
)


async def create_tables(engine: Any) -> None:
    """Create every delivery table that does not exist yet.

    *engine* is an :class:`~sqlalchemy.ext.asyncio.AsyncEngine`.
    """
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def message_to_dict(message: IntegrationMessage) -> dict[str, Any]:
    return {
        "message_id": message.message_id,
        "event_name": message.event_name,
        "aggregate_id": message.aggregate_id,
        "payload": message.payload,
        "headers": message.headers,
        "created_at": message.created_at.isoformat(),
    }


def message_from_dict(data: dict[str, Any]) -> IntegrationMessage:
    return IntegrationMessage(
        event_name=data["event_name"],
        aggregate_id=data["aggregate_id"],
        payload=data.get("payload") or {},
        message_id=data["message_id"],
        headers=data.get("headers") or {},
        created_at=as_utc(datetime.fromisoformat(data["created_at"])),
    )


def utc_or_none(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    return as_utc(value) if value is not None else None


__all__ = [
    "create_tables",
    "dead_letter_table",
    "idempotency_table",
    "inbox_table",
    "message_from_dict",
    "message_to_dict",
    "metadata",
    "outbox_table",
    "saga_table",
    "utc_or_none",
]
