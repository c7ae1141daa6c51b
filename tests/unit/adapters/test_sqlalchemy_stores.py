"""Unit tests for the SQLAlchemy stores.

Uses a file-backed SQLite database via *aiosqlite*; no running server needed.
"""
from __future__ import annotations

import asyncio
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, func, insert, select
from tenacity import wait_none

from reliable_delivery.adapters.sqlalchemy import (
    SqlAlchemyDeadLetterStore,
    SqlAlchemyIdempotencyBackend,
    SqlAlchemyInboxStore,
    SqlAlchemyOutboxStore,
    SqlAlchemySagaStore,
    SqlAlchemySessionFactory,
    SqlAlchemyUnitOfWork,
)
from reliable_delivery.application.idempotency import IdempotencyKeyStore
from reliable_delivery.application.outbox import OutboxRelay
from reliable_delivery.application.saga import (
    FunctionStep,
    SagaContext,
    SagaCoordinator,
    SagaFailedError,
    SagaInstance,
    SagaStatus,
)
from reliable_delivery.config import DeliverySettings
from reliable_delivery.kernel.errors import ConcurrencyError, ConflictError, StorageError
from reliable_delivery.kernel.messaging import (
    DeadLetterEntry,
    DispatchState,
    IdempotencyStatus,
    IntegrationMessage,
)
from reliable_delivery.kernel.time import FrozenClock
from reliable_delivery.resilience.retry import NoJitter
from reliable_delivery.testing.fakes import RecordingTransport

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_business = MetaData()
orders_table = Table(
    "orders",
    _business,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reference", String(64), nullable=False),
)


def _run(tmp_path: Path, body: Callable[[SqlAlchemySessionFactory], Awaitable[None]]) -> None:
    async def run() -> None:
        factory = SqlAlchemySessionFactory(f"sqlite+aiosqlite:///{tmp_path / 'delivery.sqlite'}")
        await factory.create_tables()
        async with factory.engine.begin() as conn:
            await conn.run_sync(_business.create_all)
        try:
            await body(factory)
        finally:
            await factory.dispose()

    asyncio.run(run())


def _message(message_id: str, event_name: str = "OrderPlaced") -> IntegrationMessage:
    return IntegrationMessage(event_name, "order-42", {"total": 49.99}, message_id=message_id)


# ---------------------------------------------------------------------------
# SqlAlchemyOutboxStore
# ---------------------------------------------------------------------------


class TestSqlAlchemyOutboxStore:
    def test_save_preserves_order_and_payload(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemyOutboxStore(factory)
            for message_id in ("G1", "G2", "G3"):
                await store.save(_message(message_id))
            records = await store.list_undispatched()
            assert [r.record_id for r in records] == ["G1", "G2", "G3"]
            assert records[0].message.payload == {"total": 49.99}
            assert records[0].state is DispatchState.PENDING
            assert await store.count_pending() == 3

        _run(tmp_path, body)

    def test_duplicate_message_id_conflicts(self, tmp_path: Path) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemyOutboxStore(factory)
            await store.save(_message("G1"))
            with pytest.raises(ConflictError):
                await store.save(_message("G1"))

        _run(tmp_path, body)

    def test_claim_is_exclusive_until_lease_expires(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemyOutboxStore(factory)
            await store.save(_message("G1"))
            now = fake_clock.now()
            lease = now + timedelta(seconds=30)

            claimed = await store.try_claim("G1", "relay-a", now, lease)
            assert claimed is not None and claimed.claimed_by == "relay-a"
            assert await store.try_claim("G1", "relay-b", now, lease) is None
            later = now + timedelta(seconds=31)
            stolen = await store.try_claim("G1", "relay-b", later, later + timedelta(seconds=30))
            assert stolen is not None and stolen.claimed_by == "relay-b"
            assert not await store.mark_dispatched("G1", "relay-a", later)

        _run(tmp_path, body)

    def test_failure_then_dispatch(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemyOutboxStore(factory)
            await store.save(_message("G1"))
            now = fake_clock.now()
            retry_at = now + timedelta(seconds=5)

            await store.try_claim("G1", "r", now, now + timedelta(seconds=30))
            assert await store.record_failure("G1", "r", "boom", retry_at)
            assert await store.list_undispatched(due_at=now) == []
            assert [r.record_id for r in await store.list_undispatched(due_at=retry_at)] == ["G1"]

            await store.try_claim("G1", "r", retry_at, retry_at + timedelta(seconds=30))
            assert await store.mark_dispatched("G1", "r", retry_at)
            record = await store.get("G1")
            assert record is not None
            assert record.state is DispatchState.DISPATCHED
            assert record.attempts == 1
            assert record.last_error == "boom"
            assert record.dispatched_at == retry_at
            assert await store.archive_dispatched(retry_at + timedelta(seconds=1)) == 1
            assert await store.get("G1") is None

        _run(tmp_path, body)

    def test_failed_record_can_be_requeued(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemyOutboxStore(factory)
            await store.save(_message("G1"))
            now = fake_clock.now()
            await store.try_claim("G1", "r", now, now + timedelta(seconds=30))
            assert await store.mark_failed("G1", "r", "rejected")
            assert await store.count_pending() == 0
            assert await store.requeue("G1")
            record = await store.get("G1")
            assert record is not None
            assert (record.state, record.attempts) == (DispatchState.PENDING, 0)

        _run(tmp_path, body)

    def test_relay_delivers_from_database(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemyOutboxStore(factory)
            transport = RecordingTransport(fail_times=1)
            relay = OutboxRelay(
                store,
                transport,
                SqlAlchemyDeadLetterStore(factory),
                settings=DeliverySettings(backoff_base_seconds=1.0),
                jitter=NoJitter(),
                clock=fake_clock,
            )
            await store.save(_message("G1"))
            await store.save(_message("G2"))

            first = await relay.run_once()
            assert (first.dispatched, first.retried) == (1, 1)
            fake_clock.advance(seconds=2)
            second = await relay.run_once()
            assert second.dispatched == 1
            assert [m.message_id for m in transport.sent] == ["G2", "G1"]
            assert await store.count_pending() == 0

        _run(tmp_path, body)


# ---------------------------------------------------------------------------
# SqlAlchemyUnitOfWork
# ---------------------------------------------------------------------------


class TestSqlAlchemyUnitOfWork:
    def test_commit_persists_business_row_and_message(self, tmp_path: Path) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            async with SqlAlchemyUnitOfWork(factory) as uow:
                await uow.session.execute(insert(orders_table).values(reference="order-42"))
                await uow.outbox.save(_message("G1"))

            assert await SqlAlchemyOutboxStore(factory).get("G1") is not None
            async with factory() as session:
                count = (await session.execute(select(func.count()).select_from(orders_table))).scalar()
            assert count == 1

        _run(tmp_path, body)

    def test_rollback_discards_both(self, tmp_path: Path) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            with pytest.raises(RuntimeError):
                async with SqlAlchemyUnitOfWork(factory) as uow:
                    await uow.session.execute(insert(orders_table).values(reference="order-42"))
                    await uow.outbox.save(_message("G1"))
                    raise RuntimeError("payment declined")

            assert await SqlAlchemyOutboxStore(factory).get("G1") is None
            async with factory() as session:
                count = (await session.execute(select(func.count()).select_from(orders_table))).scalar()
            assert count == 0

        _run(tmp_path, body)

    def test_session_outside_block_raises(self) -> None:
        uow = SqlAlchemyUnitOfWork(lambda: None)
        with pytest.raises(RuntimeError):
            uow.session
        with pytest.raises(RuntimeError):
            uow.outbox

    def test_cannot_be_entered_twice(self, tmp_path: Path) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            uow = SqlAlchemyUnitOfWork(factory)
            async with uow:
                with pytest.raises(RuntimeError):
                    await uow.__aenter__()
            with pytest.raises(RuntimeError):
                uow.session

        _run(tmp_path, body)

    def test_in_transaction_joins_callers_session(self, tmp_path: Path) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            outbox = SqlAlchemyOutboxStore(factory)
            async with factory() as session:
                await outbox.in_transaction(session).save(_message("G1"))
                await session.rollback()
            assert await outbox.get("G1") is None

        _run(tmp_path, body)


# ---------------------------------------------------------------------------
# SqlAlchemyInboxStore
# ---------------------------------------------------------------------------


class TestSqlAlchemyInboxStore:
    def test_first_claim_wins(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            inbox = SqlAlchemyInboxStore(factory, clock=fake_clock)
            assert await inbox.try_process("M1")
            assert not await inbox.try_process("M1")
            assert await inbox.contains("M1")

        _run(tmp_path, body)

    def test_concurrent_claims_have_one_winner(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            inbox = SqlAlchemyInboxStore(factory, clock=fake_clock)
            results = await asyncio.gather(*(inbox.try_process("M1") for _ in range(5)))
            assert results.count(True) == 1

        _run(tmp_path, body)

    def test_release_and_purge(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            inbox = SqlAlchemyInboxStore(factory, clock=fake_clock)
            await inbox.try_process("M1")
            await inbox.release("M1")
            assert not await inbox.contains("M1")

            await inbox.try_process("M2")
            fake_clock.advance(days=8)
            await inbox.try_process("M3")
            assert await inbox.purge_processed_before(fake_clock.now() - timedelta(days=7)) == 1
            assert not await inbox.contains("M2")
            assert await inbox.contains("M3")

        _run(tmp_path, body)


# ---------------------------------------------------------------------------
# SqlAlchemyIdempotencyBackend
# ---------------------------------------------------------------------------


class TestSqlAlchemyIdempotencyBackend:
    def _begin(self, backend: SqlAlchemyIdempotencyBackend, key: str, clock: FrozenClock) -> Any:
        now = clock.now()
        return backend.begin(
            key,
            now=now,
            expires_at=now + timedelta(hours=1),
            locked_until=now + timedelta(seconds=30),
        )

    def test_begin_complete_replay(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            backend = SqlAlchemyIdempotencyBackend(factory)
            assert await self._begin(backend, "k1", fake_clock) is None
            in_progress = await self._begin(backend, "k1", fake_clock)
            assert in_progress is not None
            assert in_progress.status is IdempotencyStatus.PROCESSING

            await backend.complete("k1", b'{"ok":true}')
            done = await self._begin(backend, "k1", fake_clock)
            assert done is not None
            assert done.status is IdempotencyStatus.COMPLETED
            assert done.response == b'{"ok":true}'

        _run(tmp_path, body)

    def test_abandon_frees_key(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            backend = SqlAlchemyIdempotencyBackend(factory)
            await self._begin(backend, "k1", fake_clock)
            await backend.abandon("k1")
            assert await backend.get("k1") is None
            assert await self._begin(backend, "k1", fake_clock) is None

        _run(tmp_path, body)

    def test_stale_lock_is_taken_over(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            backend = SqlAlchemyIdempotencyBackend(factory)
            await self._begin(backend, "k1", fake_clock)
            fake_clock.advance(minutes=1)
            assert await self._begin(backend, "k1", fake_clock) is None

        _run(tmp_path, body)

    def test_expired_record_is_reclaimed_and_purged(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            backend = SqlAlchemyIdempotencyBackend(factory)
            await self._begin(backend, "k1", fake_clock)
            await backend.complete("k1", b"1")
            fake_clock.advance(hours=2)
            assert await backend.purge_expired(fake_clock.now()) == 1
            assert await self._begin(backend, "k1", fake_clock) is None

        _run(tmp_path, body)

    def test_key_store_over_database(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = IdempotencyKeyStore(SqlAlchemyIdempotencyBackend(factory), clock=fake_clock)
            calls: list[int] = []

            async def charge() -> dict[str, Any]:
                calls.append(1)
                return {"receipt": "R-1"}

            assert await store.execute("pay-88", charge) == {"receipt": "R-1"}
            assert await store.execute("pay-88", charge) == {"receipt": "R-1"}
            assert len(calls) == 1

        _run(tmp_path, body)


# ---------------------------------------------------------------------------
# SqlAlchemySagaStore
# ---------------------------------------------------------------------------


class TestSqlAlchemySagaStore:
    def test_round_trip(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemySagaStore(factory)
            instance = SagaInstance.new("order-1", ["S1", "S2"], {"x": 1}, fake_clock.now())
            await store.save(instance)
            assert instance.version == 1

            loaded = await store.load("order-1")
            assert loaded is not None
            assert loaded.version == 1
            assert loaded.step_names == ["S1", "S2"]
            assert loaded.context == {"x": 1}
            assert await store.load("missing") is None

        _run(tmp_path, body)

    def test_stale_writer_rejected(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemySagaStore(factory)
            await store.save(SagaInstance.new("order-1", ["S1"], {}, fake_clock.now()))
            first = await store.load("order-1")
            second = await store.load("order-1")
            assert first is not None and second is not None
            first.start(fake_clock.now())
            await store.save(first)
            second.start(fake_clock.now())
            with pytest.raises(ConcurrencyError):
                await store.save(second)
            with pytest.raises(ConcurrencyError):
                await store.save(SagaInstance.new("order-1", ["S1"], {}, fake_clock.now()))

        _run(tmp_path, body)

    def test_coordinator_over_database(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            refunds: list[str] = []

            async def charge(ctx: SagaContext) -> None:
                ctx.set("payment_id", "PAY-1")

            async def refund(ctx: SagaContext) -> None:
                refunds.append(ctx.get("payment_id"))

            async def ship(ctx: SagaContext) -> None:
                raise RuntimeError("no courier available")

            async def noop(ctx: SagaContext) -> None:
                return None

            coordinator = SagaCoordinator(
                [FunctionStep("ChargePayment", charge, refund), FunctionStep("ArrangeShipment", ship, noop)],
                SqlAlchemySagaStore(factory),
                IdempotencyKeyStore(SqlAlchemyIdempotencyBackend(factory), clock=fake_clock),
                clock=fake_clock,
                compensation_wait=wait_none(),
            )
            with pytest.raises(SagaFailedError):
                await coordinator.run("order-9")
            stored = await coordinator.get("order-9")
            assert stored is not None
            assert stored.status is SagaStatus.COMPENSATED
            assert refunds == ["PAY-1"]

        _run(tmp_path, body)


# ---------------------------------------------------------------------------
# SqlAlchemyDeadLetterStore
# ---------------------------------------------------------------------------


class TestSqlAlchemyDeadLetterStore:
    def test_push_list_replay(self, tmp_path: Path, fake_clock: FrozenClock) -> None:
        async def body(factory: SqlAlchemySessionFactory) -> None:
            store = SqlAlchemyDeadLetterStore(factory)
            entry = DeadLetterEntry(_message("G1"), reason="rejected", attempts=1, failed_at=fake_clock.now())
            await store.push(entry)

            listed = await store.list()
            assert [e.id for e in listed] == [entry.id]
            assert listed[0].message.payload == {"total": 49.99}
            assert listed[0].failed_at == fake_clock.now()

            await store.mark_replayed(entry.id)
            assert await store.list() == []
            fetched = await store.get(entry.id)
            assert fetched is not None and fetched.replayed

        _run(tmp_path, body)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestStorageErrors:
    def test_missing_tables_raise_storage_error(self, tmp_path: Path) -> None:
        async def run() -> None:
            factory = SqlAlchemySessionFactory(f"sqlite+aiosqlite:///{tmp_path / 'empty.sqlite'}")
            try:
                with pytest.raises(StorageError) as exc_info:
                    await SqlAlchemyInboxStore(factory).try_process("M1")
                assert exc_info.value.code == "storage_error"
            finally:
                await factory.dispose()

        asyncio.run(run())
