"""Application outbox – OutboxRelay (publisher / relay)."""
from __future__ import annotations

import asyncio
import contextlib
import dataclasses
from datetime import timedelta
from uuid import uuid4

from reliable_delivery.config import DeliverySettings
from reliable_delivery.kernel.errors import NotFoundError, PermanentDeliveryError
from reliable_delivery.kernel.messaging import (
    DeadLetterEntry,
    DeadLetterStore,
    MessageTransport,
    OutboxRecord,
    OutboxStore,
)
from reliable_delivery.kernel.time import Clock, SystemClock
from reliable_delivery.observability.logging import get_logger
from reliable_delivery.resilience.retry import (
    BackoffStrategy,
    ExponentialBackoff,
    FullJitter,
    JitterStrategy,
)
from reliable_delivery.resilience.timeouts import TimeoutPolicy


@dataclasses.dataclass
class RelayReport:
    """Outcome counters of one :meth:`OutboxRelay.run_once` pass."""

    claimed: int = 0
    dispatched: int = 0
    retried: int = 0
    dead_lettered: int = 0
    skipped: int = 0
    errors: int = 0


class OutboxRelay:
    """Drains the outbox into a :class:`MessageTransport`.

    Each record is leased with :meth:`OutboxStore.try_claim` before it is
    sent, so several relays can poll the same store without two of them
    sending one record within the same lease.  Delivery is at-least-once: a
    crash between the transport ack and :meth:`OutboxStore.mark_dispatched`
    leads to a second send once the lease lapses.

    Failures (including timeouts) are retried with exponential backoff until
    ``max_delivery_attempts`` is reached; the record is then marked FAILED and
    pushed to the dead-letter store.  A transport raising
    :class:`PermanentDeliveryError` is dead-lettered immediately.

    Example::

        relay = OutboxRelay(store, transport, dead_letters)
        stop = asyncio.Event()
        task = asyncio.create_task(relay.run(stop))
    """

    def __init__(
        self,
        store: OutboxStore,
        transport: MessageTransport,
        dead_letters: DeadLetterStore,
        *,
        settings: DeliverySettings | None = None,
        backoff: BackoffStrategy | None = None,
        jitter: JitterStrategy | None = None,
        clock: Clock | None = None,
        relay_id: str | None = None,
    ) -> None:
        settings = settings or DeliverySettings()
        self._store = store
        self._transport = transport
        self._dead_letters = dead_letters
        self._batch_size = settings.relay_batch_size
        self._max_attempts = settings.max_delivery_attempts
        self._lease = timedelta(seconds=settings.relay_claim_lease_seconds)
        self._poll_interval = settings.relay_poll_interval_seconds
        self._timeout = TimeoutPolicy(settings.send_timeout_seconds)
        self._backoff = backoff or ExponentialBackoff(
            settings.backoff_base_seconds, settings.backoff_max_seconds
        )
        self._jitter = jitter or FullJitter()
        self._clock = clock or SystemClock()
        self.relay_id = relay_id or f"relay-{uuid4()}"
        self._log = get_logger(__name__, relay_id=self.relay_id)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_once(self) -> RelayReport:
        """Poll one batch of due records and attempt delivery of each."""
        report = RelayReport()
        records = await self._store.list_undispatched(self._batch_size, due_at=self._clock.now())
        for record in records:
            try:
                await self._deliver(record.record_id, report)
            except Exception as exc:  # noqa: BLE001
                report.errors += 1
                self._log.error("outbox.record_failed", message_id=record.record_id, error=exc)
        if report.claimed or report.errors:
            self._log.info("outbox.relay_pass", **dataclasses.asdict(report))
        return report

    async def run(self, stop: asyncio.Event) -> None:
        """Poll until *stop* is set; sleep between empty or failed passes.

        A pass that raises (typically :class:`StorageError` while the database
        is unreachable) is logged and retried after ``relay_poll_interval_seconds``.
        """
        self._log.info("outbox.relay_started")
        while not stop.is_set():
            try:
                report = await self.run_once()
            except Exception as exc:  # noqa: BLE001
                self._log.error("outbox.relay_pass_failed", error=exc)
            else:
                if report.claimed:
                    continue
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
        self._log.info("outbox.relay_stopped")

    async def replay_dead_letter(self, entry_id: str) -> bool:
        """Operator action: put a dead-lettered message back into the outbox."""
        entry = await self._dead_letters.get(entry_id)
        if entry is None:
            raise NotFoundError("DeadLetterEntry", entry_id)
        requeued = await self._store.requeue(entry.message.message_id)
        if requeued:
            await self._dead_letters.mark_replayed(entry_id)
            self._log.info("outbox.dead_letter_replayed", entry_id=entry_id, message_id=entry.message.message_id)
        return requeued

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _deliver(self, record_id: str, report: RelayReport) -> None:
        now = self._clock.now()
        record = await self._store.try_claim(record_id, self.relay_id, now, now + self._lease)
        if record is None:
            report.skipped += 1
            return
        report.claimed += 1
        message = record.message

        try:
            await self._timeout.execute(
                lambda: self._transport.send(message), operation=f"Send of {record_id!r}"
            )
        except PermanentDeliveryError as exc:
            await self._dead_letter(record, exc)
            report.dead_lettered += 1
            return
        except Exception as exc:  # noqa: BLE001 - any transport failure is retried
            attempts = record.attempts + 1
            if attempts >= self._max_attempts:
                await self._dead_letter(
                    record,
                    PermanentDeliveryError(
                        f"Delivery of '{record_id}' failed after {attempts} attempts",
                        attempts=attempts,
                        cause=exc,
                    ),
                )
                report.dead_lettered += 1
                return
            delay = self._jitter.apply(self._backoff.compute(attempts))
            next_retry_at = self._clock.now() + timedelta(seconds=delay)
            if await self._store.record_failure(record_id, self.relay_id, repr(exc), next_retry_at):
                report.retried += 1
            self._log.warning(
                "outbox.delivery_failed",
                message_id=record_id,
                event_name=message.event_name,
                attempts=attempts,
                retry_in_seconds=round(delay, 3),
                exc=repr(exc),
            )
            return

        if await self._store.mark_dispatched(record_id, self.relay_id, self._clock.now()):
            report.dispatched += 1
            self._log.info("outbox.dispatched", message_id=record_id, event_name=message.event_name)
        else:
            self._log.warning("outbox.claim_lost", message_id=record_id)

    async def _dead_letter(self, record: OutboxRecord, exc: PermanentDeliveryError) -> None:
        attempts = record.attempts + 1
        # DLQ push precedes mark_failed; the record stays PENDING until both land.
        await self._dead_letters.push(
            DeadLetterEntry(message=record.message, reason=exc.message, attempts=attempts)
        )
        await self._store.mark_failed(record.record_id, self.relay_id, exc.message)
        self._log.error(
            "outbox.dead_lettered",
            message_id=record.record_id,
            event_name=record.message.event_name,
            attempts=attempts,
            reason=exc.message,
        )


__all__ = ["OutboxRelay", "RelayReport"]
