"""Kernel messaging – outbox pattern ports."""
from __future__ import annotations

import abc
import dataclasses
from datetime import datetime
from enum import Enum

from reliable_delivery.kernel.messaging.message import IntegrationMessage


class DispatchState(str, Enum):
    PENDING = "PENDING"
    DISPATCHED = "DISPATCHED"
    FAILED = "FAILED"


@dataclasses.dataclass
class OutboxRecord:
    """Transactional outbox record stored alongside business data.

    Created in the same atomic unit as the state change it announces and
    mutated afterwards only by the relay.  ``claimed_by`` / ``claimed_until``
    form the delivery lease taken by :meth:`OutboxStore.try_claim`.
    """

    message: IntegrationMessage
    state: DispatchState = DispatchState.PENDING
    attempts: int = 0
    next_retry_at: datetime | None = None
    claimed_by: str | None = None
    claimed_until: datetime | None = None
    last_error: str | None = None
    dispatched_at: datetime | None = None
    position: int = 0

    @property
    def record_id(self) -> str:
        return self.message.message_id

    def is_due(self, now: datetime) -> bool:
        return self.next_retry_at is None or self.next_retry_at <= now

    def is_claimable(self, now: datetime) -> bool:
        if self.state is not DispatchState.PENDING:
            return False
        return self.claimed_until is None or self.claimed_until <= now


class OutboxStore(abc.ABC):
    """Port: persistence for outbox records.

    ``save`` belongs to the business write path and must share the caller's
    transaction.  Every other method is a relay-side transition and is a
    single compare-and-set on one record: transitions requiring a claim only
    apply when ``owner`` still holds it.
    """

    @abc.abstractmethod
    async def save(self, message: IntegrationMessage) -> OutboxRecord:
        """Persist *message* as PENDING.  Raises ``StorageError`` on failure."""

    @abc.abstractmethod
    async def list_undispatched(
        self,
        limit: int = 100,
        due_at: datetime | None = None,
    ) -> list[OutboxRecord]:
        """Return PENDING records in insertion order.

        When *due_at* is given, records whose ``next_retry_at`` lies after it
        are skipped.
        """

    @abc.abstractmethod
    async def try_claim(
        self,
        record_id: str,
        owner: str,
        now: datetime,
        lease_until: datetime,
    ) -> OutboxRecord | None:
        """Atomically lease a PENDING record to *owner*; ``None`` if not claimable."""

    @abc.abstractmethod
    async def mark_dispatched(self, record_id: str, owner: str, now: datetime) -> bool:
        """Transition to DISPATCHED.  Returns ``False`` if *owner* lost the claim."""

    @abc.abstractmethod
    async def record_failure(
        self,
        record_id: str,
        owner: str,
        error: str,
        next_retry_at: datetime,
    ) -> bool:
        """Increment ``attempts``, schedule the retry and release the claim."""

    @abc.abstractmethod
    async def mark_failed(self, record_id: str, owner: str, error: str) -> bool:
        """Increment ``attempts`` and transition to FAILED (dead-lettered)."""

    @abc.abstractmethod
    async def requeue(self, record_id: str) -> bool:
        """Move a FAILED record back to PENDING with a fresh attempt budget."""

    @abc.abstractmethod
    async def get(self, record_id: str) -> OutboxRecord | None: ...

    @abc.abstractmethod
    async def archive_dispatched(self, before: datetime) -> int:
        """Remove DISPATCHED records dispatched before *before*; return the count."""

    @abc.abstractmethod
    async def count_pending(self) -> int: ...


__all__ = ["DispatchState", "OutboxRecord", "OutboxStore"]
