"""Kernel messaging – idempotency ports."""
from __future__ import annotations

import abc
import dataclasses
from datetime import UTC, datetime
from enum import Enum


# Stored in place of a response when the operation ran but its result could
# not be serialised; replaying the key must not run the operation again.
UNSTORABLE_RESPONSE = b"\x00reliable-delivery:unstorable"


class IdempotencyStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"


@dataclasses.dataclass(frozen=True)
class IdempotencyKey:
    """Composite idempotency key = (client_key, operation)."""

    client_key: str
    operation: str

    def __str__(self) -> str:
        return f"{self.operation}:{self.client_key}"

    @classmethod
    def for_saga_step(cls, saga_id: str, step_name: str, phase: str) -> "IdempotencyKey":
        """Key for one half (``forward`` / ``compensate``) of a saga step."""
        return cls(client_key=f"{saga_id}:{step_name}", operation=f"saga.{phase}")


@dataclasses.dataclass
class IdempotencyRecord:
    """Stored result of an idempotent operation.

    ``locked_until`` is the lease of the caller currently running the
    operation; once it lapses a PROCESSING record may be taken over.
    """

    key: str
    status: IdempotencyStatus = IdempotencyStatus.PROCESSING
    response: bytes | None = None
    created_at: datetime = dataclasses.field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime | None = None
    locked_until: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_stale(self, now: datetime) -> bool:
        """``True`` for a PROCESSING record whose owner's lease lapsed."""
        return (
            self.status is IdempotencyStatus.PROCESSING
            and self.locked_until is not None
            and self.locked_until <= now
        )

    def is_reclaimable(self, now: datetime) -> bool:
        return self.is_expired(now) or self.is_stale(now)

    @property
    def is_unstorable(self) -> bool:
        return self.response == UNSTORABLE_RESPONSE


class IdempotencyBackend(abc.ABC):
    """Port: per-key storage behind :class:`IdempotencyKeyStore`.

    ``begin`` is the only claim operation and must be atomic per key.
    """

    @abc.abstractmethod
    async def begin(
        self,
        key: str,
        *,
        now: datetime,
        expires_at: datetime,
        locked_until: datetime,
    ) -> IdempotencyRecord | None:
        """Claim *key*.

        Inserts a PROCESSING record when the key is absent, expired or stale
        and returns ``None`` (the caller owns the key).  Otherwise returns the
        live record currently stored.
        """

    @abc.abstractmethod
    async def get(self, key: str) -> IdempotencyRecord | None: ...

    @abc.abstractmethod
    async def complete(self, key: str, response: bytes) -> None:
        """Store *response* and mark the record COMPLETED."""

    @abc.abstractmethod
    async def abandon(self, key: str) -> None:
        """Delete a PROCESSING record so the key can be claimed again."""

    @abc.abstractmethod
    async def purge_expired(self, now: datetime) -> int: ...


__all__ = [
    "IdempotencyBackend",
    "IdempotencyKey",
    "IdempotencyRecord",
    "IdempotencyStatus",
    "UNSTORABLE_RESPONSE",
]
