"""Observability – readiness checks for the outbox relay and its dead-letter queue."""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from reliable_delivery.kernel.messaging import DeadLetterStore, OutboxStore

__all__ = ["DeadLetterHealthCheck", "HealthCheck", "HealthStatus", "OutboxBacklogHealthCheck"]


@dataclass
class HealthStatus:
    healthy: bool
    detail: str | None = None
    latency_ms: float = 0.0


class HealthCheck(ABC):
    """A named readiness check; :meth:`timed_check` fills in ``latency_ms``."""

    name: str

    @abstractmethod
    async def check(self) -> HealthStatus: ...

    async def timed_check(self) -> HealthStatus:
        started = time.perf_counter()
        status = await self.check()
        status.latency_ms = (time.perf_counter() - started) * 1000
        return status


class OutboxBacklogHealthCheck(HealthCheck):
    """Unhealthy once more than *max_pending* records wait in the outbox."""

    name = "outbox_backlog"

    def __init__(self, store: OutboxStore, max_pending: int = 200) -> None:
        self._store = store
        self._max_pending = max_pending

    async def check(self) -> HealthStatus:
        pending = await self._store.count_pending()
        if pending > self._max_pending:
            return HealthStatus(healthy=False, detail=f"Backlog too high: {pending}")
        return HealthStatus(healthy=True, detail=f"pending={pending}")


class DeadLetterHealthCheck(HealthCheck):
    """Unhealthy while more than *max_entries* messages await an operator replay."""

    name = "dead_letters"

    def __init__(self, store: DeadLetterStore, max_entries: int = 0) -> None:
        self._store = store
        self._max_entries = max_entries

    async def check(self) -> HealthStatus:
        waiting = len(await self._store.list(limit=self._max_entries + 1))
        if waiting > self._max_entries:
            return HealthStatus(healthy=False, detail=f"Dead letters waiting: >{self._max_entries}")
        return HealthStatus(healthy=True, detail=f"dead_letters={waiting}")
