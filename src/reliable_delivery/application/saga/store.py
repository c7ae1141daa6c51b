"""Application saga – SagaStore port and InMemorySagaStore."""

from __future__ import annotations

import abc
import copy
import threading

from reliable_delivery.application.saga.instance import SagaInstance
from reliable_delivery.kernel.errors import ConcurrencyError


class SagaStore(abc.ABC):
    """Port – persist and retrieve saga instances.

    ``save`` is a compare-and-set on ``instance.version``: it succeeds only
    when the stored version still equals the one the caller loaded (``0`` for
    a new saga), then bumps ``instance.version``.  A mismatch raises
    :class:`~reliable_delivery.kernel.errors.ConcurrencyError`.
    """

    @abc.abstractmethod
    async def save(self, instance: SagaInstance) -> None:
        """Persist *instance* and increment its ``version``."""

    @abc.abstractmethod
    async def load(self, saga_id: str) -> SagaInstance | None:
        """Return the latest state for *saga_id*, or ``None``."""


class InMemorySagaStore(SagaStore):
    """In-memory :class:`SagaStore` for tests and local development."""

    def __init__(self) -> None:
        self._records: dict[str, SagaInstance] = {}
        self._lock = threading.Lock()

    async def save(self, instance: SagaInstance) -> None:
        with self._lock:
            current = self._records.get(instance.saga_id)
            stored_version = current.version if current is not None else 0
            if stored_version != instance.version:
                raise ConcurrencyError("SagaInstance", instance.saga_id, instance.version)
            instance.version += 1
            self._records[instance.saga_id] = copy.deepcopy(instance)

    async def load(self, saga_id: str) -> SagaInstance | None:
        instance = self._records.get(saga_id)
        return copy.deepcopy(instance) if instance is not None else None

    def all_records(self) -> dict[str, SagaInstance]:
        """Return all stored instances (useful in tests)."""
        return {k: copy.deepcopy(v) for k, v in self._records.items()}


__all__ = ["InMemorySagaStore", "SagaStore"]
