"""Testing fixtures – pytest fixtures for the in-memory stores.

Enable in your ``conftest.py``::

    pytest_plugins = ["reliable_delivery.testing.fixtures"]
"""
from __future__ import annotations

import pytest

from reliable_delivery.application.idempotency import (
    IdempotencyKeyStore,
    InMemoryIdempotencyBackend,
)
from reliable_delivery.application.inbox import InMemoryInboxStore
from reliable_delivery.application.outbox import InMemoryDeadLetterStore, InMemoryOutboxStore
from reliable_delivery.application.saga import InMemorySagaStore
from reliable_delivery.config import DeliverySettings
from reliable_delivery.kernel.time import FrozenClock
from reliable_delivery.testing.fakes import FakeClock, RecordingTransport


@pytest.fixture()
def fake_clock() -> FrozenClock:
    return FakeClock()


@pytest.fixture()
def delivery_settings() -> DeliverySettings:
    """Settings with short waits so tests never sleep for long."""
    return DeliverySettings(
        backoff_base_seconds=0.01,
        backoff_max_seconds=0.05,
        relay_poll_interval_seconds=0.01,
        send_timeout_seconds=0.5,
        relay_claim_lease_seconds=5.0,
        idempotency_wait_timeout_seconds=0.5,
        saga_step_timeout_seconds=1.0,
    )


@pytest.fixture()
def outbox_store() -> InMemoryOutboxStore:
    return InMemoryOutboxStore()


@pytest.fixture()
def dead_letter_store() -> InMemoryDeadLetterStore:
    return InMemoryDeadLetterStore()


@pytest.fixture()
def inbox_store(fake_clock: FrozenClock) -> InMemoryInboxStore:
    return InMemoryInboxStore(clock=fake_clock)


@pytest.fixture()
def idempotency_backend() -> InMemoryIdempotencyBackend:
    return InMemoryIdempotencyBackend()


@pytest.fixture()
def idempotency_store(
    idempotency_backend: InMemoryIdempotencyBackend,
    delivery_settings: DeliverySettings,
) -> IdempotencyKeyStore:
    return IdempotencyKeyStore(idempotency_backend, settings=delivery_settings, poll_interval=0.01)


@pytest.fixture()
def saga_store() -> InMemorySagaStore:
    return InMemorySagaStore()


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()


__all__ = [
    "dead_letter_store",
    "delivery_settings",
    "fake_clock",
    "idempotency_backend",
    "idempotency_store",
    "inbox_store",
    "outbox_store",
    "saga_store",
    "transport",
]
