"""Shared pytest fixtures."""
from reliable_delivery.testing.fixtures import (  # noqa: F401
    dead_letter_store,
    delivery_settings,
    fake_clock,
    idempotency_backend,
    idempotency_store,
    inbox_store,
    outbox_store,
    saga_store,
    transport,
)
