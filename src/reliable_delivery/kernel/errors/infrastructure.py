"""Infrastructure errors: storage failures and transport delivery outcomes."""

from __future__ import annotations

from typing import Any

from reliable_delivery.kernel.errors.base import BaseError


def _with_detail(kwargs: dict[str, Any], **fields: Any) -> dict[str, Any]:
    detail = {k: v for k, v in fields.items() if v is not None}
    detail.update(kwargs.get("detail") or {})
    kwargs["detail"] = detail
    return kwargs


class InfrastructureError(BaseError):
    """A database, cache or broker call failed."""

    default_code = "infrastructure_error"
    retryable = True


class StorageError(InfrastructureError):
    """A store could not complete a read or write.

    Raised on the critical write path (outbox save, inbox claim, idempotency
    claim, saga save) and never swallowed: the caller's operation must abort.
    """

    default_code = "storage_error"

    def __init__(self, message: str, *, store: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **_with_detail(kwargs, store=store))
        self.store = store


class DeliveryTimeoutError(InfrastructureError):
    """A transport send or saga step exceeded its deadline."""

    default_code = "delivery_timeout"

    def __init__(self, message: str, *, timeout_seconds: float | None = None, **kwargs: Any) -> None:
        super().__init__(message, **_with_detail(kwargs, timeout_seconds=timeout_seconds))
        self.timeout_seconds = timeout_seconds


class DeliveryError(InfrastructureError):
    """The transport did not acknowledge a message."""

    default_code = "delivery_error"


class TransientDeliveryError(DeliveryError):
    """Network or broker hiccup; the relay retries with backoff."""

    default_code = "transient_delivery_error"


class PermanentDeliveryError(DeliveryError):
    """The broker refused the message or retries ran out; it is dead-lettered."""

    default_code = "permanent_delivery_error"
    retryable = False

    def __init__(self, message: str, *, attempts: int | None = None, **kwargs: Any) -> None:
        super().__init__(message, **_with_detail(kwargs, attempts=attempts))
        self.attempts = attempts


class SerializationError(InfrastructureError):
    """A response or payload could not be encoded or decoded."""

    default_code = "serialization_error"
    retryable = False


class UnstorableResponseError(SerializationError):
    """An idempotent operation ran but its result could not be stored.

    The key is consumed: every later call with it raises this error instead of
    running the operation again.
    """

    default_code = "unstorable_response"

    def __init__(self, message: str, *, idempotency_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **_with_detail(kwargs, idempotency_key=idempotency_key))
        self.idempotency_key = idempotency_key


__all__ = [
    "DeliveryError",
    "DeliveryTimeoutError",
    "InfrastructureError",
    "PermanentDeliveryError",
    "SerializationError",
    "StorageError",
    "TransientDeliveryError",
    "UnstorableResponseError",
]
