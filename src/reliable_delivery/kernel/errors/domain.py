"""Domain errors: bad input, missing records and state conflicts."""

from __future__ import annotations

from typing import Any

from reliable_delivery.kernel.errors.base import BaseError


class DomainError(BaseError):
    """A rule of the delivery core was violated by the caller."""

    default_code = "domain_error"


class ValidationError(DomainError):
    """An identifier or argument is missing or malformed."""

    default_code = "validation_error"


class NotFoundError(DomainError):
    """No record with the given identifier exists."""

    default_code = "not_found"

    def __init__(self, resource: str, identifier: Any = None, **kwargs: Any) -> None:
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} '{identifier}' not found"
            kwargs.setdefault("detail", {"resource": resource, "id": identifier})
        super().__init__(message, **kwargs)
        self.resource = resource
        self.identifier = identifier


class ConflictError(DomainError):
    """The request cannot be applied to the record's current state."""

    default_code = "conflict"


class RequestInProgressError(ConflictError):
    """Another caller still holds the idempotency key.

    Retrying later replays the first caller's response.
    """

    default_code = "request_in_progress"
    retryable = True

    def __init__(self, key: str, **kwargs: Any) -> None:
        kwargs.setdefault("detail", {"idempotency_key": key})
        super().__init__(f"Request with idempotency key '{key}' is still in progress", **kwargs)
        self.key = key


class ConcurrencyError(ConflictError):
    """A versioned save lost to a concurrent writer."""

    default_code = "concurrency_conflict"
    retryable = True

    def __init__(self, resource: str, identifier: str, expected_version: int, **kwargs: Any) -> None:
        kwargs.setdefault(
            "detail",
            {"resource": resource, "id": identifier, "expected_version": expected_version},
        )
        super().__init__(
            f"{resource} '{identifier}' was modified concurrently (expected version {expected_version})",
            **kwargs,
        )
        self.resource = resource
        self.identifier = identifier
        self.expected_version = expected_version


__all__ = [
    "ConcurrencyError",
    "ConflictError",
    "DomainError",
    "NotFoundError",
    "RequestInProgressError",
    "ValidationError",
]
