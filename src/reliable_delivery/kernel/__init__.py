"""Kernel – framework-agnostic building blocks (errors, messaging ports, clock)."""

from reliable_delivery.kernel.errors import (
    BaseError,
    ConcurrencyError,
    ConflictError,
    DeliveryTimeoutError,
    DomainError,
    InfrastructureError,
    NotFoundError,
    PermanentDeliveryError,
    RequestInProgressError,
    StorageError,
    TransientDeliveryError,
    ValidationError,
)

__all__ = [
    "BaseError",
    "ConcurrencyError",
    "ConflictError",
    "DeliveryTimeoutError",
    "DomainError",
    "InfrastructureError",
    "NotFoundError",
    "PermanentDeliveryError",
    "RequestInProgressError",
    "StorageError",
    "TransientDeliveryError",
    "ValidationError",
]
