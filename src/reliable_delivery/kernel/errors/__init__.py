"""Kernel error hierarchy – public re-export surface.

Hierarchy::

    BaseError
    ├── DomainError              (domain.py)
    │   ├── ValidationError
    │   ├── NotFoundError
    │   └── ConflictError
    │       ├── RequestInProgressError
    │       └── ConcurrencyError
    └── InfrastructureError      (infrastructure.py)
        ├── StorageError
        ├── DeliveryTimeoutError
        ├── SerializationError
        │   └── UnstorableResponseError
        └── DeliveryError
            ├── TransientDeliveryError
            └── PermanentDeliveryError
"""

from reliable_delivery.kernel.errors.base import BaseError
from reliable_delivery.kernel.errors.domain import (
    ConcurrencyError,
    ConflictError,
    DomainError,
    NotFoundError,
    RequestInProgressError,
    ValidationError,
)
from reliable_delivery.kernel.errors.infrastructure import (
    DeliveryError,
    DeliveryTimeoutError,
    InfrastructureError,
    PermanentDeliveryError,
    SerializationError,
    StorageError,
    TransientDeliveryError,
    UnstorableResponseError,
)

__all__ = [
    "BaseError",
    "ConcurrencyError",
    "ConflictError",
    "DeliveryError",
    "DeliveryTimeoutError",
    "DomainError",
    "InfrastructureError",
    "NotFoundError",
    "PermanentDeliveryError",
    "RequestInProgressError",
    "SerializationError",
    "StorageError",
    "TransientDeliveryError",
    "UnstorableResponseError",
    "ValidationError",
]
