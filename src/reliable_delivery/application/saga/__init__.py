"""Application saga – durable saga coordination with compensation."""

from reliable_delivery.application.saga.context import SagaContext
from reliable_delivery.application.saga.coordinator import SagaCoordinator
from reliable_delivery.application.saga.errors import (
    SagaCompensationFailedError,
    SagaError,
    SagaFailedError,
)
from reliable_delivery.application.saga.instance import (
    SagaInstance,
    SagaTransition,
    StepState,
)
from reliable_delivery.application.saga.state import SagaStatus, StepStatus
from reliable_delivery.application.saga.step import FunctionStep, SagaStep, StepCallable
from reliable_delivery.application.saga.store import InMemorySagaStore, SagaStore

__all__ = [
    "FunctionStep",
    "InMemorySagaStore",
    "SagaCompensationFailedError",
    "SagaContext",
    "SagaCoordinator",
    "SagaError",
    "SagaFailedError",
    "SagaInstance",
    "SagaStatus",
    "SagaStep",
    "SagaStore",
    "SagaTransition",
    "StepCallable",
    "StepState",
    "StepStatus",
]
