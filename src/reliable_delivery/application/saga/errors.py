"""Application saga – saga-specific exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from reliable_delivery.kernel.errors import DomainError

if TYPE_CHECKING:
    from reliable_delivery.application.saga.instance import SagaInstance


class SagaError(DomainError):
    """Base class for saga execution errors.

    ``instance`` is the persisted state at the moment the error was raised.
    """

    default_code = "saga_error"

    def __init__(
        self,
        instance: SagaInstance,
        message: str,
        *,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            message,
            detail={
                "saga_id": instance.saga_id,
                "status": instance.status.value,
                "failed_step": instance.failed_step,
            },
            cause=cause,
        )
        self.instance = instance
        self.saga_id = instance.saga_id
        self.failed_step = instance.failed_step


class SagaFailedError(SagaError):
    """A step failed and every completed step was compensated (COMPENSATED)."""

    default_code = "saga_failed"

    def __init__(self, instance: SagaInstance, cause: BaseException | None = None) -> None:
        super().__init__(
            instance,
            f"Saga '{instance.saga_id}' failed at step '{instance.failed_step}' and was compensated",
            cause=cause,
        )


class SagaCompensationFailedError(SagaError):
    """A compensation could not complete; the saga is FAILED."""

    default_code = "saga_compensation_failed"

    def __init__(self, instance: SagaInstance, cause: BaseException | None = None) -> None:
        super().__init__(
            instance,
            f"Saga '{instance.saga_id}' could not be compensated: {instance.error}",
            cause=cause,
        )


__all__ = ["SagaCompensationFailedError", "SagaError", "SagaFailedError"]
