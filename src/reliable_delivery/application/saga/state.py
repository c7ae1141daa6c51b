"""Application saga – saga and step status enums."""

from __future__ import annotations

import enum


class SagaStatus(enum.Enum):
    """Lifecycle states of a saga instance."""

    PENDING = "PENDING"
    """Created, no step started yet."""

    RUNNING = "RUNNING"
    """Forward steps are executing."""

    COMPLETED = "COMPLETED"
    """All steps are DONE."""

    COMPENSATING = "COMPENSATING"
    """A step failed; compensations are running in reverse order."""

    COMPENSATED = "COMPENSATED"
    """Every completed step was compensated."""

    FAILED = "FAILED"
    """A compensation could not complete. Needs an operator."""

    @property
    def is_terminal(self) -> bool:
        return self in (SagaStatus.COMPLETED, SagaStatus.COMPENSATED, SagaStatus.FAILED)


class StepStatus(enum.Enum):
    """Lifecycle states of one step inside a saga instance."""

    PENDING = "PENDING"
    DONE = "DONE"
    COMPENSATING = "COMPENSATING"
    COMPENSATED = "COMPENSATED"
    FAILED = "FAILED"


__all__ = ["SagaStatus", "StepStatus"]
