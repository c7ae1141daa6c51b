"""Application saga – SagaInstance, the persisted state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from reliable_delivery.application.saga.state import SagaStatus, StepStatus
from reliable_delivery.kernel.time import as_utc


@dataclass
class StepState:
    """Progress of one step inside a saga instance."""

    name: str
    status: StepStatus = StepStatus.PENDING
    error: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class SagaTransition:
    """One entry of the saga's audit trail."""

    at: datetime
    step: str
    status: str
    message: str | None = None


@dataclass
class SagaInstance:
    """Durable representation of a saga's progress.

    Only :class:`~reliable_delivery.application.saga.coordinator.SagaCoordinator`
    mutates instances.  ``version`` is bumped by the store on every save and
    guards against two coordinators advancing the same saga.
    """

    saga_id: str
    steps: list[StepState]
    status: SagaStatus = SagaStatus.PENDING
    current_step_index: int = 0
    context: dict[str, Any] = field(default_factory=dict)
    failed_step: str | None = None
    error: str | None = None
    history: list[SagaTransition] = field(default_factory=list)
    version: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def new(
        cls,
        saga_id: str,
        step_names: list[str],
        context: dict[str, Any] | None,
        now: datetime,
    ) -> "SagaInstance":
        instance = cls(
            saga_id=saga_id,
            steps=[StepState(name=name) for name in step_names],
            context=dict(context or {}),
            created_at=now,
            updated_at=now,
        )
        instance._record(now, "saga", SagaStatus.PENDING.value)
        return instance

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, now: datetime) -> None:
        self.status = SagaStatus.RUNNING
        self._record(now, "saga", SagaStatus.RUNNING.value)

    def complete_step(self, index: int, context: dict[str, Any], now: datetime) -> None:
        step = self.steps[index]
        step.status = StepStatus.DONE
        step.updated_at = now
        self.context = dict(context)
        self.current_step_index = index + 1
        self._record(now, step.name, StepStatus.DONE.value)

    def complete(self, now: datetime) -> None:
        self.status = SagaStatus.COMPLETED
        self._record(now, "saga", SagaStatus.COMPLETED.value)

    def fail_step(self, index: int, error: str, now: datetime) -> None:
        """Mark the forward step FAILED and switch the saga to COMPENSATING."""
        step = self.steps[index]
        step.status = StepStatus.FAILED
        step.error = error
        step.updated_at = now
        self.current_step_index = index
        self.failed_step = step.name
        self.error = error
        self.status = SagaStatus.COMPENSATING
        self._record(now, step.name, StepStatus.FAILED.value, error)

    def fail_after_effect(self, index: int, error: str, now: datetime) -> None:
        """The forward step ran but its outcome was lost; it stays DONE so it is compensated."""
        step = self.steps[index]
        step.status = StepStatus.DONE
        step.error = error
        step.updated_at = now
        self.current_step_index = index
        self.failed_step = step.name
        self.error = error
        self.status = SagaStatus.COMPENSATING
        self._record(now, step.name, StepStatus.DONE.value, error)

    def begin_compensation(self, index: int, now: datetime) -> None:
        step = self.steps[index]
        step.status = StepStatus.COMPENSATING
        step.updated_at = now
        self.current_step_index = index
        self._record(now, step.name, StepStatus.COMPENSATING.value)

    def complete_compensation(self, index: int, now: datetime) -> None:
        step = self.steps[index]
        step.status = StepStatus.COMPENSATED
        step.error = None
        step.updated_at = now
        self._record(now, step.name, StepStatus.COMPENSATED.value)

    def fail_compensation(self, index: int, error: str, now: datetime) -> None:
        """The step stays COMPENSATING; the saga becomes FAILED."""
        step = self.steps[index]
        step.error = error
        step.updated_at = now
        self.status = SagaStatus.FAILED
        self.error = error
        self._record(now, step.name, "COMPENSATION_FAILED", error)

    def compensated(self, now: datetime) -> None:
        self.status = SagaStatus.COMPENSATED
        self._record(now, "saga", SagaStatus.COMPENSATED.value)

    def reopen_compensation(self, now: datetime) -> None:
        self.status = SagaStatus.COMPENSATING
        self._record(now, "saga", SagaStatus.COMPENSATING.value, "compensation retried by operator")

    def _record(self, now: datetime, step: str, status: str, message: str | None = None) -> None:
        self.updated_at = now
        self.history.append(SagaTransition(at=now, step=step, status=status, message=message))

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "saga_id": self.saga_id,
            "status": self.status.value,
            "current_step_index": self.current_step_index,
            "steps": [
                {
                    "name": s.name,
                    "status": s.status.value,
                    "error": s.error,
                    "updated_at": s.updated_at.isoformat() if s.updated_at else None,
                }
                for s in self.steps
            ],
            "context": dict(self.context),
            "failed_step": self.failed_step,
            "error": self.error,
            "history": [
                {"at": t.at.isoformat(), "step": t.step, "status": t.status, "message": t.message}
                for t in self.history
            ],
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SagaInstance":
        return cls(
            saga_id=data["saga_id"],
            status=SagaStatus(data["status"]),
            current_step_index=data["current_step_index"],
            steps=[
                StepState(
                    name=s["name"],
                    status=StepStatus(s["status"]),
                    error=s.get("error"),
                    updated_at=_parse(s.get("updated_at")),
                )
                for s in data["steps"]
            ],
            context=dict(data.get("context") or {}),
            failed_step=data.get("failed_step"),
            error=data.get("error"),
            history=[
                SagaTransition(
                    at=_parse(t["at"]),  # type: ignore[arg-type]
                    step=t["step"],
                    status=t["status"],
                    message=t.get("message"),
                )
                for t in data.get("history") or []
            ],
            version=data.get("version", 0),
            created_at=_parse(data["created_at"]),  # type: ignore[arg-type]
            updated_at=_parse(data["updated_at"]),  # type: ignore[arg-type]
        )


def _parse(value: str | None) -> datetime | None:
    if value is None:
        return None
    return as_utc(datetime.fromisoformat(value))


__all__ = ["SagaInstance", "SagaTransition", "StepState"]
