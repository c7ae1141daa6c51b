"""Application saga – SagaStep and FunctionStep."""

from __future__ import annotations

import abc
from typing import Awaitable, Callable

from reliable_delivery.application.saga.context import SagaContext

StepCallable = Callable[[SagaContext], Awaitable[None]]


class SagaStep(abc.ABC):
    """One forward action of a saga paired with the action that undoes it.

    The coordinator may call either half more than once across crashes and
    retries, always with the same ``ctx.idempotency_key``; side effects on
    other services must be keyed on it.

    ``timeout_seconds`` overrides ``DeliverySettings.saga_step_timeout_seconds``
    for this step when set.
    """

    timeout_seconds: float | None = None

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Stable name; part of the step's idempotency keys."""

    @abc.abstractmethod
    async def action(self, ctx: SagaContext) -> None:
        """Do the work and record anything later steps need in *ctx*.

        Raising fails the step and starts compensation.
        """

    @abc.abstractmethod
    async def compensate(self, ctx: SagaContext) -> None:
        """Undo :meth:`action`; runs only for steps whose action completed.

        Raising counts as a failed attempt; after the last attempt the saga
        is FAILED.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionStep(SagaStep):
    """A step built from a pair of coroutine functions.

    Example::

        reserve = FunctionStep("ReserveInventory", inventory.reserve, inventory.release)
    """

    def __init__(
        self,
        name: str,
        action: StepCallable,
        compensate: StepCallable,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        if not name:
            raise ValueError("FunctionStep requires a name")
        self._name = name
        self._action = action
        self._compensate = compensate
        self.timeout_seconds = timeout_seconds

    @property
    def name(self) -> str:
        return self._name

    async def action(self, ctx: SagaContext) -> None:
        await self._action(ctx)

    async def compensate(self, ctx: SagaContext) -> None:
        await self._compensate(ctx)


__all__ = ["FunctionStep", "SagaStep", "StepCallable"]
