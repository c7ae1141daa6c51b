"""Application saga – SagaCoordinator."""

from __future__ import annotations

from typing import Any

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from reliable_delivery.application.idempotency import IdempotencyKeyStore
from reliable_delivery.application.saga.context import SagaContext
from reliable_delivery.application.saga.errors import (
    SagaCompensationFailedError,
    SagaFailedError,
)
from reliable_delivery.application.saga.instance import SagaInstance
from reliable_delivery.application.saga.state import SagaStatus, StepStatus
from reliable_delivery.application.saga.step import SagaStep
from reliable_delivery.application.saga.store import SagaStore
from reliable_delivery.config import DeliverySettings
from reliable_delivery.kernel.errors import (
    ConflictError,
    NotFoundError,
    RequestInProgressError,
    StorageError,
    UnstorableResponseError,
    ValidationError,
)
from reliable_delivery.kernel.messaging import IdempotencyKey
from reliable_delivery.kernel.time import Clock, SystemClock
from reliable_delivery.observability.logging import get_logger
from reliable_delivery.resilience.timeouts import TimeoutPolicy

logger = get_logger(__name__)

# Failures that leave the saga untouched and resumable.
_PROPAGATE = (StorageError, RequestInProgressError)


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


def _should_retry_compensation(exc: BaseException) -> bool:
    return isinstance(exc, Exception) and not isinstance(exc, _PROPAGATE)


class SagaCoordinator:
    """Drives a :class:`SagaInstance` through its steps.

    Forward actions run in declared order.  When step *k* fails it is marked
    FAILED and the instance is saved before any compensation starts; the
    compensations of steps ``k-1 .. 1`` then run in strict reverse order.
    A step whose action finished but whose context could not be stored
    stays DONE, so its own compensation runs first.

    Every half of every step goes through
    :meth:`IdempotencyKeyStore.execute` under
    ``IdempotencyKey.for_saga_step(saga_id, step, "forward"|"compensate")``.
    The context a forward action leaves behind is the cached response, so a
    resumed saga restores it without re-running the action.  Calling
    :meth:`run` again with the same ``saga_id`` after a crash resumes from
    the persisted ``current_step_index``.

    A compensation is retried up to ``compensation_max_attempts`` times
    before the saga is declared FAILED.

    Example::

        coordinator = SagaCoordinator(
            [reserve_inventory, charge_payment, arrange_shipment],
            store=saga_store,
            idempotency=idempotency_store,
        )
        instance = await coordinator.run("order-42", {"order_id": "42"})
    """

    def __init__(
        self,
        steps: list[SagaStep],
        store: SagaStore,
        idempotency: IdempotencyKeyStore,
        *,
        settings: DeliverySettings | None = None,
        clock: Clock | None = None,
        compensation_wait: wait_base | None = None,
    ) -> None:
        if not steps:
            raise ValueError("SagaCoordinator requires at least one step")
        names = [step.name for step in steps]
        if len(set(names)) != len(names):
            raise ValueError(f"Saga step names must be unique: {names}")
        settings = settings or DeliverySettings()
        for step in steps:
            if step.timeout_seconds and step.timeout_seconds >= settings.idempotency_lock_seconds:
                raise ValueError(
                    f"Step {step.name!r} timeout {step.timeout_seconds}s must be below "
                    f"idempotency_lock_seconds ({settings.idempotency_lock_seconds}s)"
                )
        self._steps = list(steps)
        self._names = names
        self._store = store
        self._idempotency = idempotency
        self._clock = clock or SystemClock()
        self._timeouts = {
            step.name: TimeoutPolicy(step.timeout_seconds or settings.saga_step_timeout_seconds)
            for step in self._steps
        }
        self._compensation_attempts = settings.compensation_max_attempts
        self._compensation_wait = compensation_wait or wait_exponential(
            multiplier=settings.backoff_base_seconds,
            max=settings.backoff_max_seconds,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, saga_id: str, initial: dict[str, Any] | None = None) -> SagaInstance:
        """Start or resume *saga_id* and return the COMPLETED instance.

        Raises :class:`SagaFailedError` once the saga is COMPENSATED and
        :class:`SagaCompensationFailedError` when it is FAILED.  Re-running a
        terminal saga raises the same error again without executing anything.
        """
        if not saga_id:
            raise ValidationError("saga_id must not be empty")
        instance = await self._store.load(saga_id)
        if instance is None:
            instance = SagaInstance.new(saga_id, self._names, initial, self._clock.now())
            await self._store.save(instance)
            logger.info("saga.created", saga_id=saga_id, steps=self._names)
        elif instance.step_names != self._names:
            raise ValidationError(
                f"Saga '{saga_id}' was started with steps {instance.step_names}, not {self._names}"
            )
        return await self._drive(instance)

    async def get(self, saga_id: str) -> SagaInstance | None:
        return await self._store.load(saga_id)

    async def retry_compensation(self, saga_id: str) -> SagaInstance:
        """Move a FAILED saga back to COMPENSATING and resume it."""
        instance = await self._store.load(saga_id)
        if instance is None:
            raise NotFoundError("Saga", saga_id)
        if instance.status is not SagaStatus.FAILED:
            raise ConflictError(
                f"Saga '{saga_id}' is {instance.status.value}; only FAILED sagas can be retried"
            )
        instance.reopen_compensation(self._clock.now())
        await self._store.save(instance)
        logger.info("saga.compensation_retried", saga_id=saga_id)
        return await self._drive(instance)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _drive(self, instance: SagaInstance) -> SagaInstance:
        if instance.status is SagaStatus.PENDING:
            instance.start(self._clock.now())
            await self._store.save(instance)
        if instance.status is SagaStatus.RUNNING:
            await self._run_forward(instance)
        if instance.status is SagaStatus.COMPENSATING:
            await self._run_compensation(instance)

        if instance.status is SagaStatus.COMPENSATED:
            raise SagaFailedError(instance)
        if instance.status is SagaStatus.FAILED:
            raise SagaCompensationFailedError(instance)
        return instance

    async def _run_forward(self, instance: SagaInstance) -> None:
        for index in range(instance.current_step_index, len(self._steps)):
            step = self._steps[index]
            key = IdempotencyKey.for_saga_step(instance.saga_id, step.name, "forward")
            log = logger.bind(saga_id=instance.saga_id, step=step.name)
            try:
                context = await self._idempotency.execute(
                    key, lambda: self._forward(instance.saga_id, step, instance.context, key)
                )
            except _PROPAGATE:
                raise
            except UnstorableResponseError as exc:
                instance.fail_after_effect(index, _describe(exc), self._clock.now())
                await self._store.save(instance)
                log.error("saga.step_outcome_lost", error=exc)
                return
            except Exception as exc:
                instance.fail_step(index, _describe(exc), self._clock.now())
                await self._store.save(instance)
                log.warning("saga.step_failed", error=_describe(exc))
                return
            instance.complete_step(index, context, self._clock.now())
            await self._store.save(instance)
            log.info("saga.step_completed")

        instance.complete(self._clock.now())
        await self._store.save(instance)
        logger.info("saga.completed", saga_id=instance.saga_id)

    async def _run_compensation(self, instance: SagaInstance) -> None:
        for index in reversed(range(len(self._steps))):
            state = instance.steps[index]
            if state.status not in (StepStatus.DONE, StepStatus.COMPENSATING):
                continue
            step = self._steps[index]
            key = IdempotencyKey.for_saga_step(instance.saga_id, step.name, "compensate")
            log = logger.bind(saga_id=instance.saga_id, step=step.name)
            if state.status is StepStatus.DONE:
                instance.begin_compensation(index, self._clock.now())
                await self._store.save(instance)
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self._compensation_attempts),
                    wait=self._compensation_wait,
                    retry=retry_if_exception(_should_retry_compensation),
                    reraise=True,
                ):
                    with attempt:
                        await self._idempotency.execute(
                            key, lambda: self._compensate(instance.saga_id, step, instance.context, key)
                        )
            except _PROPAGATE:
                raise
            except Exception as exc:
                instance.fail_compensation(index, _describe(exc), self._clock.now())
                await self._store.save(instance)
                log.error("saga.compensation_failed", error=_describe(exc))
                raise SagaCompensationFailedError(instance, cause=exc) from exc
            instance.complete_compensation(index, self._clock.now())
            await self._store.save(instance)
            log.info("saga.step_compensated")

        instance.compensated(self._clock.now())
        await self._store.save(instance)
        logger.info("saga.compensated", saga_id=instance.saga_id, failed_step=instance.failed_step)

    # ------------------------------------------------------------------
    # Step halves
    # ------------------------------------------------------------------

    async def _forward(
        self, saga_id: str, step: SagaStep, context: dict[str, Any], key: IdempotencyKey
    ) -> dict[str, Any]:
        ctx = SagaContext(context, saga_id=saga_id, step=step.name, idempotency_key=str(key))
        await self._timeouts[step.name].execute(lambda: step.action(ctx), operation=f"Step {step.name!r}")
        return ctx.snapshot()

    async def _compensate(
        self, saga_id: str, step: SagaStep, context: dict[str, Any], key: IdempotencyKey
    ) -> bool:
        ctx = SagaContext(context, saga_id=saga_id, step=step.name, idempotency_key=str(key))
        await self._timeouts[step.name].execute(
            lambda: step.compensate(ctx), operation=f"Compensation of {step.name!r}"
        )
        return True


__all__ = ["SagaCoordinator"]
