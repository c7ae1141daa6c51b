"""Application saga – SagaContext."""

from __future__ import annotations

import copy
from typing import Any


class SagaContext:
    """State handed to each step half of one saga run.

    Values must be JSON-serialisable: the context a forward action leaves
    behind is stored as that action's idempotent response, and a resumed
    saga restores it from there instead of re-running the action.

    ``idempotency_key`` is unique to this saga, step and phase; forward it
    to downstream services so their side effects are deduplicated as well::

        async def charge(ctx: SagaContext) -> None:
            receipt = await payments.charge(ctx.require("amount"), key=ctx.idempotency_key)
            ctx.set("payment_id", receipt.id)
    """

    def __init__(
        self,
        initial: dict[str, Any] | None = None,
        *,
        saga_id: str | None = None,
        step: str | None = None,
        idempotency_key: str | None = None,
    ) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})
        self.saga_id = saga_id
        self.step = step
        self.idempotency_key = idempotency_key

    def set(self, key: str, value: Any) -> None:  # noqa: ANN401
        self._data[key] = value

    def get(self, key: str, default: Any = None) -> Any:  # noqa: ANN401
        return self._data.get(key, default)

    def require(self, key: str) -> Any:  # noqa: ANN401
        """Return *key* or raise ``KeyError`` naming the saga and step."""
        try:
            return self._data[key]
        except KeyError:
            raise KeyError(f"saga {self.saga_id!r} step {self.step!r} needs context key {key!r}") from None

    def update(self, values: dict[str, Any]) -> None:
        self._data.update(values)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"SagaContext(saga_id={self.saga_id!r}, step={self.step!r}, data={self._data!r})"

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the data; later writes do not leak into it."""
        return copy.deepcopy(self._data)

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "SagaContext":
        return cls(data)


__all__ = ["SagaContext"]
