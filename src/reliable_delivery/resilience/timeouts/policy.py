"""Resilience – TimeoutPolicy."""
from __future__ import annotations

import asyncio
import dataclasses
from typing import Awaitable, Callable, TypeVar

from reliable_delivery.kernel.errors import DeliveryTimeoutError

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class TimeoutPolicy:
    """Deadline for one transport send or saga step half.

    Expiry cancels the call and raises ``DeliveryTimeoutError``, which the
    relay treats as a transient failure and the saga as a failed step.
    """

    timeout_seconds: float

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")

    async def execute(self, func: Callable[[], Awaitable[T]], *, operation: str = "Operation") -> T:
        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await func()
        except TimeoutError as exc:
            raise DeliveryTimeoutError(
                f"{operation} timed out after {self.timeout_seconds}s",
                timeout_seconds=self.timeout_seconds,
            ) from exc


__all__ = ["TimeoutPolicy"]
