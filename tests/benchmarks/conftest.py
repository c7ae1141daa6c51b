"""conftest.py for benchmarks.

Every benchmark drives its coroutines through one session-wide event loop
so loop start-up cost stays out of the timings.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterator

import pytest


@pytest.fixture(scope="session")
def bench_loop() -> Iterator[asyncio.AbstractEventLoop]:
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture(scope="session")
def run_async(bench_loop: asyncio.AbstractEventLoop) -> Callable[[Awaitable[Any]], Any]:
    """Run one awaitable to completion on the shared loop."""

    def _run(awaitable: Awaitable[Any]) -> Any:
        return bench_loop.run_until_complete(awaitable)

    return _run
