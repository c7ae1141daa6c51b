"""FastAPI adapter – health router."""
from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from reliable_delivery.observability.health import HealthCheck, HealthStatus


async def _run_check(check: HealthCheck) -> HealthStatus:
    try:
        return await check.timed_check()
    except Exception as exc:  # noqa: BLE001
        return HealthStatus(healthy=False, detail=str(exc))


def FastAPIHealthRouter(
    path: str = "/health",
    checks: list[HealthCheck] | None = None,
    tags: list[str] | None = None,
) -> APIRouter:
    """Return a router with ``{path}/live`` and ``{path}/ready``.

    Readiness runs every check concurrently, e.g. an
    :class:`~reliable_delivery.observability.health.OutboxBacklogHealthCheck`
    so a relay that has fallen behind takes its pod out of rotation.  It
    answers 200 when all checks pass and 503 otherwise.
    """
    router = APIRouter(tags=tags or ["ops"])
    registered = list(checks or [])

    @router.get(f"{path}/live")
    async def liveness() -> dict[str, str]:
        return {"status": "ok"}

    @router.get(f"{path}/ready")
    async def readiness() -> Any:
        statuses = await asyncio.gather(*(_run_check(check) for check in registered))
        healthy = all(status.healthy for status in statuses)
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "ok" if healthy else "degraded",
                "checks": {
                    check.name: {
                        "healthy": status.healthy,
                        "detail": status.detail,
                        "latency_ms": round(status.latency_ms, 3),
                    }
                    for check, status in zip(registered, statuses)
                },
            },
        )

    return router


__all__ = ["FastAPIHealthRouter"]
