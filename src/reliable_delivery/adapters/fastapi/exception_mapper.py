"""FastAPI adapter – FastAPIExceptionMapper."""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from reliable_delivery.kernel.errors import (
    BaseError,
    ConflictError,
    DeliveryTimeoutError,
    DomainError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from reliable_delivery.observability.logging import get_logger

logger = get_logger(__name__)

# most specific first; status_for() takes the first match
DEFAULT_STATUSES: tuple[tuple[type[BaseError], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (DeliveryTimeoutError, 504),
    (InfrastructureError, 503),
    (DomainError, 422),
)


class FastAPIExceptionMapper:
    """Turn delivery-core errors into JSON HTTP responses.

    The body is :meth:`BaseError.to_dict`::

        {"code": "request_in_progress", "message": "...", "detail": {...}, "retryable": true}

    Errors flagged ``retryable`` also carry ``Retry-After``, so a client
    that hit an in-flight idempotency key or an unavailable store knows to
    come back with the same key.
    """

    def __init__(
        self,
        statuses: tuple[tuple[type[BaseError], int], ...] = DEFAULT_STATUSES,
        retry_after_seconds: int = 1,
    ) -> None:
        self._statuses = statuses
        self._retry_after = retry_after_seconds

    def status_for(self, exc: Exception) -> int:
        for exc_type, status in self._statuses:
            if isinstance(exc, exc_type):
                return status
        return 500

    def to_response(self, exc: BaseError) -> JSONResponse:
        status = self.status_for(exc)
        headers = {"Retry-After": str(self._retry_after)} if exc.retryable else None
        return JSONResponse(status_code=status, content=exc.to_dict(), headers=headers)

    def register(self, app: Any) -> None:
        """Install one handler on a ``FastAPI`` or ``Starlette`` app."""

        async def handle(request: Request, exc: BaseError) -> JSONResponse:
            response = self.to_response(exc)
            if response.status_code >= 500:
                logger.error("http.error", path=request.url.path, code=exc.code, error=exc)
            else:
                logger.info("http.rejected", path=request.url.path, code=exc.code)
            return response

        app.add_exception_handler(BaseError, handle)


__all__ = ["DEFAULT_STATUSES", "FastAPIExceptionMapper"]
