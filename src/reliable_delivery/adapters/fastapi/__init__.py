"""FastAPI adapter – idempotency middleware, exception mapper, health router."""
from reliable_delivery.adapters.fastapi.exception_mapper import FastAPIExceptionMapper
from reliable_delivery.adapters.fastapi.middleware import IdempotencyMiddleware
from reliable_delivery.adapters.fastapi.routers import FastAPIHealthRouter

__all__ = ["FastAPIExceptionMapper", "FastAPIHealthRouter", "IdempotencyMiddleware"]
