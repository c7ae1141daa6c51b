"""Application idempotency – response serializers."""
from __future__ import annotations

import abc
import json
from typing import Any

from reliable_delivery.kernel.errors import SerializationError


class ResponseSerializer(abc.ABC):
    """Port: turn an operation result into bytes and back."""

    @abc.abstractmethod
    def dumps(self, value: Any) -> bytes: ...

    @abc.abstractmethod
    def loads(self, data: bytes) -> Any: ...


class JsonResponseSerializer(ResponseSerializer):
    """UTF-8 JSON; results must be JSON-serialisable."""

    def dumps(self, value: Any) -> bytes:
        try:
            return json.dumps(value, sort_keys=True, separators=(",", ":")).encode()
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Response of type {type(value).__name__} is not JSON serialisable", cause=exc) from exc

    def loads(self, data: bytes) -> Any:
        try:
            return json.loads(data)
        except ValueError as exc:
            raise SerializationError("Stored response is not valid JSON", cause=exc) from exc


__all__ = ["JsonResponseSerializer", "ResponseSerializer"]
