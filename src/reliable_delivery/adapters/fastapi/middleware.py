"""FastAPI adapter – IdempotencyMiddleware.

Replays the stored response of a request whose ``Idempotency-Key`` header
was seen before, so client retries never repeat the side effect.
"""
from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING, Any

from reliable_delivery.application.idempotency import IdempotencyKeyStore
from reliable_delivery.kernel.errors import RequestInProgressError
from reliable_delivery.kernel.messaging import IdempotencyKey
from reliable_delivery.observability.logging import get_logger

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = get_logger(__name__)

REPLAYED_HEADER = b"idempotent-replayed"


class _ServerErrorResponse(Exception):
    """Carries a 5xx response out of the idempotent operation uncached."""

    def __init__(self, response: dict[str, Any]) -> None:
        super().__init__(response["status"])
        self.response = response


class IdempotencyMiddleware:
    """Execute each keyed request at most once per ``(method, path, key)``.

    The first request runs the endpoint; its status code, headers and body
    are stored through :class:`IdempotencyKeyStore`.  A retry with the same
    key receives that response verbatim plus an ``Idempotent-Replayed: true``
    header.  A retry arriving while the first request still runs gets
    ``409`` once the store's wait timeout lapses.  5xx responses are not
    stored, so the client may retry them.

    Example::

        app.add_middleware(IdempotencyMiddleware, store=IdempotencyKeyStore(backend))
    """

    def __init__(
        self,
        app: "ASGIApp",
        store: IdempotencyKeyStore,
        header_name: str = "Idempotency-Key",
        methods: tuple[str, ...] = ("POST", "PUT", "PATCH", "DELETE"),
    ) -> None:
        self.app = app
        self._store = store
        self._header = header_name.lower().encode()
        self._methods = {m.upper() for m in methods}

    async def __call__(self, scope: "Scope", receive: "Receive", send: "Send") -> None:
        if scope["type"] != "http" or scope["method"] not in self._methods:
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        client_key = headers.get(self._header, b"").decode().strip()
        if not client_key:
            await self.app(scope, receive, send)
            return

        key = IdempotencyKey(client_key=client_key, operation=f"{scope['method']} {scope['path']}")
        executed = False

        async def operation() -> dict[str, Any]:
            nonlocal executed
            executed = True
            response = await self._capture(scope, receive)
            if response["status"] >= 500:
                raise _ServerErrorResponse(response)
            return response

        replayed = False
        try:
            response = await self._store.execute(key, operation)
            replayed = not executed
        except _ServerErrorResponse as exc:
            response = exc.response
        except RequestInProgressError as exc:
            response = _json_response(409, exc.to_dict(), [["retry-after", "1"]])

        if replayed:
            logger.info("idempotency.http_replayed", key=str(key))
        await _send_response(send, response, replayed=replayed)

    async def _capture(self, scope: "Scope", receive: "Receive") -> dict[str, Any]:
        status = 500
        raw_headers: list[tuple[bytes, bytes]] = []
        body = bytearray()

        async def capture(message: "Message") -> None:
            nonlocal status, raw_headers
            if message["type"] == "http.response.start":
                status = message["status"]
                raw_headers = list(message.get("headers", []))
            elif message["type"] == "http.response.body":
                body.extend(message.get("body", b""))

        await self.app(scope, receive, capture)
        return {
            "status": status,
            "headers": [[k.decode("latin-1"), v.decode("latin-1")] for k, v in raw_headers],
            "body": base64.b64encode(bytes(body)).decode(),
        }


def _json_response(
    status: int, content: dict[str, Any], extra_headers: list[list[str]] | None = None
) -> dict[str, Any]:
    body = json.dumps(content).encode()
    return {
        "status": status,
        "headers": [
            ["content-type", "application/json"],
            ["content-length", str(len(body))],
            *(extra_headers or []),
        ],
        "body": base64.b64encode(body).decode(),
    }


async def _send_response(send: "Send", response: dict[str, Any], *, replayed: bool) -> None:
    headers = [(k.encode("latin-1"), v.encode("latin-1")) for k, v in response["headers"]]
    if replayed:
        headers.append((REPLAYED_HEADER, b"true"))
    await send({"type": "http.response.start", "status": response["status"], "headers": headers})
    await send({"type": "http.response.body", "body": base64.b64decode(response["body"])})


__all__ = ["IdempotencyMiddleware"]
