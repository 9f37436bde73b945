# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Recovery middleware - turns unexpected handler failures into JSON 500s.

Any exception escaping a route endpoint is caught here, logged with
``recovered=True`` and answered with the same body a reported HandlerError
gets::

    HTTP/1.1 500 Internal Server Error
    content-type: application/json

    {"error": "<message>"}

The message is the exception text only with ``expose_errors`` (debug and test
mode); otherwise it is ``"internal server error"`` and the exception text
stays in the log record.

The failure stays inside its request: the accept loop, other in-flight
requests and the server state are not affected.

If the response had already started when the exception surfaced, nothing
more can be sent; the exception is logged and the exchange is left to the
server to close.

Note:
    This middleware is always installed by StarletteServer and runs first in
    the chain (middleware_order=100).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from . import BaseMiddleware

if TYPE_CHECKING:
    from ..types import ASGIApp, Message, Receive, Scope, Send


GENERIC_ERROR = "internal server error"


def error_body(message: str) -> bytes:
    """JSON error body shared by reported and recovered failures."""
    return json.dumps({"error": message}, separators=(",", ":")).encode("utf-8")


class RecoveryMiddleware(BaseMiddleware):
    """Catch-all for exceptions raised while handling HTTP requests.

    Attributes:
        logger: Logger receiving recovered failures.
        expose_errors: Send the exception text to the client. When False the
            body carries GENERIC_ERROR and the detail only reaches the log.
    """

    middleware_name = "recovery"
    middleware_order = 100
    middleware_default = True

    __slots__ = ("logger", "expose_errors")

    def __init__(
        self,
        app: ASGIApp,
        logger: logging.Logger | None = None,
        expose_errors: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(app, **kwargs)
        self.logger = logger or logging.getLogger("genro_http.server")
        self.expose_errors = expose_errors

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking)
        except Exception as e:
            method = scope.get("method", "?")
            path = scope.get("path", "/")
            self.logger.error(
                f"handler failure on {method} {path}: {e!r}",
                exc_info=True,
                extra={"recovered": True, "method": method, "path": path},
            )
            if response_started:
                return
            message = (str(e) or type(e).__name__) if self.expose_errors else GENERIC_ERROR
            await self._send_error(send, message)

    async def _send_error(self, send: Send, message: str) -> None:
        body = error_body(message)
        await send(
            {
                "type": "http.response.start",
                "status": 500,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode()),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
