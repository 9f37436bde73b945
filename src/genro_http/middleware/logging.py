# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Access log middleware - one structured record per HTTP exchange.

Each completed exchange produces one record on ``genro_http.access``::

    GET /api/users/7 200 3.1ms

with the fields of the server's other events in ``record``: ``address``
(bind address of the serving StarletteServer), ``method``, ``path``,
``status``, ``duration_ms`` and ``client``.

An exception escaping the handler is logged at ERROR with ``status=500``
(the response RecoveryMiddleware will send) and re-raised. If the response
had already started, the status sent is kept.

Enable it per server::

    http:
      middleware:
        logging: on
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from . import BaseMiddleware

if TYPE_CHECKING:
    from ..types import ASGIApp, Message, Receive, Scope, Send


class LoggingMiddleware(BaseMiddleware):
    """Structured access log, inside recovery so it sees handler failures.

    Attributes:
        logger: Destination logger.
        address: Bind address attached to every record.
        level: Level of successful exchanges.
    """

    middleware_name = "logging"
    middleware_order = 200
    middleware_default = False

    __slots__ = ("logger", "address", "level")

    def __init__(
        self,
        app: ASGIApp,
        logger: logging.Logger | None = None,
        address: str = "",
        level: int | str = logging.INFO,
        **kwargs: Any,
    ) -> None:
        super().__init__(app, **kwargs)
        self.logger = logger or logging.getLogger("genro_http.access")
        self.address = address
        self.level = logging.getLevelName(level.upper()) if isinstance(level, str) else level

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        began = time.perf_counter()
        status = 0

        async def send_recording(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_recording)
        except Exception:
            self._record(logging.ERROR, scope, status or 500, began)
            raise
        self._record(self.level, scope, status, began)

    def _record(self, level: int, scope: Scope, status: int, began: float) -> None:
        duration_ms = round((time.perf_counter() - began) * 1000, 1)
        method = scope.get("method", "?")
        path = scope.get("path", "/")
        client = scope.get("client")
        self.logger.log(
            level,
            f"{method} {path} {status} {duration_ms}ms",
            extra={
                "address": self.address,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": duration_ms,
                "client": f"{client[0]}:{client[1]}" if client else "",
            },
        )
