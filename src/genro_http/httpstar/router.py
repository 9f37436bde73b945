# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""StarletteRouter - Router adapter over Starlette's route table.

Each registration wraps the neutral handler in a Starlette endpoint that:

1. reads the request body and builds a fresh StarletteContext;
2. calls the handler (sync handlers run in a worker thread via smartasync);
3. on HandlerError answers 500 ``{"error": <message>}``, discarding the body
   the handler wrote but keeping headers set with set_header(), and logs
   the failure as reported (``recovered=False``).

Other exceptions propagate to RecoveryMiddleware.

With a non-zero ``request_timeout`` each request context gets the deadline
``time.monotonic() + request_timeout``; handlers observe it through
``ctx.request_context().check()``.

Paths use Starlette syntax (``/users/{id}``, ``/files/{rest:path}``);
``:id`` and ``*rest`` segments are translated. Starlette matches routes in
registration order and dispatches the first full match, so the first
registration of a method and path wins.
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Callable

from smartasync import smartasync
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Router as RouteTable

from ..exceptions import HandlerError
from ..interfaces import Router
from .context import StarletteContext, StarletteRequestContext

if TYPE_CHECKING:
    from ..types import HandlerFunc

__all__ = ["StarletteRouter"]

_PARAM_SEGMENT = re.compile(r"(?<=/):([A-Za-z_]\w*)")
_WILDCARD_SEGMENT = re.compile(r"(?<=/)\*([A-Za-z_]\w*)")


class StarletteRouter(Router):
    """Router adapter for one prefix scope of a Starlette route table.

    Attributes:
        prefix: Path prefix applied to every registration.
        request_timeout: Seconds until the deadline of each request context,
            0 for no deadline.
    """

    __slots__ = ("_routes", "prefix", "request_timeout", "_guard", "_logger")

    def __init__(
        self,
        routes: RouteTable,
        prefix: str = "",
        guard: Callable[[], None] | None = None,
        logger: logging.Logger | None = None,
        request_timeout: float = 0,
    ) -> None:
        self._routes = routes
        self.prefix = _normalize_prefix(prefix)
        self.request_timeout = request_timeout
        self._guard = guard
        self._logger = logger or logging.getLogger("genro_http.server")

    def get(self, path: str, handler: HandlerFunc) -> None:
        self.handle("GET", path, handler)

    def post(self, path: str, handler: HandlerFunc) -> None:
        self.handle("POST", path, handler)

    def put(self, path: str, handler: HandlerFunc) -> None:
        self.handle("PUT", path, handler)

    def delete(self, path: str, handler: HandlerFunc) -> None:
        self.handle("DELETE", path, handler)

    def patch(self, path: str, handler: HandlerFunc) -> None:
        self.handle("PATCH", path, handler)

    def group(self, prefix: str) -> StarletteRouter:
        return StarletteRouter(
            self._routes,
            _join(self.prefix, _normalize_prefix(prefix)),
            guard=self._guard,
            logger=self._logger,
            request_timeout=self.request_timeout,
        )

    def handle(self, method: str, path: str, handler: HandlerFunc) -> None:
        """Register handler for method and path (relative to prefix).

        Raises:
            ServerStateError: If the owning server already started.
        """
        if self._guard is not None:
            self._guard()
        full_path = _to_engine_path(_join(self.prefix, path))
        self._routes.add_route(full_path, self._wrap(handler), methods=[method.upper()])
        self._logger.debug(f"route {method.upper()} {full_path}")

    def _wrap(self, handler: HandlerFunc) -> Callable[[Request], object]:
        logger = self._logger
        timeout = self.request_timeout

        async def endpoint(request: Request) -> Response:
            deadline = time.monotonic() + timeout if timeout else None
            body = await request.body()
            request_context = StarletteRequestContext(request, deadline)
            ctx = StarletteContext(request, body, request_context)
            try:
                await smartasync(handler)(ctx)
            except HandlerError as e:
                message = e.message or str(e)
                logger.warning(
                    f"handler reported failure on {request.method} {request.url.path}: {message}",
                    extra={"recovered": False, "method": request.method, "path": request.url.path},
                )
                return ctx.render_error(message)
            finally:
                request_context.cancel()
            return ctx.render()

        endpoint.__name__ = getattr(handler, "__name__", "endpoint")
        endpoint.__qualname__ = getattr(handler, "__qualname__", endpoint.__name__)
        return endpoint

    def __repr__(self) -> str:
        return f"StarletteRouter(prefix={self.prefix!r})"


def _normalize_prefix(prefix: str) -> str:
    if not prefix or prefix == "/":
        return ""
    return "/" + prefix.strip("/")


def _join(prefix: str, path: str) -> str:
    if not prefix:
        return path or "/"
    if not path:
        return prefix
    return prefix.rstrip("/") + "/" + path.lstrip("/")


def _to_engine_path(path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    path = _PARAM_SEGMENT.sub(r"{\1}", path)
    return _WILDCARD_SEGMENT.sub(r"{\1:path}", path)
