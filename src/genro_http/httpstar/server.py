# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""StarletteServer - Server implementation on Starlette and uvicorn.

Starlette is the engine (route table, middleware chain, JSON rendering);
uvicorn runs the accept loop on a socket bound here.

Lifecycle::

    CONSTRUCTED --start()--> LISTENING --stop()--> STOPPED

    start()  at most once; a second call raises ServerStateError.
    stop()   idempotent; a no-op before start() and after the first stop().

Usage::

    server = StarletteServer(HttpConfig(port=8080))
    server.router().get("/hello", hello)
    await server.start()      # returns once the socket is bound
    ...
    await server.stop()       # drains for up to 5 seconds

Bind failures:
    With ``config.strict_bind`` (default) start() raises ListenError.
    Without it, the failure is only logged as "listen error" and start()
    returns normally. Accept-loop failures after start() are always only
    logged.

Shutdown:
    stop() asks uvicorn to exit, lets in-flight requests finish for up to
    grace_period seconds (fixed per instance, the caller cannot change it),
    cancels what remains and raises ShutdownTimeout if anything was
    cancelled.

Mode:
    debug sets the Starlette debug flag. In release mode recovered failures
    answer ``{"error": "internal server error"}``; debug and test mode send
    the exception text.

Logging:
    Events "starting", "stopping", "stopped" and "listen error" carry the
    bind address in ``record.address``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from enum import Enum
from typing import Iterator

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..config import HttpConfig, Mode
from ..exceptions import ListenError, ServerStateError, ShutdownTimeout
from ..interfaces import Server
from ..middleware import middleware_chain
from ..types import Receive, Scope, Send
from .router import StarletteRouter

__all__ = ["StarletteServer", "ServerState", "GRACE_PERIOD"]

GRACE_PERIOD = 5.0

# extra time stop() waits for uvicorn beyond its own graceful timeout
_SHUTDOWN_SLACK = 1.0

_LOG_LEVELS = {Mode.DEBUG: "debug", Mode.RELEASE: "info", Mode.TEST: "warning"}


class ServerState(str, Enum):
    CONSTRUCTED = "constructed"
    LISTENING = "listening"
    STOPPED = "stopped"


class _EmbeddedUvicorn(uvicorn.Server):
    """uvicorn.Server that leaves signal handling to the host lifecycle."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        pass


async def _health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


class StarletteServer(Server):
    """
    HTTP server owning one Starlette engine and, while listening, one socket.

    Attributes:
        config: HttpConfig (shared, immutable).
        logger: Logger for lifecycle events and handler failures.
        grace_period: Seconds stop() waits for in-flight requests.
    """

    __slots__ = (
        "config",
        "logger",
        "grace_period",
        "_engine",
        "_state",
        "_listener",
        "_uvicorn",
        "_serve_task",
        "_inflight",
        "_aborted",
    )

    def __init__(
        self,
        config: HttpConfig | None = None,
        logger: logging.Logger | None = None,
        grace_period: float = GRACE_PERIOD,
    ) -> None:
        self.config = config or HttpConfig()
        self.logger = logger or logging.getLogger("genro_http.server")
        self.grace_period = grace_period

        middleware = middleware_chain(
            {**self.config.middleware, "recovery": True},
            options={
                "recovery": {"logger": self.logger, "expose_errors": self.config.mode is not Mode.RELEASE},
                "logging": {"address": self.addr()},
            },
        )
        self._engine = Starlette(debug=self.config.mode is Mode.DEBUG, middleware=middleware)
        # registered first: no later route can shadow it
        self._engine.router.add_route("/health", _health, methods=["GET"], name="health")

        self._state = ServerState.CONSTRUCTED
        self._listener: socket.socket | None = None
        self._uvicorn: _EmbeddedUvicorn | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._inflight = 0
        self._aborted = 0

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def bound_address(self) -> tuple[str, int] | None:
        """Actual (host, port) of the listener, None unless listening."""
        if self._listener is None:
            return None
        host, port = self._listener.getsockname()[:2]
        return host, port

    def addr(self) -> str:
        if self.config.host:
            return f"{self.config.host}:{self.config.port}"
        return f":{self.config.port}"

    def engine_handle(self) -> Starlette:
        """The underlying Starlette app.

        Meant for setup before start() (e.g. engine_handle().add_middleware(...)).
        Not safe to use concurrently with request handling.
        """
        return self._engine

    def router(self) -> StarletteRouter:
        return StarletteRouter(
            self._engine.router,
            guard=self._ensure_configurable,
            logger=self.logger,
            request_timeout=self.config.request_timeout,
        )

    async def start(self) -> None:
        if self._state is not ServerState.CONSTRUCTED:
            raise ServerStateError(f"server already {self._state.value}")
        address = self.addr()

        try:
            self._listener = self._bind()
        except OSError as e:
            self.logger.error(
                f"listen error address={address}: {e}",
                extra={"address": address},
            )
            if self.config.strict_bind:
                raise ListenError(address, e) from e
            self._state = ServerState.STOPPED
            return

        self.logger.info(f"starting address={address}", extra={"address": address})

        uvicorn_config = uvicorn.Config(
            self._serve_asgi,
            interface="asgi3",
            lifespan="off",
            log_config=None,
            log_level=_LOG_LEVELS[self.config.mode],
            timeout_graceful_shutdown=self.grace_period,
        )
        self._uvicorn = _EmbeddedUvicorn(uvicorn_config)
        self._serve_task = asyncio.create_task(self._uvicorn.serve(sockets=[self._listener]))
        self._serve_task.add_done_callback(self._on_serve_done)
        self._state = ServerState.LISTENING

    async def stop(self) -> None:
        if self._state is not ServerState.LISTENING:
            return
        self._state = ServerState.STOPPED
        address = self.addr()
        self.logger.info(f"stopping address={address}", extra={"address": address})

        assert self._uvicorn is not None and self._serve_task is not None
        self._uvicorn.should_exit = True
        try:
            if not self._serve_task.done():
                await asyncio.wait_for(
                    asyncio.shield(self._serve_task),
                    timeout=self.grace_period + _SHUTDOWN_SLACK,
                )
        except asyncio.TimeoutError:
            self._uvicorn.force_exit = True
            self._serve_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._serve_task
            pending = max(self._inflight + self._aborted, 1)
            raise ShutdownTimeout(address, self.grace_period, pending) from None
        finally:
            self._close_listener()

        pending = self._aborted + self._inflight
        self.logger.info(f"stopped address={address}", extra={"address": address})
        if pending:
            raise ShutdownTimeout(address, self.grace_period, pending)

    def _ensure_configurable(self) -> None:
        if self._state is not ServerState.CONSTRUCTED:
            raise ServerStateError(f"cannot register routes: server is {self._state.value}")

    def _bind(self) -> socket.socket:
        host = self.config.host
        port = self.config.port
        if not host:
            if socket.has_dualstack_ipv6():
                return socket.create_server(("", port), family=socket.AF_INET6, dualstack_ipv6=True)
            return socket.create_server(("", port))
        family = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)[0][0]
        return socket.create_server((host, port), family=family)

    def _close_listener(self) -> None:
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def _on_serve_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            address = self.addr()
            self.logger.error(
                f"listen error address={address}: {error!r}",
                exc_info=error,
                extra={"address": address},
            )

    async def _serve_asgi(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI entry given to uvicorn: counts in-flight and cancelled requests."""
        if scope["type"] != "http":
            await self._engine(scope, receive, send)
            return
        self._inflight += 1
        try:
            await self._engine(scope, receive, send)
        except asyncio.CancelledError:
            self._aborted += 1
            raise
        finally:
            self._inflight -= 1

    def __repr__(self) -> str:
        return f"StarletteServer(addr={self.addr()!r}, state={self._state.value!r})"
