# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""HTTP module composition - config, server, handlers and lifecycle hooks.

Startup order::

    HttpConfig -> StarletteServer -> registry.resolve() -> register_routes()
        -> lifecycle.append(Hook(server.start, server.stop)) -> start

Every handler registers its routes exactly once, before the lifecycle starts
the server, so no request can reach a half-populated route table.

Example::

    registry = HandlerRegistry()
    registry.provide(UserHandler)
    registry.provide(OrderHandler)

    lifecycle = Lifecycle()
    server = HttpModule(HttpConfig.load(), registry=registry).install(
        lifecycle, repo=repo
    )
    await lifecycle.run()
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..config import HttpConfig
from ..exceptions import ServerStateError
from ..interfaces import Handler
from ..lifecycle import Hook, Lifecycle
from ..registry import HANDLER_GROUP, HandlerRegistry, default_registry
from .server import ServerState, StarletteServer

__all__ = ["HttpModule", "run_http_server"]


def run_http_server(
    lifecycle: Lifecycle,
    server: StarletteServer,
    handlers: Iterable[Handler],
) -> None:
    """Register every handler on the root router and hook the server to lifecycle.

    Raises:
        ServerStateError: If the server is no longer in the constructed state.
    """
    if server.state is not ServerState.CONSTRUCTED:
        raise ServerStateError(f"cannot register handlers: server is {server.state.value}")
    root = server.router()
    for handler in handlers:
        handler.register_routes(root)
    lifecycle.append(Hook(on_start=server.start, on_stop=server.stop, name="http"))


class HttpModule:
    """
    Assembles the Starlette HTTP server for a host application.

    Attributes:
        config: HttpConfig used to build the server.
        registry: Registry holding the handler contributions.
        group: Registry group resolved at install time.
        logger: Logger handed to the server.
    """

    __slots__ = ("config", "registry", "group", "logger", "grace_period")

    def __init__(
        self,
        config: HttpConfig | None = None,
        *,
        registry: HandlerRegistry | None = None,
        group: str = HANDLER_GROUP,
        logger: logging.Logger | None = None,
        grace_period: float | None = None,
    ) -> None:
        self.config = config or HttpConfig.load()
        self.registry = registry if registry is not None else default_registry
        self.group = group
        self.logger = logger or logging.getLogger("genro_http.server")
        self.grace_period = grace_period

    def install(self, lifecycle: Lifecycle, **deps: Any) -> StarletteServer:
        """Build the server, register resolved handlers, attach start/stop.

        Handler constructors may ask for ``config``, ``logger`` and ``server``
        in addition to deps.
        """
        kwargs: dict[str, Any] = {}
        if self.grace_period is not None:
            kwargs["grace_period"] = self.grace_period
        server = StarletteServer(self.config, self.logger, **kwargs)

        handlers = self.registry.resolve(
            self.group,
            **{"config": self.config, "logger": self.logger, "server": server, **deps},
        )
        run_http_server(lifecycle, server, handlers)
        self.logger.debug(f"registered {len(handlers)} handler(s) from {self.group!r}")
        return server

    def __repr__(self) -> str:
        return f"HttpModule(config={self.config!r}, group={self.group!r})"
