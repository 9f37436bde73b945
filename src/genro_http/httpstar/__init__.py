# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Starlette/uvicorn binding of the genro-http interfaces.

Exports:
    StarletteServer: Server on a Starlette engine and a uvicorn accept loop.
    StarletteRouter: Router adapter over the Starlette route table.
    StarletteContext: Context adapter over one Starlette request.
    HttpModule: Composition of config, server, handlers and lifecycle.
    run_http_server: Register handlers and attach start/stop hooks.
"""

from .context import StarletteContext, StarletteRequestContext
from .module import HttpModule, run_http_server
from .router import StarletteRouter
from .server import GRACE_PERIOD, ServerState, StarletteServer

__all__ = [
    "GRACE_PERIOD",
    "HttpModule",
    "ServerState",
    "StarletteContext",
    "StarletteRequestContext",
    "StarletteRouter",
    "StarletteServer",
    "run_http_server",
]
