# Copyright 2025 Softwell S.r.l.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""genro-http - Pluggable HTTP server abstraction over Starlette and uvicorn.

Main components:
    Context, Router, Server, Handler: Engine-neutral interfaces
    StarletteServer: Server on a Starlette engine with a uvicorn accept loop
    HttpModule: Composes config, server, handlers and lifecycle hooks
    HttpConfig: Multi-source configuration (defaults, YAML, env, argv)

Middleware:
    RecoveryMiddleware: Unexpected handler failures become JSON 500s
    LoggingMiddleware: Access log

Usage:
    from genro_http import HttpModule, Lifecycle, as_handler

    @as_handler
    class Hello:
        def register_routes(self, router):
            router.get("/hello/:name", self.hello)

        def hello(self, ctx):
            ctx.json(200, {"message": f"Hello {ctx.param('name')}"})

    lifecycle = Lifecycle()
    HttpModule().install(lifecycle)
    await lifecycle.run()
"""

__version__ = "0.1.0"

from .config import DEFAULTS, HttpConfig, Mode
from .exceptions import (
    BindError,
    ConfigError,
    HandlerError,
    HttpKitError,
    ListenError,
    ProviderError,
    RequestCancelled,
    ServerStateError,
    ShutdownTimeout,
)
from .interfaces import Context, Handler, RequestContext, Router, Server
from .lifecycle import Hook, Lifecycle
from .middleware import BaseMiddleware, LoggingMiddleware, RecoveryMiddleware, middleware_chain
from .registry import HANDLER_GROUP, HandlerRegistry, as_handler, default_registry
from .types import ASGIApp, HandlerFunc, Message, Receive, Scope, Send
from .httpstar import (
    GRACE_PERIOD,
    HttpModule,
    ServerState,
    StarletteContext,
    StarletteRequestContext,
    StarletteRouter,
    StarletteServer,
    run_http_server,
)

__all__ = [
    # Interfaces
    "Context",
    "Handler",
    "RequestContext",
    "Router",
    "Server",
    # Starlette binding
    "GRACE_PERIOD",
    "HttpModule",
    "ServerState",
    "StarletteContext",
    "StarletteRequestContext",
    "StarletteRouter",
    "StarletteServer",
    "run_http_server",
    # Composition
    "HANDLER_GROUP",
    "HandlerRegistry",
    "Hook",
    "Lifecycle",
    "as_handler",
    "default_registry",
    # Config
    "DEFAULTS",
    "HttpConfig",
    "Mode",
    # Middleware
    "BaseMiddleware",
    "LoggingMiddleware",
    "RecoveryMiddleware",
    "middleware_chain",
    # Exceptions
    "BindError",
    "ConfigError",
    "HandlerError",
    "HttpKitError",
    "ListenError",
    "ProviderError",
    "RequestCancelled",
    "ServerStateError",
    "ShutdownTimeout",
    # Types
    "ASGIApp",
    "HandlerFunc",
    "Message",
    "Receive",
    "Scope",
    "Send",
]
