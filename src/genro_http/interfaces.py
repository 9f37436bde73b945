# Copyright 2025 Softwell S.r.l.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Engine-neutral HTTP interfaces.

Application code depends only on this module. A concrete binding (see
``genro_http.httpstar``) implements the three abstract classes on top of a
real web engine, so the engine can be replaced without touching handlers.

Architecture:
    Server (ABC)      # owns engine and listener, start/stop/addr
    Router (ABC)      # verb registration and prefix groups
    Context (ABC)     # one request/response exchange
    Handler (Protocol)  # anything with register_routes(router)

Example:
    class Greeter:
        def register_routes(self, router: Router) -> None:
            api = router.group("/api")
            api.get("/hello/{name}", self.hello)

        def hello(self, ctx: Context) -> None:
            ctx.json(200, {"message": f"Hello {ctx.param('name')}"})
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import IO, TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .types import HandlerFunc

__all__ = ["Context", "Router", "Server", "Handler", "RequestContext"]


class RequestContext(ABC):
    """Cancellation and deadline view of one in-flight request.

    Handlers performing downstream calls should check it (or pass it along)
    so that a disconnected client or a completed exchange stops the work.
    """

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """True once the exchange completed or a disconnect was observed."""

    @property
    @abstractmethod
    def deadline(self) -> float | None:
        """Monotonic deadline (``time.monotonic()`` scale) or None."""

    @abstractmethod
    async def is_cancelled(self) -> bool:
        """Poll the transport for a disconnect and return the cancelled state."""

    @abstractmethod
    def check(self) -> None:
        """Raise RequestCancelled if the request is cancelled or past deadline."""


class Context(ABC):
    """One request/response exchange, engine independent.

    Lookups never fail: missing keys give an empty string or the supplied
    default. Writing a complete response twice is the caller's
    responsibility; the last write wins.
    """

    @abstractmethod
    def request(self) -> Any:
        """The engine's request object (treat as read-only)."""

    @abstractmethod
    def request_context(self) -> RequestContext:
        """Cancellation-aware execution context tied to this request."""

    @abstractmethod
    def param(self, name: str) -> str: ...

    @abstractmethod
    def query(self, name: str) -> str: ...

    @abstractmethod
    def query_default(self, name: str, default: str) -> str: ...

    @abstractmethod
    def get_header(self, name: str) -> str: ...

    @abstractmethod
    def set_header(self, name: str, value: str) -> None: ...

    @abstractmethod
    def status(self, code: int) -> None: ...

    @abstractmethod
    def bind_json(self, target: Any) -> Any:
        """Decode the JSON body into target. Raises BindError."""

    @abstractmethod
    def bind(self, target: Any) -> Any:
        """Decode the body (or query) according to method and content type."""

    @abstractmethod
    def json(self, code: int, body: Any) -> None: ...

    @abstractmethod
    def string(self, code: int, text: str) -> None: ...

    @abstractmethod
    def writer(self) -> IO[bytes]:
        """Raw byte stream for the response body."""


class Router(ABC):
    """Route registration on one scope of the engine's route table."""

    @abstractmethod
    def get(self, path: str, handler: HandlerFunc) -> None: ...

    @abstractmethod
    def post(self, path: str, handler: HandlerFunc) -> None: ...

    @abstractmethod
    def put(self, path: str, handler: HandlerFunc) -> None: ...

    @abstractmethod
    def delete(self, path: str, handler: HandlerFunc) -> None: ...

    @abstractmethod
    def patch(self, path: str, handler: HandlerFunc) -> None: ...

    @abstractmethod
    def group(self, prefix: str) -> Router:
        """Return a Router whose registrations are prefixed with prefix."""


class Server(ABC):
    """HTTP server lifecycle: constructed, listening, stopped."""

    @abstractmethod
    async def start(self) -> None:
        """Bind the listener and serve in the background. Returns at once."""

    @abstractmethod
    async def stop(self) -> None:
        """Drain and close the listener. No-op unless listening."""

    @abstractmethod
    def addr(self) -> str:
        """Bind address derived from configuration."""

    @abstractmethod
    def router(self) -> Router:
        """Root router for route registration before start."""


@runtime_checkable
class Handler(Protocol):
    """Capability: register routes against a Router."""

    def register_routes(self, router: Router) -> None: ...
