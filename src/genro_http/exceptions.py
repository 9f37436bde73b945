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

"""
Exception classes for genro-http.

Module Structure
----------------
All exceptions inherit from HttpKitError so callers can catch the whole
family with one clause.

Per-request errors (never leave the request that raised them):

1. HandlerError - raised by a handler to report failure. The route endpoint
   turns it into a 500 response with body ``{"error": <message>}``.
2. BindError - the request body could not be decoded into the requested
   target. Handlers usually let it propagate or turn it into a 400.
   RequestCancelled - raised by RequestContext.check() once the client went
   away, the exchange completed or the deadline passed.

Server lifecycle errors (raised to the caller of start/stop):

3. ListenError - the listener could not bind its address.
4. ShutdownTimeout - graceful shutdown had to cancel in-flight requests.
5. ServerStateError - start called twice, or routes registered after start.

Composition errors:

6. ConfigError - invalid configuration value.
7. ProviderError - a handler contribution could not be resolved.

Unexpected exceptions raised inside handlers are not wrapped in a class:
RecoveryMiddleware catches them and answers with the same 500 body that a
HandlerError produces, logging them as recovered.

Example:
    >>> def get_user(ctx):
    ...     user = repo.find(ctx.param("id"))
    ...     if user is None:
    ...         raise HandlerError("user not found")
    ...     ctx.json(200, user)
"""

from __future__ import annotations

__all__ = [
    "HttpKitError",
    "HandlerError",
    "BindError",
    "RequestCancelled",
    "ListenError",
    "ShutdownTimeout",
    "ServerStateError",
    "ConfigError",
    "ProviderError",
]


class HttpKitError(Exception):
    """Base class for every genro-http error."""


class HandlerError(HttpKitError):
    """
    Failure reported by a handler.

    The message becomes the ``error`` field of the 500 JSON response.

    Attributes:
        message: Error message sent to the client.

    Example:
        >>> raise HandlerError("boom")
    """

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"HandlerError(message={self.message!r})"


class BindError(HttpKitError):
    """
    Request payload could not be decoded into the bind target.

    Attributes:
        detail: What went wrong (decoder or validation message).
        content_type: Content type the decoder assumed.
    """

    def __init__(self, detail: str, content_type: str = "application/json") -> None:
        self.detail = detail
        self.content_type = content_type
        super().__init__(detail)

    def __repr__(self) -> str:
        return f"BindError(detail={self.detail!r}, content_type={self.content_type!r})"


class RequestCancelled(HttpKitError):
    """The request was cancelled (client gone, exchange done or past deadline)."""


class ListenError(HttpKitError):
    """
    Listener failed to bind.

    Attributes:
        address: Bind address as returned by Server.addr().
        cause: Underlying OSError.
    """

    def __init__(self, address: str, cause: OSError) -> None:
        self.address = address
        self.cause = cause
        super().__init__(f"cannot listen on {address!r}: {cause}")

    def __repr__(self) -> str:
        return f"ListenError(address={self.address!r}, cause={self.cause!r})"


class ShutdownTimeout(HttpKitError):
    """
    Graceful shutdown could not drain every request within the grace period.

    Attributes:
        address: Bind address of the stopped server.
        grace_period: Grace period in seconds.
        pending: Number of requests that were still running.
    """

    def __init__(self, address: str, grace_period: float, pending: int) -> None:
        self.address = address
        self.grace_period = grace_period
        self.pending = pending
        super().__init__(
            f"shutdown of {address!r} exceeded {grace_period:g}s, "
            f"{pending} request(s) cancelled"
        )

    def __repr__(self) -> str:
        return (
            f"ShutdownTimeout(address={self.address!r}, "
            f"grace_period={self.grace_period!r}, pending={self.pending!r})"
        )


class ServerStateError(HttpKitError):
    """Operation not allowed in the server's current lifecycle state."""


class ConfigError(HttpKitError):
    """Configuration error."""


class ProviderError(HttpKitError):
    """
    Handler contribution could not be resolved.

    Attributes:
        group: Group the contribution belongs to.
        provider: The constructor or instance that failed.
    """

    def __init__(self, group: str, provider: object, reason: str) -> None:
        self.group = group
        self.provider = provider
        name = getattr(provider, "__qualname__", type(provider).__qualname__)
        super().__init__(f"group {group!r}: cannot resolve {name}: {reason}")
