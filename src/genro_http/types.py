# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Type definitions for genro-http.

ASGI aliases
============
The uvicorn accept loop and the Starlette engine talk ASGI. The aliases below
are used by the middleware and by the server's request tracking wrapper::

    Scope = MutableMapping[str, Any]
    Message = MutableMapping[str, Any]
    Receive = Callable[[], Awaitable[Message]]
    Send = Callable[[Message], Awaitable[None]]
    ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

Handler functions
=================
A neutral handler function receives one ``Context`` and returns nothing.
It may be a plain function (run in a worker thread) or a coroutine function::

    HandlerFunc = Callable[[Context], None | Awaitable[None]]

Design Decisions
================
1. **MutableMapping instead of TypedDict for Scope/Message**: ASGI servers add
   extension keys freely; validation happens where messages are consumed.
2. **Callable aliases instead of Protocol** for the ASGI callables, as the
   ASGI spec itself uses callable notation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, MutableMapping, Union

if TYPE_CHECKING:
    from .interfaces import Context

__all__ = ["Scope", "Message", "Receive", "Send", "ASGIApp", "HandlerFunc"]

# ASGI Scope - connection metadata
Scope = MutableMapping[str, Any]

# ASGI Message - sent/received data
Message = MutableMapping[str, Any]

# ASGI Receive - callable to receive messages
Receive = Callable[[], Awaitable[Message]]

# ASGI Send - callable to send messages
Send = Callable[[Message], Awaitable[None]]

# ASGI Application - the main callable
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

# Neutral handler function - sync or async
HandlerFunc = Callable[["Context"], Union[None, Awaitable[None]]]
