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
Host application lifecycle.

Purpose
=======
Lifecycle collects start/stop hook pairs contributed by the components of an
application (the HTTP module appends one for its server) and runs them
around the process's startup and shutdown.

Definition::

    class Hook:
        on_start: Callable[[], Any] | None
        on_stop: Callable[[], Any] | None
        name: str

    class Lifecycle:
        def append(self, hook: Hook) -> None
        async def start(self) -> None
        async def stop(self) -> None
        async def run(self) -> None

Example::

    lifecycle = Lifecycle()
    lifecycle.append(Hook(on_start=server.start, on_stop=server.stop, name="http"))
    await lifecycle.run()  # until SIGINT/SIGTERM

Design Notes
============
- Hooks may be sync or async callables.
- on_start hooks run in append order, on_stop hooks in reverse order.
- Each hook's on_start and on_stop run at most once.
- If an on_start fails, hooks already started are stopped in reverse order
  and the original error is raised.
- Errors during stop are logged and don't prevent other hooks from stopping;
  the first one is raised once every hook ran.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Callable

__all__ = ["Hook", "Lifecycle"]


class Hook:
    """A start/stop pair appended to a Lifecycle."""

    __slots__ = ("on_start", "on_stop", "name")

    def __init__(
        self,
        on_start: Callable[[], Any] | None = None,
        on_stop: Callable[[], Any] | None = None,
        name: str = "",
    ) -> None:
        self.on_start = on_start
        self.on_stop = on_stop
        self.name = name or _callable_name(on_start or on_stop)

    def __repr__(self) -> str:
        return f"Hook(name={self.name!r})"


class Lifecycle:
    """
    Ordered start/stop hooks for one application run.

    Attributes:
        hooks: Appended hooks, in order.
    """

    __slots__ = ("hooks", "_begun", "_started", "_stopped", "_logger")

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.hooks: list[Hook] = []
        self._begun = False
        self._started: list[Hook] = []
        self._stopped = False
        self._logger = logger or logging.getLogger("genro_http.lifecycle")

    def append(self, hook: Hook) -> None:
        """Append a hook. Not allowed once start() was called."""
        if self._begun:
            raise RuntimeError("Cannot append hooks to a running lifecycle")
        self.hooks.append(hook)

    @property
    def running(self) -> bool:
        return self._begun and not self._stopped

    async def start(self) -> None:
        """Run on_start hooks in order; roll back on failure."""
        if self._begun:
            raise RuntimeError("Lifecycle already started")
        self._begun = True
        for hook in self.hooks:
            self._started.append(hook)
            if hook.on_start is None:
                continue
            self._logger.debug(f"Starting {hook.name}")
            try:
                await _call(hook.on_start)
            except Exception:
                self._logger.exception(f"Start of {hook.name} failed, rolling back")
                self._started.pop()
                await self._stop_started()
                raise

    async def stop(self) -> None:
        """Run on_stop hooks of started hooks in reverse order."""
        if self._stopped or not self._begun:
            return
        await self._stop_started()

    async def run(self, stop_signals: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)) -> None:
        """Start, wait for one of stop_signals, then stop."""
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()
        for sig in stop_signals:
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await self.start()
            await stop_event.wait()
        finally:
            for sig in stop_signals:
                loop.remove_signal_handler(sig)
            await self.stop()

    async def _stop_started(self) -> None:
        self._stopped = True
        first_error: Exception | None = None
        for hook in reversed(self._started):
            if hook.on_stop is None:
                continue
            self._logger.debug(f"Stopping {hook.name}")
            try:
                await _call(hook.on_stop)
            except Exception as e:
                self._logger.exception(f"Error stopping {hook.name}")
                if first_error is None:
                    first_error = e
        self._started.clear()
        if first_error is not None:
            raise first_error


async def _call(func: Callable[[], Any]) -> None:
    """Call a hook (sync or async)."""
    result = func()
    if hasattr(result, "__await__"):
        await result


def _callable_name(func: Callable[..., Any] | None) -> str:
    if func is None:
        return "hook"
    owner = getattr(func, "__self__", None)
    if owner is not None:
        return type(owner).__name__
    return getattr(func, "__qualname__", repr(func))
