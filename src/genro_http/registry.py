# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Handler aggregation - named, ordered groups of handler contributions.

Independent components contribute handlers to a group; the HTTP module
resolves the group once at composition time and registers every handler on
the root router before the listener opens.

A contribution is either a ready handler instance or a constructor. Constructors
receive keyword dependencies matched by parameter name::

    registry = HandlerRegistry()

    @registry.provide
    class UserHandler:
        def __init__(self, logger):
            self.logger = logger

        def register_routes(self, router):
            router.get("/users/{id}", self.get_user)

    handlers = registry.resolve(logger=logging.getLogger("app"))

Order:
    Handlers are resolved in contribution order. With the Starlette binding
    the first registered route wins, so an earlier contribution shadows a
    later one on the same method and path.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, TypeVar

from .exceptions import ProviderError
from .interfaces import Handler

__all__ = ["HANDLER_GROUP", "HandlerRegistry", "as_handler", "default_registry"]

HANDLER_GROUP = "http.handlers"

P = TypeVar("P")


class HandlerRegistry:
    """Ordered provider groups keyed by name."""

    __slots__ = ("_groups",)

    def __init__(self) -> None:
        self._groups: dict[str, list[Any]] = {}

    def provide(self, provider: P | None = None, *, group: str = HANDLER_GROUP) -> Any:
        """Contribute a constructor or instance to group.

        Works as a plain call, a bare decorator, or a decorator with a group::

            registry.provide(UserHandler)
            @registry.provide
            @registry.provide(group="admin.handlers")

        Returns the provider unchanged (or the decorator when called without one).
        """
        if provider is None:

            def decorator(target: P) -> P:
                self._groups.setdefault(group, []).append(target)
                return target

            return decorator
        self._groups.setdefault(group, []).append(provider)
        return provider

    def providers(self, group: str = HANDLER_GROUP) -> list[Any]:
        """Contributions of group, in order."""
        return list(self._groups.get(group, []))

    def groups(self) -> list[str]:
        return list(self._groups)

    def resolve(self, group: str = HANDLER_GROUP, **deps: Any) -> list[Handler]:
        """Instantiate every contribution of group, in order.

        Raises:
            ProviderError: A constructor needs a dependency not in deps, fails,
                or produces something without register_routes.
        """
        handlers: list[Handler] = []
        for provider in self._groups.get(group, []):
            if isinstance(provider, Handler) and not inspect.isclass(provider):
                handler: Any = provider
            elif callable(provider):
                handler = self._construct(group, provider, deps)
            else:
                raise ProviderError(group, provider, "not a handler nor a constructor")
            if not isinstance(handler, Handler):
                raise ProviderError(group, provider, "result has no register_routes()")
            handlers.append(handler)
        return handlers

    def clear(self, group: str | None = None) -> None:
        if group is None:
            self._groups.clear()
        else:
            self._groups.pop(group, None)

    def _construct(self, group: str, constructor: Callable[..., Any], deps: dict[str, Any]) -> Any:
        try:
            signature = inspect.signature(constructor)
        except (TypeError, ValueError):
            return constructor()
        kwargs: dict[str, Any] = {}
        for name, param in signature.parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if name in deps:
                kwargs[name] = deps[name]
            elif param.default is param.empty:
                raise ProviderError(group, constructor, f"missing dependency {name!r}")
        try:
            return constructor(**kwargs)
        except Exception as e:
            raise ProviderError(group, constructor, f"constructor raised {e!r}") from e

    def __len__(self) -> int:
        return sum(len(providers) for providers in self._groups.values())

    def __repr__(self) -> str:
        sizes = ", ".join(f"{name!r}: {len(p)}" for name, p in self._groups.items())
        return f"HandlerRegistry({{{sizes}}})"


default_registry = HandlerRegistry()


def as_handler(provider: Any = None, *, group: str = HANDLER_GROUP) -> Any:
    """Contribute provider to the default registry (decorator or call)."""
    return default_registry.provide(provider, group=group)
