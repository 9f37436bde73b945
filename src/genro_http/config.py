# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""HTTP configuration - multi-source loading into an immutable HttpConfig.

Config precedence (later overrides earlier):
    1. Built-in DEFAULTS
    2. ``http`` section of a YAML file (``--config`` / ``HTTP_CONFIG`` / argument)
    3. Environment variables: HTTP_HOST, HTTP_PORT, HTTP_MODE, HTTP_STRICT_BIND,
       HTTP_REQUEST_TIMEOUT
    4. Command line arguments: --host, --port, --mode, --strict_bind,
       --request_timeout
    5. Explicit keyword arguments of HttpConfig.load()

YAML structure::

    http:
      host: ""          # empty binds every interface
      port: 8080
      mode: release     # debug | release | test
      strict_bind: true # start() raises ListenError when bind fails
      request_timeout: 0 # seconds per request deadline, 0 for none
      middleware:
        logging: on
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from genro_toolbox import SmartOptions  # type: ignore[import-untyped]

from .exceptions import ConfigError

__all__ = ["HttpConfig", "Mode", "DEFAULTS"]

DEFAULTS = {"host": "", "port": 8080, "mode": "release", "strict_bind": True, "request_timeout": 0}


def _http_opts_spec(
    host: str,
    port: int,
    mode: str,
    strict_bind: bool,
    request_timeout: float,
    config: str,
) -> None:
    """Reference function for SmartOptions type extraction (no defaults)."""


class Mode(str, Enum):
    """Run mode of one server instance."""

    DEBUG = "debug"
    RELEASE = "release"
    TEST = "test"


class HttpConfig:
    """Immutable HTTP server configuration.

    Attributes:
        host: Bind host, empty string for every interface.
        port: Bind port (0 asks the OS for a free port).
        mode: Run mode.
        strict_bind: If True, Server.start() raises ListenError on bind failure;
            otherwise the failure is only logged.
        request_timeout: Seconds after which a request context reports its
            deadline as exceeded, 0 for no deadline.
        middleware: Middleware on/off mapping, see middleware_chain().
    """

    __slots__ = ("_host", "_port", "_mode", "_strict_bind", "_request_timeout", "_middleware")

    def __init__(
        self,
        host: str | None = "",
        port: int | str = 8080,
        mode: Mode | str = Mode.RELEASE,
        strict_bind: bool | str = True,
        request_timeout: float | str = 0,
        middleware: dict[str, Any] | None = None,
    ) -> None:
        self._host = host or ""
        self._port = _parse_port(port)
        self._mode = _parse_mode(mode)
        self._strict_bind = _parse_bool(strict_bind)
        self._request_timeout = _parse_timeout(request_timeout)
        self._middleware = dict(middleware or {})

    @classmethod
    def load(
        cls,
        config_file: str | Path | None = None,
        argv: list[str] | None = None,
        *,
        host: str | None = None,
        port: int | None = None,
        mode: str | None = None,
        strict_bind: bool | None = None,
        request_timeout: float | None = None,
    ) -> HttpConfig:
        """Build configuration from defaults, YAML, environment and argv.

        Raises:
            ConfigError: If config_file is given but missing, or a value is invalid.
        """
        env_argv_opts = SmartOptions(_http_opts_spec, env="HTTP", argv=argv or [])

        caller_opts = SmartOptions(
            dict(
                host=host,
                port=port,
                mode=mode,
                strict_bind=strict_bind,
                request_timeout=request_timeout,
            ),
            ignore_none=True,
        )

        path = config_file or env_argv_opts["config"]
        if path:
            if not Path(path).exists():
                raise ConfigError(f"Configuration file not found: {path}")
            file_config = SmartOptions(str(path))
        else:
            file_config = SmartOptions({})

        opts = (
            SmartOptions(DEFAULTS)
            + (file_config["http"] or SmartOptions({}))
            + env_argv_opts
            + caller_opts
        )

        middleware = opts["middleware"]
        if middleware is not None and hasattr(middleware, "as_dict"):
            middleware = middleware.as_dict()

        return cls(
            host=opts["host"],
            port=opts["port"],
            mode=opts["mode"],
            strict_bind=opts["strict_bind"],
            request_timeout=opts["request_timeout"],
            middleware=middleware,
        )

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def strict_bind(self) -> bool:
        return self._strict_bind

    @property
    def request_timeout(self) -> float:
        return self._request_timeout

    @property
    def middleware(self) -> dict[str, Any]:
        """Copy of the middleware on/off mapping."""
        return dict(self._middleware)

    def as_dict(self) -> dict[str, Any]:
        return {
            "host": self._host,
            "port": self._port,
            "mode": self._mode.value,
            "strict_bind": self._strict_bind,
            "request_timeout": self._request_timeout,
            "middleware": dict(self._middleware),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HttpConfig):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __hash__(self) -> int:
        return hash((self._host, self._port, self._mode, self._strict_bind, self._request_timeout))

    def __repr__(self) -> str:
        return (
            f"HttpConfig(host={self._host!r}, port={self._port}, "
            f"mode={self._mode.value!r}, strict_bind={self._strict_bind})"
        )


def _parse_port(value: int | str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port {value!r}: not an integer") from None
    if not 0 <= port <= 65535:
        raise ConfigError(f"Invalid port {port}: must be between 0 and 65535")
    return port


def _parse_mode(value: Mode | str) -> Mode:
    if isinstance(value, Mode):
        return value
    try:
        return Mode(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in Mode)
        raise ConfigError(f"Invalid mode {value!r}: expected one of {choices}") from None


def _parse_timeout(value: float | str | None) -> float:
    if value is None or value == "":
        return 0.0
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid request_timeout {value!r}: not a number") from None
    if timeout < 0:
        raise ConfigError(f"Invalid request_timeout {timeout:g}: must not be negative")
    return timeout


def _parse_bool(value: Any) -> bool:
    """Parse on/off/true/false value to bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("on", "true", "yes", "1")
    return bool(value)


if __name__ == "__main__":
    print(HttpConfig.load())
