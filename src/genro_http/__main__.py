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
genro-http CLI entry point.

Usage:
    genro-http serve myapp.users:UserHandler              # Serve one handler
    genro-http serve myapp.users:UserHandler --port 9000  # Override port
    genro-http serve a:One b:Two --config http.yaml       # Several handlers

Handlers are given as ``module:Class`` specs; classes are constructed with
dependency injection (``config``, ``logger``, ``server``) and registered in
command line order.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import sys
from typing import Any

OPTIONS_WITH_VALUE = frozenset(
    {"--host", "--port", "--mode", "--config", "--strict_bind", "--request_timeout"}
)


def parse_handler_spec(spec: str) -> tuple[str, str]:
    """Split ``module:Class`` into its two parts.

    Raises:
        ValueError: If spec is not in ``module:Class`` form.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid handler spec {spec!r}: expected 'module:Class'")
    return module_name, attr


def load_handler(spec: str) -> Any:
    """Import the object named by a ``module:Class`` spec."""
    module_name, attr = parse_handler_spec(spec)
    module = importlib.import_module(module_name)
    target: Any = module
    for part in attr.split("."):
        target = getattr(target, part)
    return target


def split_argv(argv: list[str]) -> tuple[list[str], list[str]]:
    """Separate handler specs from option arguments."""
    specs: list[str] = []
    options: list[str] = []
    args = iter(argv)
    for arg in args:
        if arg.startswith("--"):
            options.append(arg)
            if "=" not in arg and arg in OPTIONS_WITH_VALUE:
                value = next(args, None)
                if value is not None:
                    options.append(value)
        else:
            specs.append(arg)
    return specs, options


def cmd_serve(argv: list[str]) -> int:
    """Run the HTTP server with the given handlers until SIGINT/SIGTERM."""
    from .config import HttpConfig
    from .exceptions import HttpKitError
    from .httpstar import HttpModule
    from .lifecycle import Lifecycle
    from .registry import HandlerRegistry

    specs, options = split_argv(argv)
    if not specs:
        print("Error: at least one handler spec is required", file=sys.stderr)
        return 1

    registry = HandlerRegistry()
    try:
        for spec in specs:
            registry.provide(load_handler(spec))
    except (ValueError, ImportError, AttributeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    try:
        config = HttpConfig.load(argv=options)
        lifecycle = Lifecycle()
        server = HttpModule(config, registry=registry).install(lifecycle)
    except HttpKitError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("genro-http starting...", flush=True)
    print(f"Server: http://{server.addr()}", flush=True)
    print(f"Mode: {config.mode.value}", flush=True)
    print(flush=True)

    try:
        asyncio.run(lifecycle.run())
    except KeyboardInterrupt:
        print("\nShutdown.")
    except HttpKitError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = sys.argv[1:] if argv is None else argv

    if "--version" in args or "-v" in args:
        from . import __version__

        print(f"genro-http {__version__}")
        return 0

    if "--help" in args or "-h" in args or not args:
        print("Usage: genro-http serve <module:Class> [<module:Class> ...] [options]")
        print()
        print("Arguments:")
        print("  module:Class      Handler class (or instance) to register")
        print()
        print("Options:")
        print("  --host HOST       Bind host (default: all interfaces)")
        print("  --port PORT       Bind port (default: 8080)")
        print("  --mode MODE       debug | release | test (default: release)")
        print("  --config FILE     YAML file with an 'http' section")
        print("  --version, -v     Show version")
        print("  --help, -h        Show this help")
        return 0

    subcommand = args[0]
    if subcommand != "serve":
        print(f"Error: unknown subcommand '{subcommand}'", file=sys.stderr)
        return 1

    return cmd_serve(args[1:])


if __name__ == "__main__":
    sys.exit(main())
