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

"""Tests for the genro-http command line."""

from pathlib import Path
from unittest.mock import patch

import pytest

from genro_http.__main__ import load_handler, main, parse_handler_spec, split_argv
from genro_http.registry import HandlerRegistry


class TestParsing:
    def test_parse_handler_spec(self) -> None:
        assert parse_handler_spec("myapp.users:UserHandler") == ("myapp.users", "UserHandler")

    @pytest.mark.parametrize("spec", ["myapp.users", ":UserHandler", "myapp:"])
    def test_invalid_handler_spec(self, spec: str) -> None:
        with pytest.raises(ValueError, match="module:Class"):
            parse_handler_spec(spec)

    def test_load_handler(self) -> None:
        assert load_handler("genro_http.registry:HandlerRegistry") is HandlerRegistry

    def test_load_handler_dotted_attribute(self) -> None:
        assert load_handler("genro_http.registry:HandlerRegistry.provide") is HandlerRegistry.provide

    def test_split_argv(self) -> None:
        specs, options = split_argv(
            ["a:One", "--port", "9000", "b:Two", "--mode=debug", "--config", "http.yaml"]
        )
        assert specs == ["a:One", "b:Two"]
        assert options == ["--port", "9000", "--mode=debug", "--config", "http.yaml"]


class TestMain:
    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--version"]) == 0
        assert capsys.readouterr().out.strip() == "genro-http 0.1.0"

    def test_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "Usage: genro-http serve" in capsys.readouterr().out

    def test_unknown_subcommand(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["run"]) == 1
        assert "unknown subcommand 'run'" in capsys.readouterr().err

    def test_serve_requires_handler(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["serve", "--port", "9000"]) == 1
        assert "handler spec is required" in capsys.readouterr().err

    def test_serve_bad_module(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["serve", "no_such_module_xyz:Handler"]) == 1
        assert "no_such_module_xyz" in capsys.readouterr().err

    def test_serve_runs_lifecycle(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        (tmp_path / "cli_handlers.py").write_text(
            "class Status:\n"
            "    def register_routes(self, router):\n"
            "        router.get(\"/status\", lambda ctx: ctx.string(200, \"up\"))\n"
        )
        monkeypatch.syspath_prepend(str(tmp_path))
        monkeypatch.delenv("HTTP_PORT", raising=False)
        monkeypatch.delenv("HTTP_HOST", raising=False)

        with patch("genro_http.lifecycle.Lifecycle.run") as run:
            run.return_value = None
            with patch("asyncio.run") as asyncio_run:
                code = main(["serve", "cli_handlers:Status", "--port", "9123"])

        assert code == 0
        asyncio_run.assert_called_once()
        assert "Server: http://:9123" in capsys.readouterr().out
