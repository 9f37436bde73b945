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

"""Tests for HttpConfig and its multi-source loading."""

from pathlib import Path

import pytest

from genro_http.config import DEFAULTS, HttpConfig, Mode
from genro_http.exceptions import ConfigError

ENV_VARS = (
    "HTTP_HOST",
    "HTTP_PORT",
    "HTTP_MODE",
    "HTTP_STRICT_BIND",
    "HTTP_REQUEST_TIMEOUT",
    "HTTP_CONFIG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "http.yaml"
    path.write_text(
        "http:\n"
        "  host: 127.0.0.1\n"
        "  port: 9001\n"
        "  mode: debug\n"
        "  middleware:\n"
        "    logging: on\n"
    )
    return path


class TestHttpConfig:
    """Tests for direct construction."""

    def test_defaults(self) -> None:
        config = HttpConfig()
        assert config.host == ""
        assert config.port == 8080
        assert config.mode is Mode.RELEASE
        assert config.strict_bind is True
        assert config.middleware == {}

    def test_string_values_are_parsed(self) -> None:
        config = HttpConfig(port="9000", mode="DEBUG", strict_bind="off")
        assert config.port == 9000
        assert config.mode is Mode.DEBUG
        assert config.strict_bind is False

    def test_none_host_is_empty(self) -> None:
        assert HttpConfig(host=None).host == ""

    def test_port_zero_allowed(self) -> None:
        """Port 0 asks the OS for a free port."""
        assert HttpConfig(port=0).port == 0

    @pytest.mark.parametrize("port", [-1, 65536, "http", None])
    def test_invalid_port(self, port: object) -> None:
        with pytest.raises(ConfigError):
            HttpConfig(port=port)  # type: ignore[arg-type]

    def test_invalid_mode(self) -> None:
        with pytest.raises(ConfigError, match="expected one of debug, release, test"):
            HttpConfig(mode="production")

    def test_middleware_is_copied(self) -> None:
        """Mutating the returned mapping doesn't change the config."""
        config = HttpConfig(middleware={"logging": True})
        config.middleware["logging"] = False
        assert config.middleware == {"logging": True}

    def test_equality_and_hash(self) -> None:
        a = HttpConfig(host="localhost", port=9000)
        b = HttpConfig(host="localhost", port=9000)
        assert a == b
        assert hash(a) == hash(b)
        assert a != HttpConfig(host="localhost", port=9001)

    def test_as_dict(self) -> None:
        assert HttpConfig(port=9000).as_dict() == {
            "host": "",
            "port": 9000,
            "mode": "release",
            "strict_bind": True,
            "request_timeout": 0.0,
            "middleware": {},
        }

    def test_request_timeout(self) -> None:
        assert HttpConfig().request_timeout == 0
        assert HttpConfig(request_timeout="2.5").request_timeout == 2.5

    @pytest.mark.parametrize("timeout", [-1, "soon"])
    def test_invalid_request_timeout(self, timeout: object) -> None:
        with pytest.raises(ConfigError, match="request_timeout"):
            HttpConfig(request_timeout=timeout)  # type: ignore[arg-type]

    def test_repr(self) -> None:
        assert repr(HttpConfig(port=9000)) == (
            "HttpConfig(host='', port=9000, mode='release', strict_bind=True)"
        )


class TestHttpConfigLoad:
    """Tests for precedence: defaults < file < env < argv < caller."""

    def test_defaults_only(self) -> None:
        config = HttpConfig.load()
        assert config.host == DEFAULTS["host"]
        assert config.port == DEFAULTS["port"]
        assert config.mode.value == DEFAULTS["mode"]

    def test_file_overrides_defaults(self, config_file: Path) -> None:
        config = HttpConfig.load(config_file)
        assert config.host == "127.0.0.1"
        assert config.port == 9001
        assert config.mode is Mode.DEBUG
        assert config.middleware == {"logging": True}

    def test_env_overrides_file(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_PORT", "9002")
        config = HttpConfig.load(config_file)
        assert config.port == 9002
        assert config.host == "127.0.0.1"

    def test_argv_overrides_env(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_PORT", "9002")
        config = HttpConfig.load(config_file, argv=["--port", "9003"])
        assert config.port == 9003

    def test_caller_overrides_everything(
        self, config_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("HTTP_PORT", "9002")
        config = HttpConfig.load(config_file, argv=["--port", "9003"], port=9004, mode="test")
        assert config.port == 9004
        assert config.mode is Mode.TEST

    def test_env_mode(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_MODE", "test")
        assert HttpConfig.load().mode is Mode.TEST

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            HttpConfig.load(tmp_path / "missing.yaml")

    def test_invalid_value_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_MODE", "turbo")
        with pytest.raises(ConfigError):
            HttpConfig.load()

    def test_request_timeout_from_env_and_caller(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HTTP_REQUEST_TIMEOUT", "10")
        assert HttpConfig.load().request_timeout == 10
        assert HttpConfig.load(request_timeout=3).request_timeout == 3
