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

"""Tests for StarletteRouter registration, groups and failure handling."""

import asyncio
import logging
import time

import pytest
from starlette.testclient import TestClient

from genro_http.config import HttpConfig
from genro_http.exceptions import HandlerError, RequestCancelled
from genro_http.httpstar import StarletteServer
from genro_http.httpstar.router import _join, _to_engine_path
from genro_http.interfaces import Context


@pytest.fixture
def server() -> StarletteServer:
    return StarletteServer(HttpConfig(mode="test"))


@pytest.fixture
def client(server: StarletteServer) -> TestClient:
    return TestClient(server.engine_handle())


class TestPaths:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/users/:id", "/users/{id}"),
            ("/users/{id}", "/users/{id}"),
            ("/files/*rest", "/files/{rest:path}"),
            ("/a/:x/b/:y", "/a/{x}/b/{y}"),
            ("users", "/users"),
            ("/time:now", "/time:now"),
        ],
    )
    def test_to_engine_path(self, path: str, expected: str) -> None:
        assert _to_engine_path(path) == expected

    @pytest.mark.parametrize(
        "prefix, path, expected",
        [
            ("", "/users", "/users"),
            ("", "", "/"),
            ("/api", "", "/api"),
            ("/api", "/users", "/api/users"),
            ("/api", "users", "/api/users"),
        ],
    )
    def test_join(self, prefix: str, path: str, expected: str) -> None:
        assert _join(prefix, path) == expected


class TestVerbs:
    @pytest.mark.parametrize("method", ["get", "post", "put", "delete", "patch"])
    def test_verb_registration(self, server: StarletteServer, client: TestClient, method: str) -> None:
        register = getattr(server.router(), method)
        register("/thing", lambda ctx: ctx.string(200, method))

        response = client.request(method.upper(), "/thing")
        assert response.status_code == 200
        assert response.text == method

    def test_method_mismatch(self, server: StarletteServer, client: TestClient) -> None:
        server.router().get("/only-get", lambda ctx: ctx.status(204))
        assert client.post("/only-get").status_code == 405

    def test_unknown_path(self, client: TestClient) -> None:
        assert client.get("/nowhere").status_code == 404

    def test_async_handler(self, server: StarletteServer, client: TestClient) -> None:
        async def handler(ctx: Context) -> None:
            await asyncio.sleep(0)
            ctx.json(200, {"async": True})

        server.router().get("/async", handler)
        assert client.get("/async").json() == {"async": True}

    def test_bound_method_handler(self, server: StarletteServer, client: TestClient) -> None:
        class Greeter:
            greeting = "Hello"

            def hello(self, ctx: Context) -> None:
                ctx.json(200, {"message": f"{self.greeting} {ctx.param('name')}"})

        server.router().get("/hello/:name", Greeter().hello)
        assert client.get("/hello/Ada").json() == {"message": "Hello Ada"}


class TestGroups:
    def test_group_prefix(self, server: StarletteServer, client: TestClient) -> None:
        api = server.router().group("/api")
        api.get("/users/:id", lambda ctx: ctx.string(200, ctx.param("id")))

        assert client.get("/api/users/7").text == "7"
        assert client.get("/users/7").status_code == 404

    def test_nested_groups(self, server: StarletteServer, client: TestClient) -> None:
        v1 = server.router().group("api").group("/v1/")
        assert v1.prefix == "/api/v1"
        v1.get("/ping", lambda ctx: ctx.string(200, "pong"))
        assert client.get("/api/v1/ping").text == "pong"

    def test_group_root_path(self, server: StarletteServer, client: TestClient) -> None:
        server.router().group("/api").get("", lambda ctx: ctx.string(200, "root"))
        assert client.get("/api").text == "root"


class TestPrecedence:
    def test_first_registration_wins(self, server: StarletteServer, client: TestClient) -> None:
        router = server.router()
        router.get("/dup", lambda ctx: ctx.string(200, "first"))
        router.get("/dup", lambda ctx: ctx.string(200, "second"))
        assert client.get("/dup").text == "first"

    def test_health_cannot_be_shadowed(self, server: StarletteServer, client: TestClient) -> None:
        server.router().get("/health", lambda ctx: ctx.string(200, "mine"))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_builtin(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "ok"}


class TestFailures:
    def test_handler_error_is_500_json(
        self, server: StarletteServer, client: TestClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        def handler(ctx: Context) -> None:
            ctx.json(200, {"partial": True})
            raise HandlerError("boom")

        server.router().get("/fail", handler)
        with caplog.at_level(logging.WARNING, logger="genro_http.server"):
            response = client.get("/fail")

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"error": "boom"}
        record = caplog.records[-1]
        assert record.recovered is False  # type: ignore[attr-defined]

    def test_panic_is_recovered(
        self, server: StarletteServer, client: TestClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        def handler(ctx: Context) -> None:
            raise RuntimeError("kaboom")

        server.router().get("/panic", handler)
        server.router().get("/fine", lambda ctx: ctx.string(200, "fine"))

        with caplog.at_level(logging.ERROR, logger="genro_http.server"):
            response = client.get("/panic")

        assert response.status_code == 500
        assert response.json() == {"error": "kaboom"}
        assert caplog.records[-1].recovered is True  # type: ignore[attr-defined]

        assert client.get("/fine").text == "fine"
        assert client.get("/health").status_code == 200

    def test_panic_without_message(self, server: StarletteServer, client: TestClient) -> None:
        def handler(ctx: Context) -> None:
            raise KeyError()

        server.router().get("/keyerror", handler)
        assert client.get("/keyerror").json() == {"error": "KeyError"}

    def test_handler_error_keeps_headers(self, server: StarletteServer, client: TestClient) -> None:
        """Headers set before the failure survive, body headers don't."""

        def handler(ctx: Context) -> None:
            ctx.set_header("Retry-After", "30")
            ctx.set_header("X-Request-Id", "abc-123")
            ctx.set_header("Content-Type", "text/csv")
            raise HandlerError("busy")

        server.router().get("/busy", handler)
        response = client.get("/busy")

        assert response.status_code == 500
        assert response.json() == {"error": "busy"}
        assert response.headers["retry-after"] == "30"
        assert response.headers["x-request-id"] == "abc-123"
        assert response.headers["content-type"] == "application/json"

    def test_release_mode_hides_panic_text(self, caplog: pytest.LogCaptureFixture) -> None:
        server = StarletteServer(HttpConfig(mode="release"))

        def handler(ctx: Context) -> None:
            raise ZeroDivisionError("x")

        server.router().get("/divide", handler)
        with caplog.at_level(logging.ERROR, logger="genro_http.server"):
            response = TestClient(server.engine_handle()).get("/divide")

        assert response.status_code == 500
        assert response.json() == {"error": "internal server error"}
        assert "ZeroDivisionError" in caplog.records[-1].getMessage()

    def test_release_mode_keeps_reported_message(self) -> None:
        """Only recovered failures are masked; HandlerError text is meant for clients."""
        server = StarletteServer(HttpConfig(mode="release"))

        def handler(ctx: Context) -> None:
            raise HandlerError("boom")

        server.router().get("/fail", handler)
        assert TestClient(server.engine_handle()).get("/fail").json() == {"error": "boom"}


class TestDeadline:
    def test_no_deadline_by_default(self, server: StarletteServer, client: TestClient) -> None:
        server.router().get(
            "/d", lambda ctx: ctx.json(200, {"deadline": ctx.request_context().deadline})
        )
        assert client.get("/d").json() == {"deadline": None}

    def test_request_timeout_sets_deadline(self) -> None:
        server = StarletteServer(HttpConfig(mode="test", request_timeout=30))
        seen: list[float] = []

        def handler(ctx: Context) -> None:
            rc = ctx.request_context()
            rc.check()
            seen.append(rc.deadline - time.monotonic())  # type: ignore[operator]
            ctx.status(204)

        server.router().group("/api").get("/d", handler)
        assert TestClient(server.engine_handle()).get("/api/d").status_code == 204
        assert 0 < seen[0] <= 30

    def test_expired_deadline_cancels_work(self) -> None:
        server = StarletteServer(HttpConfig(mode="test", request_timeout=0.05))

        async def handler(ctx: Context) -> None:
            await asyncio.sleep(0.1)
            try:
                ctx.request_context().check()
            except RequestCancelled as e:
                ctx.json(504, {"error": str(e)})
                return
            ctx.status(200)

        server.router().get("/slow", handler)
        response = TestClient(server.engine_handle()).get("/slow")
        assert response.status_code == 504
        assert response.json() == {"error": "request deadline exceeded"}


class TestAccessLog:
    def test_server_address_on_access_records(self, caplog: pytest.LogCaptureFixture) -> None:
        config = HttpConfig(host="127.0.0.1", port=9000, mode="test", middleware={"logging": "on"})
        server = StarletteServer(config)
        server.router().get("/ping", lambda ctx: ctx.string(200, "pong"))

        with caplog.at_level(logging.INFO, logger="genro_http.access"):
            TestClient(server.engine_handle()).get("/ping")

        record = [r for r in caplog.records if r.name == "genro_http.access"][-1]
        assert record.address == "127.0.0.1:9000"  # type: ignore[attr-defined]
        assert record.status == 200  # type: ignore[attr-defined]
        assert record.path == "/ping"  # type: ignore[attr-defined]
