# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""StarletteContext - Context adapter over one Starlette request.

Created per request by the route endpoint (see router.py) after the body
was read, handed to the neutral handler and discarded when it returns.
Every accessor is synchronous, so handlers may be plain functions running in
a worker thread or coroutine functions.

Response building:
    json()/string() store a complete Starlette response (last call wins).
    status()/set_header() apply to whatever response is finally rendered.
    writer() collects raw bytes used as body when no complete response
    was written.

Binding:
    bind_json(target) and bind(target) accept a type (dataclass, pydantic
    model, TypedDict, builtin container), validated through a pydantic
    TypeAdapter and returned, or a mutable mapping, updated in place only
    after the whole payload decoded. Failures raise BindError.
"""

from __future__ import annotations

import io
import json
import time
from collections.abc import Iterable, Mapping, MutableMapping
from functools import lru_cache
from typing import IO, Any
from urllib.parse import parse_qsl

from pydantic import TypeAdapter, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from ..exceptions import BindError, RequestCancelled
from ..interfaces import Context, RequestContext
from ..middleware.recovery import error_body

__all__ = ["StarletteContext", "StarletteRequestContext"]

JSON_TYPE = "application/json"
FORM_TYPE = "application/x-www-form-urlencoded"
QUERY_BIND_METHODS = frozenset({"GET", "HEAD", "DELETE"})
_BODY_HEADERS = frozenset({"content-type", "content-length", "content-encoding"})


class StarletteRequestContext(RequestContext):
    """Cancellation state of one Starlette request.

    Cancelled when the endpoint finishes (cancel()) or when is_cancelled()
    observes an ``http.disconnect`` from the client.
    """

    __slots__ = ("_request", "_cancelled", "_deadline")

    def __init__(self, request: Request, deadline: float | None = None) -> None:
        self._request = request
        self._cancelled = False
        self._deadline = deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def deadline(self) -> float | None:
        return self._deadline

    async def is_cancelled(self) -> bool:
        if not self._cancelled and await self._request.is_disconnected():
            self._cancelled = True
        return self._cancelled

    def check(self) -> None:
        if self._cancelled:
            raise RequestCancelled("request cancelled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise RequestCancelled("request deadline exceeded")

    def cancel(self) -> None:
        self._cancelled = True


class StarletteContext(Context):
    """Context adapter over a Starlette Request and a pending response."""

    __slots__ = (
        "_request",
        "_body",
        "_request_context",
        "_status",
        "_headers",
        "_response",
        "_writer",
    )

    def __init__(
        self,
        request: Request,
        body: bytes = b"",
        request_context: StarletteRequestContext | None = None,
    ) -> None:
        self._request = request
        self._body = body
        self._request_context = request_context or StarletteRequestContext(request)
        self._status = 200
        self._headers: dict[str, str] = {}
        self._response: Response | None = None
        self._writer: io.BytesIO | None = None

    # -- request side ---------------------------------------------------------

    def request(self) -> Request:
        return self._request

    def request_context(self) -> StarletteRequestContext:
        return self._request_context

    def param(self, name: str) -> str:
        value = self._request.path_params.get(name)
        return "" if value is None else str(value)

    def query(self, name: str) -> str:
        return self._request.query_params.get(name, "")

    def query_default(self, name: str, default: str) -> str:
        return self._request.query_params.get(name, default)

    def get_header(self, name: str) -> str:
        return self._request.headers.get(name, "")

    def bind_json(self, target: Any) -> Any:
        return _apply(target, self._decode_json(), JSON_TYPE)

    def bind(self, target: Any) -> Any:
        """Bind by method and content type.

        GET/HEAD/DELETE without a body bind the query string; otherwise the
        Content-Type header picks JSON or urlencoded form decoding.
        """
        if self._request.method in QUERY_BIND_METHODS and not self._body:
            return _apply(target, _flatten(self._request.query_params.multi_items()), "query")
        content_type = self.get_header("content-type").split(";", 1)[0].strip().lower()
        if content_type in ("", JSON_TYPE) or content_type.endswith("+json"):
            return _apply(target, self._decode_json(), JSON_TYPE)
        if content_type == FORM_TYPE:
            try:
                pairs = parse_qsl(self._body.decode("utf-8"), keep_blank_values=True)
            except UnicodeDecodeError as e:
                raise BindError(f"form body is not utf-8: {e}", FORM_TYPE) from e
            return _apply(target, _flatten(pairs), FORM_TYPE)
        raise BindError(f"unsupported content type {content_type!r}", content_type)

    def _decode_json(self) -> Any:
        if not self._body:
            raise BindError("empty request body", JSON_TYPE)
        try:
            return json.loads(self._body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BindError(f"invalid JSON: {e}", JSON_TYPE) from e

    # -- response side --------------------------------------------------------

    def set_header(self, name: str, value: str) -> None:
        """Set a response header; an empty value removes it."""
        if value:
            self._headers[name] = value
        else:
            self._headers.pop(name, None)

    def status(self, code: int) -> None:
        self._status = code

    def json(self, code: int, body: Any) -> None:
        self._status = code
        self._response = JSONResponse(body, status_code=code)

    def string(self, code: int, text: str) -> None:
        self._status = code
        self._response = PlainTextResponse(text, status_code=code)

    def writer(self) -> IO[bytes]:
        if self._writer is None:
            self._writer = io.BytesIO()
        return self._writer

    def render(self) -> Response:
        """Build the engine response for this exchange."""
        response = self._response
        if response is None:
            content = self._writer.getvalue() if self._writer is not None else b""
            response = Response(content, status_code=self._status)
        for name, value in self._headers.items():
            response.headers[name] = value
        return response

    def render_error(self, message: str) -> Response:
        """500 JSON error response replacing whatever the handler wrote.

        Headers set with set_header() are kept, except the body-describing ones.
        """
        response = Response(error_body(message), status_code=500, media_type=JSON_TYPE)
        for name, value in self._headers.items():
            if name.lower() not in _BODY_HEADERS:
                response.headers[name] = value
        return response


@lru_cache(maxsize=256)
def _adapter(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def _apply(target: Any, data: Any, content_type: str) -> Any:
    if isinstance(target, MutableMapping):
        if not isinstance(data, Mapping):
            raise BindError(f"expected an object, got {type(data).__name__}", content_type)
        target.update(data)
        return target
    try:
        return _adapter(target).validate_python(data)
    except ValidationError as e:
        raise BindError(str(e), content_type) from e


def _flatten(pairs: Iterable[tuple[str, str]]) -> dict[str, Any]:
    """Collapse repeated keys into lists, keep single values as strings."""
    grouped: dict[str, list[str]] = {}
    for key, value in pairs:
        grouped.setdefault(key, []).append(value)
    return {key: values[0] if len(values) == 1 else values for key, values in grouped.items()}
