"""
Per-request context for Mooring.

A :class:`RequestContext` holds a request view and a response view over
one ASGI connection. It is created once per request and never shared.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING, Any

from mooring.exceptions import ResponseError
from mooring.types import Params, Receive, Scope, Send, State

if TYPE_CHECKING:
    from mooring.routing import Route, Router


class RequestView:
    """
    Read-only view of the incoming request.

    ``path`` is the query-stripped path used for matching; ``url`` keeps
    the original target including the query string.
    """

    def __init__(
        self,
        scope: Scope,
        receive: Receive,
        proxy: bool = False,
        proxy_header: str = "X-Forwarded-For",
    ) -> None:
        self._scope = scope
        self._receive = receive
        self._proxy = proxy
        self._proxy_header = proxy_header.lower()
        self.params: Params = {}
        self.app: Any = None
        self.res: "ResponseView | None" = None

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def receive(self) -> Receive:
        return self._receive

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self._scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        """Path used for route matching, without the query string."""
        return self._scope.get("path", "/").split("?", 1)[0] or "/"

    @property
    def query_string(self) -> str:
        """Raw query string."""
        return self._scope.get("query_string", b"").decode("latin-1")

    @cached_property
    def url(self) -> str:
        """Original request target: raw path plus query string."""
        raw_path = self._scope.get("raw_path")
        target = raw_path.decode("latin-1") if raw_path else self._scope.get("path", "/")
        if self.query_string:
            target = f"{target}?{self.query_string}"
        return target

    @cached_property
    def headers(self) -> Mapping[str, str]:
        """Request headers with lower-cased names."""
        headers: dict[str, str] = {}
        for name, value in self._scope.get("headers", []):
            headers[name.decode("latin-1").lower()] = value.decode("latin-1")
        return headers

    @property
    def scheme(self) -> str:
        """URL scheme (http or https)."""
        return self._scope.get("scheme", "http")

    @property
    def client(self) -> tuple[str, int] | None:
        """Client address as (host, port) tuple."""
        client = self._scope.get("client")
        if client:
            return (client[0], client[1])
        return None

    @property
    def ip(self) -> str | None:
        """
        Client IP address.
        Behind a trusted proxy, the first address of the proxy header wins.
        """
        if self._proxy:
            forwarded = self.headers.get(self._proxy_header)
            if forwarded:
                return forwarded.split(",")[0].strip()
        return self.client[0] if self.client else None

    def get_header(self, name: str, default: str | None = None) -> str | None:
        """Get a specific header value."""
        return self.headers.get(name.lower(), default)


class ResponseView:
    """
    Mutable view of the outgoing response.

    Headers and status may change until the first body chunk is written.
    """

    charset: str = "utf-8"

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status_code: int = 200
        # lower-cased name -> (original name, value)
        self._headers: dict[str, tuple[str, str]] = {}
        self.started = False
        self.finished = False
        self.req: RequestView | None = None

    @property
    def headers(self) -> dict[str, str]:
        return {name: value for name, value in self._headers.values()}

    def set_header(self, name: str, value: str) -> "ResponseView":
        """Set a response header. Returns self for chaining."""
        if self.started:
            raise ResponseError(f"Cannot set header {name!r}: response already started")
        self._headers[name.lower()] = (name, str(value))
        return self

    def get_header(self, name: str, default: str | None = None) -> str | None:
        entry = self._headers.get(name.lower())
        return entry[1] if entry else default

    def remove_header(self, name: str) -> "ResponseView":
        self._headers.pop(name.lower(), None)
        return self

    def status(self, status_code: int) -> "ResponseView":
        """Set the status code. Returns self for chaining."""
        if self.started:
            raise ResponseError("Cannot change status: response already started")
        self.status_code = status_code
        return self

    def _build_headers(self) -> list[tuple[bytes, bytes]]:
        """Build header list for ASGI response."""
        return [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in self._headers.values()
        ]

    def _encode(self, body: bytes | str | None) -> bytes:
        if body is None:
            return b""
        if isinstance(body, bytes):
            return body
        return str(body).encode(self.charset)

    async def _start(self) -> None:
        self.started = True
        await self._send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": self._build_headers(),
        })

    async def write(self, chunk: bytes | str) -> None:
        """Stream a body chunk, starting the response if needed."""
        if self.finished:
            raise ResponseError("Cannot write: response already finished")
        if not self.started:
            await self._start()
        await self._send({
            "type": "http.response.body",
            "body": self._encode(chunk),
            "more_body": True,
        })

    async def end(self, body: bytes | str | None = None) -> None:
        """Send the final body chunk and finish the response."""
        if self.finished:
            raise ResponseError("Response already finished")
        payload = self._encode(body)
        if not self.started:
            self._headers.setdefault("content-length", ("content-length", str(len(payload))))
            await self._start()
        self.finished = True
        await self._send({
            "type": "http.response.body",
            "body": payload,
            "more_body": False,
        })

    async def text(self, body: str, status_code: int | None = None) -> None:
        """Finish with a plain text body."""
        if status_code is not None:
            self.status(status_code)
        self._headers.setdefault(
            "content-type", ("content-type", f"text/plain; charset={self.charset}")
        )
        await self.end(body)

    async def json(self, data: Any, status_code: int | None = None) -> None:
        """Finish with a JSON body."""
        if status_code is not None:
            self.status(status_code)
        self.set_header("content-type", f"application/json; charset={self.charset}")
        payload = json.dumps(
            data,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        ).encode(self.charset)
        await self.end(payload)


@dataclass(slots=True)
class RequestContext:
    """Everything one request's handlers share."""

    req: RequestView
    res: ResponseView
    app: Any
    request_id: str = ""
    state: State = field(default_factory=dict)
    route: "Route | None" = None
    router: "Router | None" = None

    @property
    def params(self) -> Params:
        return self.req.params
