"""
Neutral request/response types shared by both runtimes.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from multidict import CIMultiDict
from yarl import URL

HeadersInput = Union[Mapping[str, str], "list[tuple[str, str]]", None]
Body = Union[str, bytes, None]


def _to_headers(headers: Any) -> CIMultiDict[str]:
    if headers is None:
        return CIMultiDict()
    if isinstance(headers, CIMultiDict):
        return headers
    if isinstance(headers, Mapping):
        return CIMultiDict((str(k), str(v)) for k, v in headers.items())
    # Pyodide proxies of JS Headers only expose entries()
    if hasattr(headers, "entries") and not hasattr(headers, "items"):
        return CIMultiDict((str(k), str(v)) for k, v in headers.entries())
    if hasattr(headers, "items"):
        return CIMultiDict((str(k), str(v)) for k, v in headers.items())
    return CIMultiDict((str(k), str(v)) for k, v in headers)


def _to_cf(cf: Any) -> dict[str, Any] | None:
    if cf is None:
        return None
    if hasattr(cf, "to_py"):
        cf = cf.to_py()
    if isinstance(cf, Mapping):
        return dict(cf)
    return dict(getattr(cf, "__dict__", {}))


@dataclass
class Request:
    """
    An inbound request as seen by the user handler.

    ``cf`` carries Cloudflare's inline routing metadata (``colo``, ``country``,
    ...). Its presence is the Cloudflare platform signal.
    """

    url: str
    method: str = "GET"
    headers: CIMultiDict[str] = field(default_factory=CIMultiDict)
    body: Body = None
    cf: dict[str, Any] | None = None
    native: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.headers = _to_headers(self.headers)
        self.method = self.method.upper()

    @classmethod
    def from_native(cls, native: Any) -> Request:
        """
        Adapt a runtime request object into a ``Request``.

        Reads ``url``, ``method``, ``headers`` and ``cf`` from the native
        object. Bodies that are not already ``str`` or ``bytes`` (streams) are
        left on ``native`` for the handler to read.

        Raises:
            TypeError: If the object has no ``url``.
        """
        if isinstance(native, cls):
            return native
        url = getattr(native, "url", None)
        if url is None:
            raise TypeError(f"Cannot adapt {type(native).__name__} to a Request: missing url")
        body = getattr(native, "body", None)
        return cls(
            str(url),
            method=str(getattr(native, "method", None) or "GET"),
            headers=_to_headers(getattr(native, "headers", None)),
            body=body if isinstance(body, (str, bytes)) else None,
            cf=_to_cf(getattr(native, "cf", None)),
            native=native,
        )

    @property
    def parsed_url(self) -> URL:
        return URL(self.url)

    @property
    def path(self) -> str:
        return self.parsed_url.path

    @property
    def host(self) -> str | None:
        return self.parsed_url.host

    def text(self) -> str:
        if self.body is None:
            return ""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body

    def json(self) -> Any:
        return json.loads(self.text())


@dataclass
class Response:
    """An outbound response returned by handlers and by ``fetch``."""

    body: Body = None
    status: int = 200
    headers: CIMultiDict[str] = field(default_factory=CIMultiDict)

    def __post_init__(self) -> None:
        self.headers = _to_headers(self.headers)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        if self.body is None:
            return ""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8", errors="replace")
        return self.body

    def json(self) -> Any:
        return json.loads(self.text())

    @classmethod
    def json_response(cls, data: Any, status: int = 200, headers: HeadersInput = None) -> Response:
        merged = _to_headers(headers)
        merged.setdefault("content-type", "application/json")
        return cls(json.dumps(data), status=status, headers=merged)


@dataclass
class FetchEvent:
    """
    The native event handed to the dispatcher.

    Attributes:
        request: The inbound request
        env: Cloudflare worker bindings (plain vars plus KV namespaces such as
            ``PACKAGE``). Unused on Fastly.
    """

    request: Request
    env: Any = None


__all__ = ["Request", "Response", "FetchEvent"]
