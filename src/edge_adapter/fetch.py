"""
Unified outbound fetch.

``fetch(resource, options)`` accepts the runtime-neutral options
``decompress`` (default ``True``) and ``cacheOverride`` on top of the usual
fetch options and rewrites them for whichever runtime the process runs on:

- Cloudflare: Fastly-only options are stripped and a cache directive is merged
  into the ``cf`` bag.
- Fastly and plain hosts: a cache directive is passed as its native handle,
  and ``decompress`` becomes ``fastly.decompressGzip`` (explicit values in the
  ``fastly`` bag win).

Unsupported combinations never raise; the offending option is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import aiohttp
from multidict import CIMultiDict

from .cache_override import CacheOverride
from .capabilities import get_loader
from .concurrency import maybe_await
from .config import get_settings
from .errors import FetchOptionError
from .platform import Platform, current_platform
from .types import Request, Response, _to_headers

logger = logging.getLogger(__name__)

# Options only the Fastly runtime understands.
FASTLY_ONLY_OPTIONS = ("backend", "cacheKey", "decompress", "fastly")

_ALIASES = {"cache_override": "cacheOverride"}


class Transport(Protocol):
    async def __call__(self, resource: Any, options: dict[str, Any]) -> Response: ...


# =============================================================================
# Option translation
# =============================================================================


def _normalize(options: Mapping[str, Any] | None, kwargs: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(options or {})
    for key, value in kwargs.items():
        merged[_ALIASES.get(key, key)] = value
    return merged


async def build_fetch_options(
    options: Mapping[str, Any] | None,
    platform: Platform | None,
    *,
    default_decompress: bool = True,
) -> dict[str, Any]:
    """
    Translate neutral fetch options into the runtime's native options.

    Args:
        options: Caller options, possibly containing ``cacheOverride`` and
            ``decompress``
        platform: The detected runtime, ``None`` for a plain host
        default_decompress: Value used when ``decompress`` is not given

    Returns:
        A new options dict for the native fetch
    """
    fetch_options = dict(options or {})
    cache_override = fetch_options.pop("cacheOverride", None)

    if platform is Platform.CLOUDFLARE:
        for key in FASTLY_ONLY_OPTIONS:
            fetch_options.pop(key, None)
        if cache_override is not None:
            _apply_cloudflare_override(fetch_options, cache_override)
        return fetch_options

    if cache_override is not None:
        await _apply_native_override(fetch_options, cache_override)

    decompress = fetch_options.pop("decompress", default_decompress)
    explicit = fetch_options.pop("fastly", None)
    fastly: dict[str, Any] = {"decompressGzip": bool(decompress)}
    if isinstance(explicit, Mapping):
        fastly.update(explicit)
    elif explicit is not None:
        logger.warning(f"fetch: ignoring non-mapping 'fastly' option: {explicit!r}")
    fetch_options["fastly"] = fastly
    return fetch_options


def _drop_option(name: str, reason: str, cause: BaseException) -> None:
    error = FetchOptionError(f"fetch: dropping {name}, {reason}: {cause}", cause=cause)
    logger.warning(error.message, extra={"error": error.to_dict()})


def _apply_cloudflare_override(fetch_options: dict[str, Any], cache_override: Any) -> None:
    try:
        cf_options = cache_override.to_cloudflare_options()
    except Exception as e:
        _drop_option("cacheOverride", "translation failed", e)
        return
    if not cf_options:
        return
    existing = fetch_options.get("cf")
    fetch_options["cf"] = {**(existing if isinstance(existing, Mapping) else {}), **cf_options}


async def _apply_native_override(fetch_options: dict[str, Any], cache_override: Any) -> None:
    if not isinstance(cache_override, CacheOverride):
        # Already a native handle supplied by the caller.
        fetch_options["cacheOverride"] = cache_override
        return
    try:
        native = await cache_override.get_native()
    except Exception as e:
        _drop_option("cacheOverride", "native initialization failed", e)
        return
    if native is not None:
        fetch_options["cacheOverride"] = native


# =============================================================================
# Transports
# =============================================================================


def _header_items(headers: Any) -> list[tuple[str, str]]:
    if headers is None:
        return []
    if hasattr(headers, "entries"):
        # JS Headers object proxied into Python
        return [(str(k), str(v)) for k, v in headers.entries()]
    if hasattr(headers, "items"):
        return [(str(k), str(v)) for k, v in headers.items()]
    return [(str(k), str(v)) for k, v in headers]


async def _read_native_body(native: Any) -> bytes | str | None:
    for reader in ("bytes", "array_buffer", "arrayBuffer", "text"):
        method = getattr(native, reader, None)
        if method is None:
            continue
        body = await maybe_await(method())
        if hasattr(body, "to_bytes"):
            body = body.to_bytes()
        return body
    return getattr(native, "body", None)


async def to_response(native: Any) -> Response:
    """Convert a native runtime response into a ``Response``."""
    if isinstance(native, Response):
        return native
    return Response(
        body=await _read_native_body(native),
        status=int(getattr(native, "status", 200)),
        headers=CIMultiDict(_header_items(getattr(native, "headers", None))),
    )


def _merge_request(resource: Any, options: dict[str, Any]) -> tuple[Any, dict[str, Any]]:
    """Fold a ``Request`` resource's method, headers and body under ``options``."""
    if not isinstance(resource, Request):
        return resource, options
    merged: dict[str, Any] = {"method": resource.method}
    if resource.body is not None:
        merged["body"] = resource.body
    headers = CIMultiDict(resource.headers)
    headers.update(_to_headers(options.get("headers")))
    merged.update(options)
    if headers:
        merged["headers"] = headers
    return resource, merged


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


async def to_js_options(options: dict[str, Any]) -> Any:
    """
    Convert fetch options into a JS object for the Workers ``fetch``.

    Nested dicts become JS objects through ``Object.fromEntries`` instead of
    ``Map``, which the Workers ``fetch`` ignores.
    """
    loader = get_loader()
    modules = get_settings().modules
    ffi = await loader.require(modules.cloudflare_ffi)
    js = await loader.require(modules.cloudflare_fetch)
    return ffi.to_js(_plain(options), dict_converter=js.Object.fromEntries)


class NativeTransport:
    """
    Calls the runtime's own ``fetch`` from a native module.

    ``convert`` turns the Python options into whatever the native ``fetch``
    accepts; by default they are passed through as a dict.
    """

    def __init__(
        self,
        module_name: str,
        attr: str = "fetch",
        convert: Callable[[dict[str, Any]], Any] | None = None,
    ):
        self.module_name = module_name
        self.attr = attr
        self.convert = convert

    async def __call__(self, resource: Any, options: dict[str, Any]) -> Response:
        module = await get_loader().require(self.module_name)
        native_fetch = getattr(module, self.attr)
        resource, options = _merge_request(resource, options)
        if isinstance(resource, Request):
            resource = resource.native if resource.native is not None else resource.url
        native_options = await maybe_await(self.convert(options)) if self.convert else options
        native = await maybe_await(native_fetch(resource, native_options))
        return await to_response(native)


class AiohttpTransport:
    """
    Fetch for plain (non-edge) hosts, backed by ``aiohttp``.

    A ``Request`` resource contributes its URL, method, headers and body;
    explicit options win. ``fastly.decompressGzip`` maps to the session's
    ``auto_decompress``; edge cache options (``cf``, ``cacheOverride``) have no
    meaning here and are ignored.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout
        self._sessions: dict[bool, aiohttp.ClientSession] = {}

    async def _get_session(self, decompress: bool) -> aiohttp.ClientSession:
        session = self._sessions.get(decompress)
        if session is None or session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout) if self.timeout else None
            session = aiohttp.ClientSession(auto_decompress=decompress, timeout=timeout)
            self._sessions[decompress] = session
        return session

    async def __call__(self, resource: Any, options: dict[str, Any]) -> Response:
        resource, options = _merge_request(resource, options)
        url = resource.url if isinstance(resource, Request) else str(resource)
        fastly = options.get("fastly") or {}
        session = await self._get_session(bool(fastly.get("decompressGzip", True)))

        ignored = [key for key in ("cf", "cacheOverride") if key in options]
        if ignored:
            logger.debug(f"fetch: ignoring edge-only options on host: {', '.join(ignored)}")

        async with session.request(
            options.get("method", "GET"),
            url,
            headers=options.get("headers"),
            data=options.get("body"),
            allow_redirects=options.get("redirect", "follow") == "follow",
        ) as response:
            body = await response.read()
            return Response(body=body, status=response.status, headers=CIMultiDict(response.headers))

    async def close(self) -> None:
        for session in self._sessions.values():
            if not session.closed:
                await session.close()
        self._sessions.clear()


_host_transport: AiohttpTransport | None = None
_transport_override: Transport | None = None


def get_transport(platform: Platform | None) -> Transport:
    """The transport for a runtime; an installed override wins."""
    global _host_transport
    if _transport_override is not None:
        return _transport_override

    modules = get_settings().modules
    if platform is Platform.CLOUDFLARE:
        return NativeTransport(modules.cloudflare_fetch, convert=to_js_options)
    if platform is Platform.FASTLY:
        return NativeTransport(modules.fastly_fetch)
    if _host_transport is None:
        _host_transport = AiohttpTransport(timeout=get_settings().fetch.timeout)
    return _host_transport


def set_transport(transport: Transport | Callable[[Any, dict[str, Any]], Awaitable[Any]] | None) -> None:
    """Install a transport used on every runtime (``None`` restores the defaults)."""
    global _transport_override
    _transport_override = transport  # type: ignore[assignment]


async def close_transports() -> None:
    global _host_transport
    if _host_transport is not None:
        await _host_transport.close()
        _host_transport = None


def reset_transports() -> None:
    """Drop the installed override and the cached host transport without closing it."""
    global _host_transport, _transport_override
    _host_transport = None
    _transport_override = None


# =============================================================================
# Public fetch
# =============================================================================


async def fetch(
    resource: Any,
    options: Mapping[str, Any] | None = None,
    *,
    transport: Transport | None = None,
    **kwargs: Any,
) -> Response:
    """
    Drop-in fetch that understands ``decompress`` and ``cacheOverride``.

    Args:
        resource: URL, ``Request`` or native request to fetch
        options: Fetch options (``method``, ``headers``, ``body``, ``cf``,
            ``fastly``, ``decompress``, ``cacheOverride``, ...)
        transport: Explicit transport, mainly for tests
        **kwargs: Extra options merged over ``options``; ``cache_override`` is
            accepted as an alias of ``cacheOverride``

    Returns:
        The response
    """
    platform = current_platform()
    fetch_options = await build_fetch_options(
        _normalize(options, kwargs),
        platform,
        default_decompress=get_settings().fetch.default_decompress,
    )
    send = transport or get_transport(platform)
    return await to_response(await send(resource, fetch_options))


__all__ = [
    "FASTLY_ONLY_OPTIONS",
    "Transport",
    "NativeTransport",
    "AiohttpTransport",
    "build_fetch_options",
    "to_js_options",
    "to_response",
    "get_transport",
    "set_transport",
    "close_transports",
    "reset_transports",
    "fetch",
]
