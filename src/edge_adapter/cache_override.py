"""
Cross-platform cache directives.

A ``CacheOverride`` describes the desired caching of one outbound fetch
independently of the runtime:

- ``pass``: do not cache
- ``none``: respect the origin's cache-control headers
- ``override``: apply an explicit ``ttl``, ``cacheKey`` and/or ``surrogateKey``

On Fastly the directive becomes the runtime's native ``CacheOverride``
object. On Cloudflare it becomes ``cf`` fetch fields.

Example:
    ```python
    from edge_adapter import CacheOverride, fetch

    override = CacheOverride("override", {"ttl": 3600, "surrogateKey": "home nav"})
    response = await fetch("https://example.com/", cache_override=override)
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .capabilities import get_cache_override_class
from .concurrency import AsyncOnce
from .errors import InvalidCacheModeError

logger = logging.getLogger(__name__)


class CacheMode(str, Enum):
    OVERRIDE = "override"
    PASS = "pass"
    NONE = "none"


SUPPORTED_OPTIONS = ("ttl", "cacheKey", "surrogateKey")


def _valid_ttl(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


class CacheOverride:
    """
    Platform-neutral cache directive.

    Accepts ``CacheOverride(mode, options)``, ``CacheOverride(mode)`` or
    ``CacheOverride(options)`` (mode defaults to ``override``). Unsupported
    option keys and invalid values are dropped with a warning. The mode and
    options never change after construction.
    """

    __slots__ = ("_mode", "_options", "_native", "_native_once")

    def __init__(
        self,
        mode_or_options: str | CacheMode | Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ):
        if isinstance(mode_or_options, (str, CacheMode)):
            try:
                mode = CacheMode(mode_or_options)
            except ValueError:
                raise InvalidCacheModeError(mode_or_options) from None
            raw = dict(options or {})
        else:
            mode = CacheMode.OVERRIDE
            raw = dict(mode_or_options or {})

        unsupported = [key for key in raw if key not in SUPPORTED_OPTIONS]
        if unsupported:
            logger.warning(f"CacheOverride: Unsupported options ignored: {', '.join(map(str, unsupported))}")

        cleaned: dict[str, Any] = {}
        if "ttl" in raw:
            if _valid_ttl(raw["ttl"]):
                cleaned["ttl"] = raw["ttl"]
            else:
                logger.warning(f"CacheOverride: Invalid ttl ignored: {raw['ttl']!r}")
        for key in ("cacheKey", "surrogateKey"):
            if raw.get(key):
                cleaned[key] = str(raw[key])

        self._mode = mode
        self._options = cleaned
        self._native: Any = None
        self._native_once: AsyncOnce[Any] = AsyncOnce(self._create_native)

    @property
    def mode(self) -> str:
        return self._mode.value

    @property
    def options(self) -> dict[str, Any]:
        """A copy of the supported options that were set."""
        return dict(self._options)

    @property
    def native(self) -> Any:
        """The native handle, ``None`` until ``init_native()`` ran or off Fastly."""
        return self._native

    @property
    def native_initialized(self) -> bool:
        return self._native_once.done

    def __setattr__(self, name: str, value: Any) -> None:
        if name in CacheOverride.__slots__ and not hasattr(self, "_native_once"):
            object.__setattr__(self, name, value)
        elif name == "_native":
            object.__setattr__(self, name, value)
        else:
            raise AttributeError(f"CacheOverride is immutable; cannot set {name!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CacheOverride):
            return NotImplemented
        return self._mode == other._mode and self._options == other._options

    def __hash__(self) -> int:
        return hash((self._mode, tuple(sorted(self._options.items()))))

    def __repr__(self) -> str:
        return f"CacheOverride({self.mode!r}, {self._options!r})"

    # -------------------------------------------------------------------------
    # Native (Fastly) form
    # -------------------------------------------------------------------------

    async def _create_native(self) -> Any:
        native_class = await get_cache_override_class()
        if native_class is None:
            return None
        if self._options:
            native = native_class(self.mode, dict(self._options))
        else:
            native = native_class(self.mode)
        self._native = native
        return native

    async def init_native(self) -> None:
        """Create the native handle on first use; later calls are no-ops."""
        await self._native_once.get()

    async def get_native(self) -> Any:
        """The native ``CacheOverride`` instance, or ``None`` off Fastly."""
        await self.init_native()
        return self._native

    # -------------------------------------------------------------------------
    # Cloudflare form
    # -------------------------------------------------------------------------

    def to_cloudflare_options(self) -> dict[str, Any] | None:
        """
        Translate to Cloudflare ``cf`` fetch fields.

        ``none`` yields ``None`` (nothing to override); ``pass`` yields a zero
        TTL; ``override`` yields only the populated fields, and an empty result
        is also ``None`` so it stays distinguishable from an explicit zero.
        """
        if self._mode is CacheMode.NONE:
            return None
        if self._mode is CacheMode.PASS:
            return {"cacheTtl": 0}

        cf: dict[str, Any] = {}
        if "ttl" in self._options:
            cf["cacheTtl"] = self._options["ttl"]
        if "cacheKey" in self._options:
            cf["cacheKey"] = self._options["cacheKey"]
        if "surrogateKey" in self._options:
            cf["cacheTags"] = self._options["surrogateKey"].split()
        return cf or None

    def to_dict(self) -> dict[str, Any]:
        return {"mode": self.mode, "options": self.options}


__all__ = ["CacheMode", "CacheOverride", "SUPPORTED_OPTIONS"]
