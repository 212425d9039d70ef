"""
Platform detection.

Classifies the current execution instance as Cloudflare Workers or Fastly
Compute, once. The classification survives for the lifetime of the process;
a cold start detects again.
"""

from __future__ import annotations

import logging
from enum import Enum

from .capabilities import get_loader
from .config import get_settings
from .types import FetchEvent

logger = logging.getLogger(__name__)


class Platform(str, Enum):
    """The runtimes the adapter can serve. The value is ``runtime.name``."""

    CLOUDFLARE = "cloudflare-workers"
    FASTLY = "compute-at-edge"


_detected: Platform | None = None


async def detect(event: FetchEvent | None) -> Platform | None:
    """
    Detect the runtime from the inbound event.

    1. Inline Cloudflare routing metadata on the request means Cloudflare.
    2. Otherwise a loadable Fastly env module means Fastly.
    3. Otherwise ``None``; the caller must not guess.

    Only a positive classification is cached.
    """
    global _detected
    if _detected is not None:
        return _detected

    request = getattr(event, "request", None)
    # an empty cf mapping is still Cloudflare
    if getattr(request, "cf", None) is not None:
        _detected = Platform.CLOUDFLARE
        logger.info("detected cloudflare environment")
        return _detected

    module = await get_loader().load(get_settings().modules.fastly_env)
    if module is not None:
        _detected = Platform.FASTLY
        logger.info("detected fastly environment")
        return _detected

    logger.debug("no platform signal found")
    return None


def current_platform() -> Platform | None:
    """The cached classification, or ``None`` before detection or on a plain host."""
    return _detected


def reset_platform_cache() -> None:
    global _detected
    _detected = None


__all__ = ["Platform", "detect", "current_platform", "reset_platform_cache"]
