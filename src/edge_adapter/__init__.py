"""
Top-level package for edge-adapter.

Run one request handler unmodified on Cloudflare Workers and Fastly Compute.
Environment variables are loaded from the nearest `.env` so ``EDGE_*``
settings can be kept next to the deployment.
"""
from .config import load_env

# Keep side effect so EDGE_* settings are visible to get_settings().
_ = load_env()

from .cache_override import CacheMode, CacheOverride
from .config import Settings, configure, get_settings
from .context import FunctionInfo, InvocationContext, InvocationInfo, PathInfo, RuntimeInfo
from .dispatcher import create_entrypoint, dispatch
from .errors import (
    EdgeAdapterError,
    ErrorCode,
    HandlerError,
    InvalidCacheModeError,
    PlatformNotDetectedError,
)
from .fetch import fetch
from .logging import LEVELS, ContextLogger, configure_logging
from .platform import Platform, detect
from .secrets import SecretResolver
from .types import FetchEvent, Request, Response

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "dispatch",
    "create_entrypoint",
    # Platform
    "Platform",
    "detect",
    # Context
    "InvocationContext",
    "PathInfo",
    "RuntimeInfo",
    "FunctionInfo",
    "InvocationInfo",
    "SecretResolver",
    "ContextLogger",
    "LEVELS",
    # Outbound
    "fetch",
    "CacheOverride",
    "CacheMode",
    # Types
    "Request",
    "Response",
    "FetchEvent",
    # Errors
    "EdgeAdapterError",
    "ErrorCode",
    "HandlerError",
    "PlatformNotDetectedError",
    "InvalidCacheModeError",
    # Config
    "Settings",
    "configure",
    "get_settings",
    "configure_logging",
]
