"""
Loading of optional native runtime modules.

Each runtime exposes its facilities (environment accessors, secret stores,
log endpoints, cache overrides, the native fetch) as importable modules that
do not exist anywhere else. Loading one of them is both how a capability is
used and how its presence is checked, so a missing module is an expected
outcome, not an error.

Every module name is loaded at most once per process; concurrent first
callers share the same in-flight attempt.
"""

from __future__ import annotations

import importlib
import logging
from types import ModuleType
from typing import Any

from .concurrency import AsyncOnce
from .config import get_settings
from .errors import CapabilityUnavailableError

logger = logging.getLogger(__name__)


class CapabilityLoader:
    """
    Process-scoped cache of optional module loads.

    ``load()`` resolves to the module or ``None``; the outcome, including a
    miss, is cached per module name until ``reset()``.
    """

    def __init__(self) -> None:
        self._loads: dict[str, AsyncOnce[ModuleType | None]] = {}
        self.attempts: dict[str, int] = {}

    async def load(self, module_name: str) -> ModuleType | None:
        once = self._loads.get(module_name)
        if once is None:
            once = AsyncOnce(lambda: self._import(module_name))
            self._loads[module_name] = once
        return await once.get()

    async def require(self, module_name: str) -> ModuleType:
        module = await self.load(module_name)
        if module is None:
            raise CapabilityUnavailableError(module_name=module_name)
        return module

    def is_loaded(self, module_name: str) -> bool:
        once = self._loads.get(module_name)
        return once is not None and once.done

    def reset(self) -> None:
        self._loads.clear()
        self.attempts.clear()

    async def _import(self, module_name: str) -> ModuleType | None:
        self.attempts[module_name] = self.attempts.get(module_name, 0) + 1
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.debug(f"Capability module '{module_name}' unavailable: {e}")
            return None
        except Exception as e:
            # a module that exists but fails to initialize is still absent
            logger.warning(f"Capability module '{module_name}' failed to load: {e!r}")
            return None
        logger.debug(f"Loaded capability module '{module_name}'")
        return module


_loader = CapabilityLoader()


def get_loader() -> CapabilityLoader:
    return _loader


def reset_capabilities() -> None:
    """Forget all loaded modules (simulates a cold start)."""
    _loader.reset()


# =============================================================================
# Named capabilities
# =============================================================================


async def get_fastly_env() -> ModuleType:
    """The Fastly environment module; its ``env(name)`` reads service metadata."""
    return await _loader.require(get_settings().modules.fastly_env)


async def _load_attr(module_name: str, attr: str) -> Any:
    module = await _loader.load(module_name)
    if module is None:
        return None
    value = getattr(module, attr, None)
    if value is None:
        logger.debug(f"Capability module '{module_name}' has no attribute '{attr}'")
    return value


async def get_secret_store_class() -> Any:
    """The native ``SecretStore`` class, or ``None`` off Fastly."""
    return await _load_attr(get_settings().modules.fastly_secret_store, "SecretStore")


async def get_logger_class() -> Any:
    """The native ``Logger`` class, or ``None`` off Fastly."""
    return await _load_attr(get_settings().modules.fastly_logger, "Logger")


async def get_cache_override_class() -> Any:
    """The native ``CacheOverride`` class, or ``None`` off Fastly."""
    return await _load_attr(get_settings().modules.fastly_cache_override, "CacheOverride")


__all__ = [
    "CapabilityLoader",
    "get_loader",
    "reset_capabilities",
    "get_fastly_env",
    "get_secret_store_class",
    "get_logger_class",
    "get_cache_override_class",
]
