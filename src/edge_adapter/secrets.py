"""
Read-through secret resolution.

``context.env`` is a ``SecretResolver``: ``await context.env.get("API_KEY")``
resolves to the secret's plaintext or ``None``. Lookups never raise; a
missing store module or a failing store counts as "absent" and is logged at
debug level.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Mapping
from typing import Any

from .capabilities import get_secret_store_class
from .concurrency import maybe_await
from .config import SecretsConfig, get_settings
from .errors import SecretLookupError

logger = logging.getLogger(__name__)


class SecretResolver(ABC):
    """Asynchronous, read-only key lookup."""

    async def get(self, key: Any) -> str | None:
        # Reflection artifacts and other non-string keys never hit a store.
        if not isinstance(key, str):
            return None
        return await self._lookup(key)

    def __getitem__(self, key: Any) -> Awaitable[str | None]:
        return self.get(key)

    @abstractmethod
    async def _lookup(self, key: str) -> str | None: ...


# =============================================================================
# Fastly: two secret store tiers
# =============================================================================


class TieredSecretResolver(SecretResolver):
    """
    Looks a key up in the action-scoped store, then the package-scoped store.

    A value found in the action store wins and the package store is not
    consulted. Stores are opened lazily through the native ``SecretStore``
    class, which is loaded at most once per process.
    """

    def __init__(self, config: SecretsConfig | None = None):
        config = config or get_settings().secrets
        self.action_store, self.package_store = config.store_names()
        self._stores: dict[str, Any] = {}

    @property
    def tiers(self) -> tuple[str, str]:
        return self.action_store, self.package_store

    async def _lookup(self, key: str) -> str | None:
        try:
            store_class = await get_secret_store_class()
        except Exception as e:
            logger.debug(f"Error accessing secrets for {key}: {e}")
            return None
        if store_class is None:
            return None

        for store_name in self.tiers:
            value = await self._lookup_in(store_class, store_name, key)
            if value is not None:
                return value
        return None

    async def _lookup_in(self, store_class: Any, store_name: str, key: str) -> str | None:
        try:
            store = self._stores.get(store_name)
            if store is None:
                store = store_class(store_name)
                self._stores[store_name] = store
            secret = await maybe_await(store.get(key))
            if secret is None:
                return None
            value = await maybe_await(secret.plaintext())
        except Exception as e:
            error = SecretLookupError(
                f"Error accessing secret '{key}' in store '{store_name}': {e}",
                store=store_name,
                key=key,
                cause=e,
            )
            logger.debug(error.message, extra={"error": error.to_dict()})
            return None
        return value if value is None else str(value)


# =============================================================================
# Cloudflare: worker bindings, then the PACKAGE namespace
# =============================================================================


class BindingSecretResolver(SecretResolver):
    """
    Looks a key up in the worker's bindings, then in the bound key/value
    namespace holding package parameters.

    Bindings may be a mapping or an attribute bag (as the Workers runtime
    passes them). Non-string binding values (other namespaces, services) are
    not secrets and are skipped.
    """

    def __init__(self, bindings: Any, config: SecretsConfig | None = None):
        config = config or get_settings().secrets
        self.bindings = bindings
        self.package_binding = config.package_binding

    def _binding(self, name: str) -> Any:
        if self.bindings is None:
            return None
        if isinstance(self.bindings, Mapping):
            return self.bindings.get(name)
        return getattr(self.bindings, name, None)

    async def _lookup(self, key: str) -> str | None:
        value = self._binding(key)
        if isinstance(value, str) and value:
            return value

        namespace = self._binding(self.package_binding)
        if namespace is None or isinstance(namespace, str):
            return None
        try:
            stored = await maybe_await(namespace.get(key))
        except Exception as e:
            logger.debug(f"Error accessing secrets for {key}: {e}")
            return None
        return stored if stored is None else str(stored)


__all__ = ["SecretResolver", "TieredSecretResolver", "BindingSecretResolver"]
