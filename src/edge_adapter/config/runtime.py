"""
Runtime configuration: native module names, secret stores, routing.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ModulesConfig:
    """
    Import names of the optional native modules each runtime provides.

    None of these exist on a plain host; loading them is how capabilities are
    discovered.
    """

    fastly_env: str = "fastly_compute.env"
    fastly_secret_store: str = "fastly_compute.secret_store"
    fastly_logger: str = "fastly_compute.logger"
    fastly_cache_override: str = "fastly_compute.cache_override"
    fastly_fetch: str = "fastly_compute.fetch"
    cloudflare_fetch: str = "js"
    cloudflare_ffi: str = "pyodide.ffi"

    def __post_init__(self):
        for name, value in vars(self).items():
            if not value or not isinstance(value, str):
                raise ValueError(f"{name} must be a non-empty module name")


@dataclass
class SecretsConfig:
    """Secret store naming.

    When both ``package_name`` and ``function_name`` are known, the store
    names follow the deployment convention (``{package}--{function}`` for the
    action store, ``{package}`` for the package store). Otherwise the fixed
    store names are used.
    """

    action_store: str = "action_secrets"
    package_store: str = "package_secrets"
    package_name: str | None = None
    function_name: str | None = None
    package_binding: str = "PACKAGE"

    def __post_init__(self):
        if not self.action_store or not self.package_store:
            raise ValueError("secret store names cannot be empty")

    def store_names(self) -> tuple[str, str]:
        """Return ``(action_store, package_store)`` in lookup order."""
        if self.package_name and self.function_name:
            return f"{self.package_name}--{self.function_name}", self.package_name
        return self.action_store, self.package_store


@dataclass
class RoutingConfig:
    """How the mount point of the function is stripped from request paths."""

    # Leading path segments that form the mount point, e.g. 2 for
    # "/{package}/{function}/...". 0 keeps the full path as the suffix.
    mount_segments: int = 0

    def __post_init__(self):
        if self.mount_segments < 0:
            raise ValueError("mount_segments cannot be negative")


__all__ = ["ModulesConfig", "SecretsConfig", "RoutingConfig"]
