"""
Shared test fixtures and fakes for edge-adapter tests.

This module provides:
- State resets between tests (platform cache, capability loads, settings,
  transports, native log endpoints)
- A fake Fastly runtime installed as importable ``fastly_compute.*`` modules
- Cloudflare-style KV namespaces and recording transports
- Request and event factories
"""

from __future__ import annotations

import importlib.abc
import importlib.util
import os
import sys
import types
from dataclasses import dataclass, field
from typing import Any

import pytest

from edge_adapter.capabilities import reset_capabilities
from edge_adapter.config import reset_settings
from edge_adapter.fetch import reset_transports, set_transport
from edge_adapter.logging import reset_native_sinks
from edge_adapter.platform import reset_platform_cache
from edge_adapter.types import FetchEvent, Request, Response

# =============================================================================
# State reset
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_state(monkeypatch):
    """Every test starts from a cold process."""
    for name in list(os.environ):
        if name.startswith("EDGE_"):
            monkeypatch.delenv(name)
    reset_platform_cache()
    reset_capabilities()
    reset_settings()
    reset_transports()
    reset_native_sinks()
    yield
    reset_platform_cache()
    reset_capabilities()
    reset_settings()
    reset_transports()
    reset_native_sinks()


# =============================================================================
# Fake Fastly runtime
# =============================================================================


class FakeSecret:
    def __init__(self, value: str):
        self._value = value

    def plaintext(self) -> str:
        return self._value


@dataclass
class FakeFastly:
    """In-memory stand-in for the Fastly native modules."""

    env_vars: dict[str, str] = field(default_factory=dict)
    stores: dict[str, dict[str, str]] = field(default_factory=dict)
    failing_stores: set[str] = field(default_factory=set)
    logs: dict[str, list[str]] = field(default_factory=dict)
    failing_loggers: set[str] = field(default_factory=set)
    logger_constructions: list[str] = field(default_factory=list)
    store_lookups: list[tuple[str, str]] = field(default_factory=list)
    overrides: list[Any] = field(default_factory=list)
    fetches: list[tuple[Any, dict[str, Any]]] = field(default_factory=list)

    def build_modules(self) -> dict[str, types.ModuleType]:
        runtime = self

        env_module = types.ModuleType("fastly_compute.env")
        env_module.env = lambda name: runtime.env_vars.get(name)

        class SecretStore:
            def __init__(self, name: str):
                if name not in runtime.stores and name not in runtime.failing_stores:
                    raise LookupError(f"Secret store {name} not found")
                self.name = name

            async def get(self, key: str) -> FakeSecret | None:
                runtime.store_lookups.append((self.name, key))
                if self.name in runtime.failing_stores:
                    raise RuntimeError(f"store {self.name} unavailable")
                value = runtime.stores[self.name].get(key)
                return FakeSecret(value) if value is not None else None

        secret_module = types.ModuleType("fastly_compute.secret_store")
        secret_module.SecretStore = SecretStore

        class Logger:
            def __init__(self, name: str):
                runtime.logger_constructions.append(name)
                if name in runtime.failing_loggers:
                    raise ValueError(f"Unknown log endpoint: {name}")
                self.name = name

            def log(self, message: str) -> None:
                runtime.logs.setdefault(self.name, []).append(message)

        logger_module = types.ModuleType("fastly_compute.logger")
        logger_module.Logger = Logger

        class NativeCacheOverride:
            def __init__(self, mode: str, init: dict[str, Any] | None = None):
                self.mode = mode
                self.init = init
                runtime.overrides.append(self)

        cache_module = types.ModuleType("fastly_compute.cache_override")
        cache_module.CacheOverride = NativeCacheOverride

        async def native_fetch(resource: Any, options: dict[str, Any]) -> Response:
            runtime.fetches.append((resource, options))
            return Response("fastly-origin", status=200, headers={"x-served-by": "fastly"})

        fetch_module_ = types.ModuleType("fastly_compute.fetch")
        fetch_module_.fetch = native_fetch

        package = types.ModuleType("fastly_compute")
        package.__path__ = []  # type: ignore[attr-defined]

        return {
            "fastly_compute": package,
            "fastly_compute.env": env_module,
            "fastly_compute.secret_store": secret_module,
            "fastly_compute.logger": logger_module,
            "fastly_compute.cache_override": cache_module,
            "fastly_compute.fetch": fetch_module_,
        }


@pytest.fixture
def fastly(monkeypatch) -> FakeFastly:
    """Install a fake Fastly runtime for the duration of the test."""
    runtime = FakeFastly(
        env_vars={
            "FASTLY_CUSTOMER_ID": "cust1",
            "FASTLY_SERVICE_ID": "svc42",
            "FASTLY_SERVICE_VERSION": "7",
            "FASTLY_TRACE_ID": "trace-abc",
            "FASTLY_POP": "FRA",
        },
    )
    for name, module in runtime.build_modules().items():
        monkeypatch.setitem(sys.modules, name, module)
    return runtime


class _RaisingLoader(importlib.abc.Loader):
    def create_module(self, spec):
        return None

    def exec_module(self, module):
        raise RuntimeError(f"{module.__name__} failed to initialize")


class _RaisingFinder(importlib.abc.MetaPathFinder):
    def __init__(self, package: str):
        self.package = package

    def find_spec(self, fullname, path, target=None):
        if fullname == self.package or fullname.startswith(f"{self.package}."):
            return importlib.util.spec_from_loader(fullname, _RaisingLoader())
        return None


@pytest.fixture
def broken_fastly(monkeypatch) -> None:
    """Make every ``fastly_compute`` module raise while it initializes."""
    for name in list(sys.modules):
        if name == "fastly_compute" or name.startswith("fastly_compute."):
            monkeypatch.delitem(sys.modules, name)
    monkeypatch.setattr(sys, "meta_path", [_RaisingFinder("fastly_compute"), *sys.meta_path])


# =============================================================================
# Cloudflare fakes
# =============================================================================


class FakeKVNamespace:
    """Cloudflare KV namespace with an async ``get``."""

    def __init__(self, values: dict[str, str] | None = None, fail: bool = False):
        self.values = values or {}
        self.fail = fail
        self.lookups: list[str] = []

    async def get(self, key: str) -> str | None:
        self.lookups.append(key)
        if self.fail:
            raise RuntimeError("KV unavailable")
        return self.values.get(key)


@pytest.fixture
def kv_namespace() -> FakeKVNamespace:
    return FakeKVNamespace({"API_KEY": "kv-api-key", "SHARED": "from-kv"})


# =============================================================================
# Transports
# =============================================================================


class RecordingTransport:
    """Transport that records calls and returns a canned response."""

    def __init__(self, response: Response | None = None):
        self.calls: list[tuple[Any, dict[str, Any]]] = []
        self.response = response or Response("ok")

    async def __call__(self, resource: Any, options: dict[str, Any]) -> Response:
        self.calls.append((resource, options))
        return self.response


@pytest.fixture
def transport() -> RecordingTransport:
    recording = RecordingTransport()
    set_transport(recording)
    return recording


# =============================================================================
# Request factories
# =============================================================================


def make_request(
    url: str = "https://example.com/",
    method: str = "GET",
    headers: dict[str, str] | None = None,
    cf: dict[str, Any] | None = None,
    body: str | bytes | None = None,
) -> Request:
    """Create a Request."""
    return Request(url, method=method, headers=headers or {}, body=body, cf=cf)


def make_cloudflare_event(
    url: str = "https://helix-services--my-action.example.workers.dev/api/items",
    headers: dict[str, str] | None = None,
    env: Any = None,
    colo: str = "SFO",
) -> FetchEvent:
    """Create a FetchEvent carrying Cloudflare routing metadata."""
    return FetchEvent(make_request(url, headers=headers, cf={"colo": colo}), env)


def make_fastly_event(url: str = "https://example.edgecompute.app/api/items", headers: dict[str, str] | None = None) -> FetchEvent:
    """Create a FetchEvent without Cloudflare metadata."""
    return FetchEvent(make_request(url, headers=headers))


@pytest.fixture
def console_lines() -> list[str]:
    return []


class NativeRequest:
    """Runtime request object: attribute access only, JS-style headers."""

    class Headers:
        def __init__(self, values: dict[str, str]):
            self._values = values

        def entries(self):
            return iter(self._values.items())

    def __init__(self, url: str, method: str = "GET", headers: dict[str, str] | None = None, cf: Any = None):
        self.url = url
        self.method = method
        self.headers = self.Headers(headers or {})
        if cf is not None:
            self.cf = cf
