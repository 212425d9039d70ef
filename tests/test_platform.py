"""
Tests for platform detection and capability loading.
"""

import asyncio
import logging
import sys

import pytest
from conftest import make_cloudflare_event, make_fastly_event, make_request

from edge_adapter.capabilities import (
    CapabilityLoader,
    get_cache_override_class,
    get_fastly_env,
    get_loader,
    get_logger_class,
    get_secret_store_class,
)
from edge_adapter.errors import CapabilityUnavailableError
from edge_adapter.platform import Platform, current_platform, detect, reset_platform_cache
from edge_adapter.types import FetchEvent


class TestDetect:
    """Test runtime classification."""

    @pytest.mark.asyncio
    async def test_cloudflare_from_request_metadata(self):
        """Inline cf metadata means Cloudflare without touching native modules."""
        platform = await detect(make_cloudflare_event())

        assert platform is Platform.CLOUDFLARE
        assert platform.value == "cloudflare-workers"
        assert get_loader().attempts == {}

    @pytest.mark.asyncio
    async def test_fastly_from_env_module(self, fastly):
        """A loadable env module means Fastly."""
        platform = await detect(make_fastly_event())

        assert platform is Platform.FASTLY
        assert platform.value == "compute-at-edge"

    @pytest.mark.asyncio
    async def test_unknown_platform(self):
        """No signal: None, never a guess."""
        assert await detect(make_fastly_event()) is None
        assert current_platform() is None

    @pytest.mark.asyncio
    async def test_empty_cloudflare_metadata(self):
        """An empty cf mapping is still Cloudflare metadata."""
        assert await detect(FetchEvent(make_request(cf={}))) is Platform.CLOUDFLARE

    @pytest.mark.asyncio
    async def test_module_failing_to_initialize(self, broken_fastly, caplog):
        """A Fastly module that raises on import counts as absent."""
        with caplog.at_level(logging.WARNING, logger="edge_adapter"):
            assert await detect(make_fastly_event()) is None

        assert get_loader().attempts["fastly_compute.env"] == 1
        assert "failed to initialize" in caplog.text

    @pytest.mark.asyncio
    async def test_cloudflare_wins_over_fastly_module(self, fastly):
        assert await detect(make_cloudflare_event()) is Platform.CLOUDFLARE

    @pytest.mark.asyncio
    async def test_detection_is_cached(self, fastly):
        """Repeated detection returns the same value without a second load attempt."""
        first = await detect(make_fastly_event())
        second = await detect(make_cloudflare_event())

        assert first is second is Platform.FASTLY
        assert current_platform() is Platform.FASTLY
        assert get_loader().attempts["fastly_compute.env"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_detection_loads_once(self, fastly):
        results = await asyncio.gather(*(detect(make_fastly_event()) for _ in range(5)))

        assert set(results) == {Platform.FASTLY}
        assert get_loader().attempts["fastly_compute.env"] == 1

    @pytest.mark.asyncio
    async def test_miss_is_cached_per_process(self, monkeypatch):
        """A failed module load is not retried until a cold start."""
        await detect(make_fastly_event())
        await detect(make_fastly_event())

        assert get_loader().attempts["fastly_compute.env"] == 1

    @pytest.mark.asyncio
    async def test_reset_platform_cache(self):
        await detect(make_cloudflare_event())
        reset_platform_cache()

        assert current_platform() is None


class TestCapabilityLoader:
    """Test optional module loading."""

    @pytest.mark.asyncio
    async def test_load_missing_module(self):
        loader = CapabilityLoader()

        assert await loader.load("fastly_compute.env") is None
        assert loader.is_loaded("fastly_compute.env")

    @pytest.mark.asyncio
    async def test_require_missing_module(self):
        loader = CapabilityLoader()

        with pytest.raises(CapabilityUnavailableError, match="Cannot find module 'fastly_compute.env'"):
            await loader.require("fastly_compute.env")

    @pytest.mark.asyncio
    async def test_load_present_module(self, fastly):
        loader = CapabilityLoader()

        module = await loader.load("fastly_compute.env")

        assert module is sys.modules["fastly_compute.env"]
        assert module.env("FASTLY_POP") == "FRA"

    @pytest.mark.asyncio
    async def test_reset(self, fastly):
        loader = CapabilityLoader()
        await loader.load("fastly_compute.env")
        loader.reset()

        assert not loader.is_loaded("fastly_compute.env")
        assert loader.attempts == {}

    @pytest.mark.asyncio
    async def test_named_capabilities_absent(self):
        """Off Fastly the native classes resolve to None."""
        assert await get_secret_store_class() is None
        assert await get_logger_class() is None
        assert await get_cache_override_class() is None

        with pytest.raises(CapabilityUnavailableError):
            await get_fastly_env()

    @pytest.mark.asyncio
    async def test_named_capabilities_present(self, fastly):
        assert await get_secret_store_class() is sys.modules["fastly_compute.secret_store"].SecretStore
        assert await get_logger_class() is sys.modules["fastly_compute.logger"].Logger
        assert (await get_fastly_env()).env("FASTLY_SERVICE_ID") == "svc42"
