"""
Tests for request dispatch.
"""

import json
import logging
import types

import pytest
from conftest import NativeRequest, make_cloudflare_event, make_fastly_event, make_request

from edge_adapter import create_entrypoint, dispatch
from edge_adapter.platform import Platform, current_platform
from edge_adapter.types import FetchEvent, Response


async def echo_handler(request, context):
    return Response.json_response(
        {
            "runtime": context.runtime.name,
            "region": context.runtime.region,
            "fqn": context.func.fqn,
            "suffix": context.path_info.suffix,
            "txid": context.invocation.transaction_id,
        }
    )


class TestDispatch:
    """Test the dispatcher."""

    @pytest.mark.asyncio
    async def test_unknown_platform(self):
        response = await dispatch(make_fastly_event(), echo_handler)

        assert response.status == 500
        assert response.text() == "Unknown platform"

    @pytest.mark.asyncio
    async def test_cloudflare_request(self):
        response = await dispatch(make_cloudflare_event(headers={"x-transaction-id": "tx-1"}), echo_handler)

        assert response.status == 200
        assert response.json() == {
            "runtime": "cloudflare-workers",
            "region": "SFO",
            "fqn": "helix-services--my-action",
            "suffix": "/api/items",
            "txid": "tx-1",
        }
        assert current_platform() is Platform.CLOUDFLARE

    @pytest.mark.asyncio
    async def test_fastly_request(self, fastly):
        response = await dispatch(make_fastly_event(), echo_handler)

        assert response.status == 200
        body = response.json()
        assert body["runtime"] == "compute-at-edge"
        assert body["region"] == "FRA"
        assert body["fqn"] == "cust1-svc42-7"

    @pytest.mark.asyncio
    async def test_sync_handler(self):
        def handler(request, context):
            return Response(f"hello {request.method}")

        response = await dispatch(make_cloudflare_event(), handler)

        assert response.text() == "hello GET"

    @pytest.mark.asyncio
    async def test_handler_error(self, caplog):
        async def handler(request, context):
            raise ValueError("database unreachable")

        with caplog.at_level(logging.ERROR, logger="edge_adapter"):
            response = await dispatch(make_cloudflare_event(), handler)

        assert response.status == 500
        assert response.text() == "Error: database unreachable"
        assert "Traceback" not in response.text()
        assert "Handler failed: database unreachable" in caplog.text

    @pytest.mark.asyncio
    async def test_sync_handler_error(self):
        def handler(request, context):
            raise KeyError("missing")

        response = await dispatch(make_cloudflare_event(), handler)

        assert response.status == 500
        assert response.text().startswith("Error: ")

    @pytest.mark.asyncio
    async def test_logs_flushed_before_return(self, fastly):
        async def handler(request, context):
            context.attributes["loggers"] = ["splunk"]
            context.log.info({"step": "handled"})
            return Response("ok")

        response = await dispatch(make_fastly_event(), handler)

        assert response.text() == "ok"
        assert json.loads(fastly.logs["splunk"][0])["step"] == "handled"

    @pytest.mark.asyncio
    async def test_logs_flushed_on_error(self, fastly):
        async def handler(request, context):
            context.attributes["loggers"] = ["splunk"]
            context.log.error("about to fail")
            raise RuntimeError("failed")

        response = await dispatch(make_fastly_event(), handler)

        assert response.status == 500
        assert len(fastly.logs["splunk"]) == 1

    @pytest.mark.asyncio
    async def test_secrets_in_handler(self, fastly):
        fastly.stores = {"action_secrets": {}, "package_secrets": {"API_KEY": "pkg-key"}}

        async def handler(request, context):
            return Response(await context.env.get("API_KEY"))

        response = await dispatch(make_fastly_event(), handler)

        assert response.text() == "pkg-key"

    @pytest.mark.asyncio
    async def test_non_response_results(self):
        async def returns_dict(request, context):
            return {"a": 1}

        async def returns_none(request, context):
            return None

        dict_response = await dispatch(make_cloudflare_event(), returns_dict)
        none_response = await dispatch(make_cloudflare_event(), returns_none)

        assert dict_response.json() == {"a": 1}
        assert none_response.status == 204

    @pytest.mark.asyncio
    async def test_unserializable_result(self, caplog):
        """A result that cannot be coerced fails like a raising handler."""

        async def handler(request, context):
            return object()

        with caplog.at_level(logging.ERROR, logger="edge_adapter"):
            response = await dispatch(make_cloudflare_event(), handler)

        assert response.status == 500
        assert response.text().startswith("Error: ")
        assert "Handler failed" in caplog.text

    @pytest.mark.asyncio
    async def test_broken_fastly_module(self, broken_fastly):
        response = await dispatch(make_fastly_event(), echo_handler)

        assert response.status == 500
        assert response.text() == "Unknown platform"

    @pytest.mark.asyncio
    async def test_detection_error(self, monkeypatch, caplog):
        async def failing_detect(event):
            raise RuntimeError("loader exploded")

        monkeypatch.setattr("edge_adapter.dispatcher.detect", failing_detect)

        with caplog.at_level(logging.ERROR, logger="edge_adapter"):
            response = await dispatch(make_cloudflare_event(), echo_handler)

        assert response.status == 500
        assert response.text() == "Error: Platform detection failed: loader exploded"
        assert "Platform detection failed" in caplog.text

    @pytest.mark.asyncio
    async def test_request_without_url(self):
        response = await dispatch(FetchEvent(object()), echo_handler)

        assert response.status == 500
        assert "missing url" in response.text()


class TestEntrypoint:
    """Test create_entrypoint."""

    @pytest.mark.asyncio
    async def test_request_and_env(self):
        async def handler(request, context):
            return Response(await context.env.get("GREETING"))

        on_fetch = create_entrypoint(handler)
        request = make_request("https://pkg--fn.example.workers.dev/", cf={"colo": "AMS"})

        response = await on_fetch(request, {"GREETING": "hallo"})

        assert response.text() == "hallo"
        assert on_fetch.__name__ == "handler"

    @pytest.mark.asyncio
    async def test_event(self):
        on_fetch = create_entrypoint(echo_handler)

        response = await on_fetch(FetchEvent(make_request(cf={"colo": "AMS"})))

        assert response.json()["region"] == "AMS"

    @pytest.mark.asyncio
    async def test_native_cloudflare_request(self):
        async def handler(request, context):
            return Response.json_response(
                {
                    "runtime": context.runtime.name,
                    "region": context.runtime.region,
                    "fqn": context.func.fqn,
                    "request_id": context.invocation.request_id,
                    "native": request.native is native,
                }
            )

        native = NativeRequest(
            "https://helix-services--my-action.example.workers.dev/api/items",
            headers={"CF-Ray": "ray-1"},
            cf=types.SimpleNamespace(colo="LHR"),
        )

        response = await create_entrypoint(handler)(native, {})

        assert response.status == 200
        assert response.json() == {
            "runtime": "cloudflare-workers",
            "region": "LHR",
            "fqn": "helix-services--my-action",
            "request_id": "ray-1",
            "native": True,
        }

    @pytest.mark.asyncio
    async def test_native_fastly_request(self, fastly):
        on_fetch = create_entrypoint(echo_handler)

        response = await on_fetch(NativeRequest("https://example.edgecompute.app/api/items", method="post"))

        assert response.status == 200
        assert response.json()["runtime"] == "compute-at-edge"

    @pytest.mark.asyncio
    async def test_native_request_without_platform(self):
        on_fetch = create_entrypoint(echo_handler)

        response = await on_fetch(NativeRequest("https://example.com/"))

        assert response.status == 500
        assert response.text() == "Unknown platform"
