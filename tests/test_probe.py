"""Tests for single-endpoint reachability probes."""

from __future__ import annotations

import asyncio

import httpx

from app.core.services.connectivity.error_classifier import FailureKind
from app.core.services.connectivity.probe import Endpoint, Probe


def _probe(handler) -> Probe:
    return Probe(default_timeout=1.0, transport=httpx.MockTransport(handler))


def test_probe_success_on_2xx():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["cache"] = request.headers.get("cache-control")
        return httpx.Response(204)

    result = asyncio.run(_probe(handler).probe(Endpoint(name="g", url="https://probe.test/generate_204")))

    assert result.ok is True
    assert result.status_code == 204
    assert result.kind is None
    assert seen["cache"] == "no-cache"


def test_probe_non_2xx_is_failure_with_kind():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    result = asyncio.run(_probe(handler).probe(Endpoint(name="x", url="https://probe.test/")))

    assert result.ok is False
    assert result.status_code == 503
    assert result.kind == FailureKind.TRANSIENT


def test_probe_connection_error_does_not_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    result = asyncio.run(_probe(handler).probe(Endpoint(name="x", url="https://probe.test/")))

    assert result.ok is False
    assert result.kind == FailureKind.TRANSIENT
    assert "ConnectError" in result.error


def test_probe_times_out_within_bound():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    async def run():
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        result = await _probe(handler).probe(Endpoint(name="slow", url="https://probe.test/"), timeout=0.05)
        return result, loop.time() - t0

    result, elapsed = asyncio.run(run())

    assert result.ok is False
    assert result.kind == FailureKind.TRANSIENT
    assert "timeout" in result.error
    assert elapsed < 1.0


def test_endpoint_timeout_used_when_none_given():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    endpoint = Endpoint(name="slow", url="https://probe.test/", timeout=0.05)
    result = asyncio.run(_probe(handler).probe(endpoint))

    assert result.ok is False
    assert result.error.startswith("timeout")
