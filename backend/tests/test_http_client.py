"""
Upstream client tests against httpx.MockTransport.

Run: pytest backend/tests/test_http_client.py -v
"""
from __future__ import annotations

import httpx
import pytest

from shared.errors import RateLimited, TransportError, classify_payload, UpstreamFailure
from shared.utils.http_client import UpstreamClient
from shared.utils.logging import ErrorLogThrottle


def _client(handler) -> UpstreamClient:
    return UpstreamClient(
        "https://cricket.example/v1",
        timeout_s=5.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_call_sends_apikey_and_params() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "success", "data": []})

    client = _client(handler)
    await client.start()
    try:
        payload = await client.call("matches", {"offset": 0}, "secret-key")
    finally:
        await client.close()

    assert payload == {"status": "success", "data": []}
    assert seen[0].url.path == "/v1/matches"
    assert seen[0].url.params["apikey"] == "secret-key"
    assert seen[0].url.params["offset"] == "0"


@pytest.mark.asyncio
async def test_http_429_raises_rate_limited() -> None:
    client = _client(lambda request: httpx.Response(429, json={}))
    await client.start()
    try:
        with pytest.raises(RateLimited):
            await client.call("matches", None, "k")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_server_error_raises_transport_error() -> None:
    client = _client(lambda request: httpx.Response(502, text="bad gateway"))
    await client.start()
    try:
        with pytest.raises(TransportError) as info:
            await client.call("matches", None, "k")
    finally:
        await client.close()
    assert info.value.status_code == 502


@pytest.mark.asyncio
async def test_timeout_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler)
    await client.start()
    try:
        with pytest.raises(TransportError):
            await client.call("match_info", {"id": "1"}, "k")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_connection_reset_is_not_logged() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno 104] Connection reset by peer", request=request)

    throttle = ErrorLogThrottle(300.0)
    client = UpstreamClient(
        "https://cricket.example/v1",
        transport=httpx.MockTransport(handler),
        log_throttle=throttle,
    )
    await client.start()
    try:
        with pytest.raises(TransportError) as info:
            await client.call("matches", None, "k")
    finally:
        await client.close()
    assert not throttle.should_log(info.value.error_key, info.value.__cause__)


@pytest.mark.asyncio
async def test_invalid_json_raises_transport_error() -> None:
    client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))
    await client.start()
    try:
        with pytest.raises(TransportError):
            await client.call("matches", None, "k")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_call_before_start_raises() -> None:
    client = _client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(RuntimeError):
        await client.call("matches", None, "k")


# ── Outcome classification ──────────────────────────────────────────────

@pytest.mark.parametrize("reason", ["Blocked for 15 minutes", "hits LIMIT", "quota exceeded"])
def test_rate_limit_reasons(reason: str) -> None:
    with pytest.raises(RateLimited):
        classify_payload("matches", {"status": "failure", "reason": reason}, "k")


def test_other_failure_reason() -> None:
    with pytest.raises(UpstreamFailure):
        classify_payload("matches", {"status": "failure", "reason": "Invalid API key"})


def test_success_passes_through() -> None:
    payload = {"status": "success", "data": [1]}
    assert classify_payload("matches", payload) is payload


def test_error_log_throttle_window() -> None:
    now = [0.0]
    throttle = ErrorLogThrottle(300.0, now=lambda: now[0])
    assert throttle.should_log("transport:matches:502")
    assert not throttle.should_log("transport:matches:502")
    assert throttle.should_log("transport:matches:503")
    now[0] = 300.0
    assert throttle.should_log("transport:matches:502")
