"""API route tests. The lifespan is disabled and a runtime with a scripted upstream is injected."""
from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from shared.config import Settings
from shared.errors import TransportError
from api.app import create_app
from api.dependencies import init_dependencies
from ingest.runtime import FeedRuntime, build_runtime

from conftest import FakeClock, FakeUpstream, failure, raw_match, success


def _runtime(clock: FakeClock, upstream: FakeUpstream, keys: str = "key-alpha-0001,key-bravo-0002") -> FeedRuntime:
    settings = Settings(cricket_api_key=keys, scheduler_enabled=False, metrics_enabled=False)
    return build_runtime(settings, clock=clock, client=upstream)


@pytest.fixture
def runtime(clock: FakeClock, upstream: FakeUpstream) -> FeedRuntime:
    return _runtime(clock, upstream)


@pytest.fixture
def client(runtime: FeedRuntime) -> Iterator[TestClient]:
    """Test client with lifespan disabled and the fake-backed runtime injected."""
    app = create_app(use_lifespan=False)
    init_dependencies(runtime)
    with TestClient(app) as c:
        yield c
    init_dependencies(None)


def test_health_returns_ok(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["service"] == "api"
    assert data["apiKeys"] == 2


def test_health_before_startup() -> None:
    init_dependencies(None)
    with TestClient(create_app(use_lifespan=False)) as c:
        assert c.get("/health").json()["status"] == "starting"


def test_request_id_header_echoed(client: TestClient) -> None:
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"


def test_current_matches_envelope(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.script("matches", success([raw_match("live", started=True, dateTimeGMT="2024-01-01T10:00:00")]))
    r = client.get("/v1/cricket/matches/current")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"][0]["id"] == "live"
    assert body["data"][0]["matchStarted"] is True
    assert body["data"][0]["dateTimeGMT"] == "2024-01-01T10:00:00"
    assert r.headers["Cache-Control"] == "public, s-maxage=30, stale-while-revalidate=60"


def test_upcoming_matches_empty_on_failure(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.script("matches", TransportError("matches", "timed out"))
    r = client.get("/v1/cricket/matches/upcoming")
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": []}


def test_all_matches(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.script("matches", success([raw_match("live", started=True), raw_match("next", started=False)]))
    body = client.get("/v1/cricket/matches").json()
    assert [m["id"] for m in body["data"]["live"]] == ["live"]
    assert [m["id"] for m in body["data"]["upcoming"]] == ["next"]
    assert "message" not in body


def test_all_matches_reports_rate_limit(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.script("matches", failure("API hits limit, blocked"))
    body = client.get("/v1/cricket/matches").json()
    assert body["data"] == {"live": [], "upcoming": []}
    assert body["message"].startswith("API rate limited")


def test_match_details(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.script("match_info", success({"id": "m1", "name": "A vs B", "teams": ["A", "B"], "venue": "Lord's"}))
    upstream.script("match_scorecard", success(None))
    upstream.script("matchScorecard", success(None))
    r = client.get("/v1/cricket/matches/m1")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["id"] == "m1"
    assert data["venue"] == "Lord's"
    assert data["team1Squad"] == []
    assert r.headers["Cache-Control"] == "public, s-maxage=300, stale-while-revalidate=600"


def test_match_details_failure_returns_500(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.script("match_info", TransportError("match_info", "timed out"))
    r = client.get("/v1/cricket/matches/m1")
    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Failed to fetch match details"


def test_missing_keys_returns_503(clock: FakeClock, upstream: FakeUpstream) -> None:
    app = create_app(use_lifespan=False)
    init_dependencies(_runtime(clock, upstream, keys=""))
    try:
        with TestClient(app) as c:
            r = c.get("/v1/cricket/series")
    finally:
        init_dependencies(None)
    assert r.status_code == 503
    assert r.json()["success"] is False
    assert r.json()["message"] == "Failed to fetch series list"


def test_series(client: TestClient, upstream: FakeUpstream) -> None:
    series = success([{"id": "s1", "name": "Ashes"}])
    upstream.script("series", series)
    r = client.get("/v1/cricket/series")
    assert r.status_code == 200
    assert r.json()["data"] == series
    assert r.headers["Cache-Control"] == "public, s-maxage=600, stale-while-revalidate=1200"


def test_cache_status_not_cached(client: TestClient) -> None:
    r = client.get("/v1/cricket/cache-status")
    assert r.status_code == 200
    assert "no-store" in r.headers["Cache-Control"]
    data = r.json()["data"]
    assert data["apiKeys"]["keys"][0]["key"] == "key-alpha-..."
    assert data["throttling"]["throttleDelay"] == "10s"


def test_cache_refresh(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.script("matches", success([raw_match("live", started=True), raw_match("next", started=False)]))
    r = client.post("/v1/cricket/cache-refresh")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["current"]["dataLength"] == 1
    assert body["data"]["upcoming"]["dataLength"] == 1
