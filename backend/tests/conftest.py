"""
Shared fakes for the feed tests: a manual clock and a scripted upstream.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Union

import pytest

from shared.errors import TransportError
from shared.utils.cache_store import CacheStore
from shared.utils.logging import ErrorLogThrottle

from ingest.key_pool import KeyPool
from ingest.rotation import RotatingFetcher
from ingest.throttle import ThrottleGate

START_TS = 1_700_000_000.0

Response = Union[dict[str, Any], BaseException, Callable[[dict[str, Any], str], Any]]


class FakeClock:
    """Time only moves when advanced or slept on."""

    def __init__(self, start: float = START_TS) -> None:
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += max(0.0, seconds)
        await asyncio.sleep(0)


class FakeUpstream:
    """
    Scripted upstream client.

    Each endpoint holds a queue of responses; the last one repeats. A
    response is a payload dict, an exception to raise, or a callable
    ``(params, credential) -> payload``.
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self._clock = clock
        self._responses: dict[str, list[Response]] = {}
        self.calls: list[tuple[str, dict[str, Any], str]] = []
        self.call_times: list[float] = []

    def script(self, endpoint: str, *responses: Response) -> "FakeUpstream":
        self._responses[endpoint] = list(responses)
        return self

    def calls_to(self, endpoint: str) -> list[tuple[str, dict[str, Any], str]]:
        return [c for c in self.calls if c[0] == endpoint]

    async def call(self, endpoint: str, params: dict[str, Any] | None, credential: str) -> Any:
        params = dict(params or {})
        self.calls.append((endpoint, params, credential))
        if self._clock is not None:
            self.call_times.append(self._clock.now())
        await asyncio.sleep(0)

        queue = self._responses.get(endpoint)
        if not queue:
            raise TransportError(endpoint, "no scripted response")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response) and not isinstance(response, BaseException):
            response = response(params, credential)
        if isinstance(response, BaseException):
            raise response
        return response


def success(data: Any) -> dict[str, Any]:
    return {"status": "success", "data": data}


def failure(reason: str) -> dict[str, Any]:
    return {"status": "failure", "reason": reason}


def raw_match(match_id: str, started: bool, ended: bool = False, **extra: Any) -> dict[str, Any]:
    return {
        "id": match_id,
        "name": f"Match {match_id}",
        "teams": ["India", "Australia"],
        "matchStarted": started,
        "matchEnded": ended,
        **extra,
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def upstream(clock: FakeClock) -> FakeUpstream:
    return FakeUpstream(clock)


@pytest.fixture
def log_throttle(clock: FakeClock) -> ErrorLogThrottle:
    return ErrorLogThrottle(300.0, now=clock.now)


@pytest.fixture
def key_pool(clock: FakeClock) -> KeyPool:
    return KeyPool(["key-alpha-0001", "key-bravo-0002"], clock=clock)


@pytest.fixture
def gate(clock: FakeClock) -> ThrottleGate:
    return ThrottleGate(10.0, clock=clock)


@pytest.fixture
def fetcher(key_pool: KeyPool, gate: ThrottleGate, upstream: FakeUpstream) -> RotatingFetcher:
    return RotatingFetcher(key_pool, gate, upstream)


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore:
    return CacheStore(clock, match_details_ttl_s=300.0, series_ttl_s=300.0)
