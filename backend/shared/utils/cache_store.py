"""
In-memory cache regions for the feed.

Four independent regions: current matches, upcoming matches, series list
and match details (keyed by match id). Entries are never evicted by age;
staleness only tells the caller a refresh is worth attempting. Nothing
survives a restart.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from shared.models.domain import Match, MatchDetail
from shared.models.enums import Region
from shared.utils.clock import Clock, SystemClock, to_iso
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHE_ENTRIES

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    payload: T
    fetched_at: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.fetched_at)

    def is_stale(self, now: float, ttl_s: float) -> bool:
        return self.age(now) >= ttl_s


class CacheStore:
    """Get/set per region; set stamps fetched_at with the current time."""

    def __init__(self, clock: Clock | None = None, match_details_ttl_s: float = 300.0, series_ttl_s: float = 300.0) -> None:
        self._clock = clock or SystemClock()
        self.match_details_ttl_s = match_details_ttl_s
        self.series_ttl_s = series_ttl_s
        self._current: Optional[CacheEntry[list[Match]]] = None
        self._upcoming: Optional[CacheEntry[list[Match]]] = None
        self._series: Optional[CacheEntry[dict[str, Any]]] = None
        self._match_details: dict[str, CacheEntry[MatchDetail]] = {}

    def now(self) -> float:
        return self._clock.now()

    # ── List regions ────────────────────────────────────────────────────

    def get_current(self) -> list[Match]:
        return list(self._current.payload) if self._current else []

    def set_current(self, matches: list[Match]) -> None:
        self._current = CacheEntry(list(matches), self._clock.now())
        CACHE_ENTRIES.labels(region=Region.CURRENT.value).set(len(matches))

    def get_upcoming(self) -> list[Match]:
        return list(self._upcoming.payload) if self._upcoming else []

    def set_upcoming(self, matches: list[Match]) -> None:
        self._upcoming = CacheEntry(list(matches), self._clock.now())
        CACHE_ENTRIES.labels(region=Region.UPCOMING.value).set(len(matches))

    def get_list(self, region: Region) -> list[Match]:
        if region == Region.CURRENT:
            return self.get_current()
        if region == Region.UPCOMING:
            return self.get_upcoming()
        raise ValueError(f"{region.value} is not a list region")

    def set_list(self, region: Region, matches: list[Match]) -> None:
        if region == Region.CURRENT:
            self.set_current(matches)
        elif region == Region.UPCOMING:
            self.set_upcoming(matches)
        else:
            raise ValueError(f"{region.value} is not a list region")

    def list_fetched_at(self, region: Region) -> Optional[float]:
        entry = self._current if region == Region.CURRENT else self._upcoming
        return entry.fetched_at if entry else None

    # ── Series ──────────────────────────────────────────────────────────

    def get_series_entry(self) -> Optional[CacheEntry[dict[str, Any]]]:
        return self._series

    def set_series(self, payload: dict[str, Any]) -> None:
        self._series = CacheEntry(payload, self._clock.now())
        CACHE_ENTRIES.labels(region=Region.SERIES.value).set(1)

    # ── Match details ───────────────────────────────────────────────────

    def get_match_detail(self, match_id: str) -> Optional[CacheEntry[MatchDetail]]:
        return self._match_details.get(match_id)

    def set_match_detail(self, match_id: str, detail: MatchDetail) -> None:
        self._match_details[match_id] = CacheEntry(detail, self._clock.now())
        CACHE_ENTRIES.labels(region=Region.MATCH_DETAILS.value).set(len(self._match_details))

    # ── Maintenance / diagnostics ───────────────────────────────────────

    def clear(self) -> None:
        self._current = None
        self._upcoming = None
        self._series = None
        self._match_details.clear()
        for region in Region:
            CACHE_ENTRIES.labels(region=region.value).set(0)
        logger.info("cache_cleared")

    def status(self) -> dict[str, Any]:
        now = self._clock.now()

        def _list_status(entry: Optional[CacheEntry[list[Match]]]) -> dict[str, Any]:
            return {
                "hasData": bool(entry and entry.payload),
                "dataLength": len(entry.payload) if entry else 0,
                "lastFetch": to_iso(entry.fetched_at) if entry else None,
                "ageSeconds": round(entry.age(now), 1) if entry else None,
            }

        return {
            Region.CURRENT.value: _list_status(self._current),
            Region.UPCOMING.value: _list_status(self._upcoming),
            "matchDetails": {
                "cachedMatches": len(self._match_details),
                "staleMatches": sum(
                    1 for e in self._match_details.values() if e.is_stale(now, self.match_details_ttl_s)
                ),
                "cacheDuration": f"{self.match_details_ttl_s / 60:g} minutes",
            },
            Region.SERIES.value: {
                "hasData": self._series is not None,
                "lastFetch": to_iso(self._series.fetched_at) if self._series else None,
                "isStale": self._series.is_stale(now, self.series_ttl_s) if self._series else None,
            },
        }
