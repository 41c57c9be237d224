"""
Public read surface of the feed.

Every read is cache-first; the upstream pipeline only runs when a region is
empty (lists), stale (series) or missing an id (match details). List reads
never fail: their floor is an empty list.
"""
from __future__ import annotations

import asyncio
import math
from typing import Any, Optional

from shared.errors import error_key
from shared.models.domain import Match, MatchDetail
from shared.models.enums import Endpoint
from shared.utils.cache_store import CacheStore
from shared.utils.logging import ErrorLogThrottle, get_logger
from shared.utils.shapes import MATCH_LIST_SHAPES, extract_list

from ingest.enrichment.enricher import MatchEnricher
from ingest.key_pool import KeyPool
from ingest.rotation import RotatingFetcher
from ingest.throttle import ThrottleGate
from scheduler.service import RefreshScheduler, RegionRefresher

logger = get_logger(__name__)


class CricketFeed:
    """The four read operations plus diagnostics, as consumed by the API layer."""

    def __init__(
        self,
        cache: CacheStore,
        scheduler: RefreshScheduler,
        fetcher: RotatingFetcher,
        enricher: MatchEnricher,
        key_pool: KeyPool,
        gate: ThrottleGate,
        log_throttle: ErrorLogThrottle | None = None,
    ) -> None:
        self._cache = cache
        self._scheduler = scheduler
        self._fetcher = fetcher
        self._enricher = enricher
        self._pool = key_pool
        self._gate = gate
        self._log_throttle = log_throttle or ErrorLogThrottle()
        self._series_task: Optional[asyncio.Task[dict[str, Any]]] = None

    # ── Matches ─────────────────────────────────────────────────────────

    async def get_current_matches(self) -> list[Match]:
        return await self._list_region(self._scheduler.current)

    async def get_upcoming_matches(self) -> list[Match]:
        return await self._list_region(self._scheduler.upcoming)

    async def _list_region(self, refresher: RegionRefresher) -> list[Match]:
        cached = self._cache.get_list(refresher.region)
        if cached:
            return cached

        logger.info("cache_empty_fetching_on_demand", region=refresher.region.value)
        try:
            result = await refresher.refresh()
        except Exception as exc:
            logger.error("on_demand_fetch_failed", region=refresher.region.value, error=str(exc))
            return []
        if result is None:
            return self._cache.get_list(refresher.region)
        return result

    async def get_all_matches(self) -> dict[str, list[Match]]:
        """Live and upcoming together; both halves default to empty lists."""
        try:
            live, upcoming = await asyncio.gather(
                self.get_current_matches(),
                self.get_upcoming_matches(),
            )
        except Exception as exc:
            logger.error("all_matches_fetch_failed", error=str(exc))
            return {"live": [], "upcoming": []}
        return {
            "live": extract_list(live, MATCH_LIST_SHAPES),
            "upcoming": extract_list(upcoming, MATCH_LIST_SHAPES),
        }

    # ── Match details ───────────────────────────────────────────────────

    async def get_match_details(self, match_id: str) -> MatchDetail:
        return await self._enricher.enrich(match_id)

    # ── Series ──────────────────────────────────────────────────────────

    async def get_series_list(self) -> dict[str, Any]:
        """
        Series payload, refreshed once the cached copy is older than the TTL.

        Raises:
            FeedError: Only when the refresh failed and nothing was ever cached.
        """
        entry = self._cache.get_series_entry()
        if entry is not None and not entry.is_stale(self._cache.now(), self._cache.series_ttl_s):
            return entry.payload

        if self._series_task is None:
            self._series_task = asyncio.create_task(self._refresh_series())
            self._series_task.add_done_callback(self._clear_series_task)
        elif entry is not None:
            return entry.payload

        try:
            return await asyncio.shield(self._series_task)
        except Exception as exc:
            entry = self._cache.get_series_entry()
            if entry is not None:
                if self._log_throttle.should_log(f"series:{error_key(exc)}", exc):
                    logger.warning("series_refresh_failed_serving_cache", error=str(exc))
                return entry.payload
            logger.error("series_fetch_failed", error=str(exc))
            raise

    def _clear_series_task(self, _task: asyncio.Task[dict[str, Any]]) -> None:
        self._series_task = None

    async def _refresh_series(self) -> dict[str, Any]:
        payload = await self._fetcher.fetch(Endpoint.SERIES, {"offset": 0})
        if payload.get("status") == "success":
            self._cache.set_series(payload)
            logger.info("series_list_cached")
            return payload
        entry = self._cache.get_series_entry()
        return entry.payload if entry is not None else payload

    # ── Operations ──────────────────────────────────────────────────────

    def get_cache_status(self) -> dict[str, Any]:
        return {
            **self._cache.status(),
            "isUpdating": self._scheduler.is_updating,
            "updaterRunning": self._scheduler.is_running,
            "apiKeys": self._pool.status(),
            "throttling": self._gate.status(),
            "rateLimit": {
                "isInCooldown": self._pool.all_blocked(),
                "cooldownRemainingMinutes": self.rate_limit_remaining_minutes(),
            },
        }

    async def refresh_cache(self) -> dict[str, Any]:
        """Manual refresh of both list regions, then the diagnostic status."""
        logger.info("manual_cache_refresh")
        await self._scheduler.refresh_all()
        return self.get_cache_status()

    def clear_cache(self) -> None:
        self._cache.clear()

    def rate_limit_remaining_minutes(self) -> Optional[int]:
        """Minutes until a credential frees up, or None unless every key is in cooldown."""
        if not self._pool.all_blocked():
            return None
        unblock_at = self._pool.earliest_unblock()
        if unblock_at is None:
            return None
        return math.ceil(max(0.0, unblock_at - self._cache.now()) / 60)
