"""
Refresh scheduler for the crickfeed cache.

Each list region (current, upcoming) has a RegionRefresher: a two-state
machine (IDLE → REFRESHING → IDLE) guarded by a busy flag. A trigger that
arrives while a refresh is in flight is dropped, never queued.

The RefreshScheduler drives both regions from a background task: one
initial refresh shortly after startup, then one cycle per interval.
Cycles are skipped outright while every credential is in cooldown.
"""
from __future__ import annotations

import asyncio
import math
from typing import Any, Callable, Optional

from shared.errors import ConfigurationError, FeedError, error_key
from shared.models.domain import Match
from shared.models.enums import Endpoint, RefreshState, Region
from shared.utils.cache_store import CacheStore
from shared.utils.clock import Clock, SystemClock
from shared.utils.logging import ErrorLogThrottle, get_logger
from shared.utils.metrics import REGION_REFRESHES, SKIPPED_CYCLES

from ingest.key_pool import KeyPool
from ingest.normalization.normalizer import matches_from_payload
from ingest.rotation import RotatingFetcher

logger = get_logger(__name__)

Classifier = Callable[[list[Match]], list[Match]]

LIST_PARAMS: dict[str, Any] = {"offset": 0}


class RegionRefresher:
    """
    Refreshes one list region from the matches endpoint.

    Args:
        region: Region.CURRENT or Region.UPCOMING.
        fetcher: Rotating fetcher shared by every component.
        cache: Cache store the result is written to.
        classifier: Selects and orders the region's matches from the raw list.
        log_throttle: De-duplicates failure log lines.
        timeout_s: Upper bound for one whole refresh attempt, rotation included.
    """

    def __init__(
        self,
        region: Region,
        fetcher: RotatingFetcher,
        cache: CacheStore,
        classifier: Classifier,
        log_throttle: ErrorLogThrottle,
        timeout_s: float,
    ) -> None:
        self.region = region
        self._fetcher = fetcher
        self._cache = cache
        self._classifier = classifier
        self._log_throttle = log_throttle
        self._timeout_s = timeout_s
        self._busy = False

    @property
    def state(self) -> RefreshState:
        return RefreshState.REFRESHING if self._busy else RefreshState.IDLE

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def refresh(self) -> Optional[list[Match]]:
        """
        Run one refresh.

        Returns:
            The newly stored list on success, the prior cached list on
            failure, or None when a refresh was already in flight.

        Raises:
            ConfigurationError: No credentials configured.
        """
        if self._busy:
            logger.info("region_refresh_in_progress_skipping", region=self.region.value)
            return None

        self._busy = True
        try:
            return await asyncio.wait_for(self._refresh_once(), timeout=self._timeout_s)
        except ConfigurationError:
            REGION_REFRESHES.labels(region=self.region.value, outcome="config_error").inc()
            raise
        except asyncio.TimeoutError:
            REGION_REFRESHES.labels(region=self.region.value, outcome="timeout").inc()
            key = f"refresh_timeout:{self.region.value}"
            if self._log_throttle.should_log(key):
                logger.warning("region_refresh_timeout", region=self.region.value, timeout_s=self._timeout_s)
            return self._cache.get_list(self.region)
        except FeedError as exc:
            REGION_REFRESHES.labels(region=self.region.value, outcome=type(exc).__name__).inc()
            if self._log_throttle.should_log(f"{self.region.value}:{error_key(exc)}", exc):
                logger.warning(
                    "region_refresh_failed_keeping_cache",
                    region=self.region.value,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            return self._cache.get_list(self.region)
        finally:
            self._busy = False

    async def _refresh_once(self) -> list[Match]:
        logger.info("region_refresh_started", region=self.region.value)
        payload = await self._fetcher.fetch(Endpoint.MATCHES, LIST_PARAMS)

        raw = payload.get("data")
        if payload.get("status") != "success" or not isinstance(raw, list):
            REGION_REFRESHES.labels(region=self.region.value, outcome="unexpected_shape").inc()
            logger.warning(
                "region_refresh_unexpected_payload",
                region=self.region.value,
                status=payload.get("status"),
                data_type=type(raw).__name__,
            )
            return self._cache.get_list(self.region)

        selected = self._classifier(matches_from_payload(payload))
        self._cache.set_list(self.region, selected)
        REGION_REFRESHES.labels(region=self.region.value, outcome="ok").inc()
        logger.info("region_refresh_complete", region=self.region.value, matches=len(selected), upstream=len(raw))
        return selected


class RefreshScheduler:
    """
    Background loop refreshing the current and upcoming regions.

    The two regions refresh concurrently; the shared throttle gate still
    serializes their upstream calls.
    """

    def __init__(
        self,
        key_pool: KeyPool,
        current: RegionRefresher,
        upcoming: RegionRefresher,
        interval_s: float = 60.0,
        initial_delay_s: float = 2.0,
        clock: Clock | None = None,
    ) -> None:
        self._pool = key_pool
        self.current = current
        self.upcoming = upcoming
        self._interval_s = interval_s
        self._initial_delay_s = initial_delay_s
        self._clock = clock or SystemClock()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_updating(self) -> bool:
        return self.current.is_busy or self.upcoming.is_busy

    def start(self) -> None:
        if self.is_running:
            logger.warning("cache_updater_already_running")
            return
        self._task = asyncio.create_task(self._run(), name="cache-updater")
        logger.info("cache_updater_started", interval_s=self._interval_s)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("cache_updater_stopped")

    async def refresh_all(self) -> None:
        """Refresh both regions concurrently."""
        results = await asyncio.gather(
            self.current.refresh(),
            self.upcoming.refresh(),
            return_exceptions=True,
        )
        for refresher, result in zip((self.current, self.upcoming), results):
            if isinstance(result, BaseException):
                logger.error(
                    "region_refresh_error",
                    region=refresher.region.value,
                    error=str(result),
                    error_type=type(result).__name__,
                )

    async def run_cycle(self) -> bool:
        """One periodic cycle. Returns False when skipped because every key is blocked."""
        if self._pool.all_blocked():
            unblock_at = self._pool.earliest_unblock()
            remaining_s = max(0.0, (unblock_at or self._clock.now()) - self._clock.now())
            SKIPPED_CYCLES.inc()
            logger.info(
                "cache_update_skipped_all_keys_blocked",
                remaining_minutes=math.ceil(remaining_s / 60),
            )
            return False
        await self.refresh_all()
        return True

    async def _run(self) -> None:
        try:
            await self._clock.sleep(self._initial_delay_s)
            await self.refresh_all()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("initial_cache_load_error", error=str(exc), exc_info=True)

        while True:
            try:
                await self._clock.sleep(self._interval_s)
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("cache_updater_loop_error", error=str(exc), exc_info=True)
