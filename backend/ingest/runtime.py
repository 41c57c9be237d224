"""
Wiring for one feed instance.

Every component that shares state (key pool, throttle gate, cache,
upstream client) is created exactly once here and handed to the others.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from shared.config import Settings
from shared.models.enums import Region
from shared.utils.cache_store import CacheStore
from shared.utils.clock import Clock, SystemClock
from shared.utils.http_client import UpstreamClient
from shared.utils.logging import ErrorLogThrottle, get_logger

from ingest.enrichment.enricher import MatchEnricher
from ingest.feed import CricketFeed
from ingest.key_pool import KeyPool
from ingest.normalization.normalizer import classify_current, classify_upcoming
from ingest.rotation import RotatingFetcher, Upstream
from ingest.throttle import ThrottleGate
from scheduler.service import RefreshScheduler, RegionRefresher

logger = get_logger(__name__)


@dataclass
class FeedRuntime:
    settings: Settings
    client: Upstream
    key_pool: KeyPool
    gate: ThrottleGate
    cache: CacheStore
    scheduler: RefreshScheduler
    feed: CricketFeed

    async def start(self) -> None:
        if isinstance(self.client, UpstreamClient):
            await self.client.start()
        if self.settings.scheduler_enabled:
            self.scheduler.start()
        logger.info(
            "feed_started",
            api_keys=self.key_pool.size,
            scheduler_enabled=self.settings.scheduler_enabled,
        )

    async def close(self) -> None:
        await self.scheduler.stop()
        if isinstance(self.client, UpstreamClient):
            await self.client.close()
        logger.info("feed_stopped")


def refresh_timeout_s(settings: Settings, pool_size: int) -> float:
    """Upper bound for one region refresh: a throttled call per credential."""
    return (settings.upstream_timeout_s + settings.throttle_spacing_s) * max(1, pool_size)


def build_runtime(
    settings: Settings,
    clock: Clock | None = None,
    client: Upstream | None = None,
) -> FeedRuntime:
    """Assemble the feed from settings. ``client`` and ``clock`` are injectable for tests."""
    clock = clock or SystemClock()
    log_throttle = ErrorLogThrottle(settings.error_log_window_s, now=clock.now)

    if client is None:
        client = UpstreamClient(
            settings.cricket_api_base_url,
            timeout_s=settings.upstream_timeout_s,
            log_throttle=log_throttle,
        )

    key_pool = KeyPool(settings.api_keys, cooldown_s=settings.key_cooldown_s, clock=clock)
    gate = ThrottleGate(settings.throttle_spacing_s, clock=clock)
    fetcher = RotatingFetcher(key_pool, gate, client)
    cache = CacheStore(
        clock,
        match_details_ttl_s=settings.match_details_ttl_s,
        series_ttl_s=settings.series_ttl_s,
    )

    timeout_s = refresh_timeout_s(settings, key_pool.size)
    current = RegionRefresher(
        Region.CURRENT,
        fetcher,
        cache,
        partial(classify_current, limit=settings.current_matches_limit),
        log_throttle,
        timeout_s,
    )
    upcoming = RegionRefresher(
        Region.UPCOMING,
        fetcher,
        cache,
        partial(classify_upcoming, limit=settings.upcoming_matches_limit),
        log_throttle,
        timeout_s,
    )
    scheduler = RefreshScheduler(
        key_pool,
        current,
        upcoming,
        interval_s=settings.cache_update_interval_s,
        initial_delay_s=settings.initial_refresh_delay_s,
        clock=clock,
    )
    enricher = MatchEnricher(fetcher, cache, log_throttle)
    feed = CricketFeed(cache, scheduler, fetcher, enricher, key_pool, gate, log_throttle)

    return FeedRuntime(
        settings=settings,
        client=client,
        key_pool=key_pool,
        gate=gate,
        cache=cache,
        scheduler=scheduler,
        feed=feed,
    )
