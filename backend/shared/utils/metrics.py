"""
Lightweight metrics collection for crickfeed.
Wraps prometheus_client with async-safe patterns.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
UPSTREAM_REQUESTS = Counter(
    "cf_upstream_requests_total",
    "Total upstream HTTP requests",
    ["endpoint", "outcome"],
)
RATE_LIMIT_DETECTIONS = Counter(
    "cf_rate_limit_detections_total",
    "Credentials marked rate limited",
)
REGION_REFRESHES = Counter(
    "cf_region_refreshes_total",
    "Cache region refresh attempts by outcome",
    ["region", "outcome"],
)
SKIPPED_CYCLES = Counter(
    "cf_scheduler_skipped_cycles_total",
    "Background refresh cycles skipped because every credential was blocked",
)
MATCH_DETAIL_LOOKUPS = Counter(
    "cf_match_detail_lookups_total",
    "Match detail lookups by source",
    ["source"],
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "cf_upstream_latency_seconds",
    "Upstream request latency in seconds",
    ["endpoint"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
THROTTLE_WAIT = Histogram(
    "cf_throttle_wait_seconds",
    "Time spent waiting on the global throttle gate",
    buckets=(0, 0.5, 1, 2.5, 5, 10, 30, 60),
)

# ── Gauges ──────────────────────────────────────────────────────────────
CACHE_ENTRIES = Gauge(
    "cf_cache_entries",
    "Entries currently held per cache region",
    ["region"],
)
BLOCKED_CREDENTIALS = Gauge(
    "cf_blocked_credentials",
    "Credentials currently inside their rate-limit cooldown",
)

# ── Info ────────────────────────────────────────────────────────────────
SERVICE_INFO = Info("cf_service", "Service build information")


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
