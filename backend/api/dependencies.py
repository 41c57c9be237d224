"""
Dependency injection for the API service.
Provides the feed runtime built at startup to route handlers.
"""
from __future__ import annotations

from ingest.feed import CricketFeed
from ingest.runtime import FeedRuntime

# Module-level singleton, initialized at startup
_runtime: FeedRuntime | None = None


def init_dependencies(runtime: FeedRuntime | None) -> None:
    """Initialize the module-level singleton. Called once at startup (None on shutdown)."""
    global _runtime
    _runtime = runtime


def get_runtime() -> FeedRuntime:
    if _runtime is None:
        raise RuntimeError("FeedRuntime not initialized, call init_dependencies first")
    return _runtime


def get_feed() -> CricketFeed:
    """FastAPI dependency: returns the shared CricketFeed."""
    return get_runtime().feed
