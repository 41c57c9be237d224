"""
Time source injected into every component that reads or waits on time.
Tests substitute a fake clock so cooldowns and throttle spacing run instantly.
"""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Wall-clock epoch seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Real wall clock backed by time.time and asyncio.sleep."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def to_iso(ts: Optional[float]) -> Optional[str]:
    """Epoch seconds to ISO-8601 UTC, None passthrough."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()
