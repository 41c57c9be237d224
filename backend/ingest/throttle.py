"""
Global throttle gate: a fixed minimum spacing between any two upstream
calls, across every endpoint and every credential.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from shared.utils.clock import Clock, SystemClock, to_iso
from shared.utils.logging import get_logger
from shared.utils.metrics import THROTTLE_WAIT

logger = get_logger(__name__)

DEFAULT_SPACING_S = 10.0


class ThrottleGate:
    """
    Serializes outbound calls to at most one per ``spacing_s``.

    The last-call timestamp is recorded when the wait resolves, before the
    call itself runs. The lock keeps concurrent waiters from passing on the
    same timestamp.
    """

    def __init__(self, spacing_s: float = DEFAULT_SPACING_S, clock: Clock | None = None) -> None:
        self._spacing_s = spacing_s
        self._clock = clock or SystemClock()
        self._last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def last_call(self) -> Optional[float]:
        return self._last_call

    async def wait(self) -> float:
        """Suspend until the spacing has elapsed; returns seconds waited."""
        async with self._lock:
            waited = 0.0
            if self._last_call is not None:
                remaining = self._spacing_s - (self._clock.now() - self._last_call)
                if remaining > 0:
                    logger.debug("throttling_upstream_call", wait_s=round(remaining, 2))
                    await self._clock.sleep(remaining)
                    waited = remaining
            self._last_call = self._clock.now()
            THROTTLE_WAIT.observe(waited)
            return waited

    def status(self) -> dict[str, Any]:
        return {
            "lastCallTime": to_iso(self._last_call),
            "throttleDelay": f"{self._spacing_s:g}s",
        }
