"""
Credential pool with per-key rate-limit cooldowns.

Keys are fixed at startup and rotated round-robin. A key that hits the
upstream quota is parked for a cooldown (16 minutes by default) and skipped
by selection until it expires. A single-key pool is the degenerate case of
one global cooldown.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

from shared.errors import ConfigurationError
from shared.utils.clock import Clock, SystemClock, to_iso
from shared.utils.logging import get_logger, mask_key
from shared.utils.metrics import BLOCKED_CREDENTIALS, RATE_LIMIT_DETECTIONS

logger = get_logger(__name__)

DEFAULT_COOLDOWN_S = 16 * 60


class Credential:
    """One API key and the time it is blocked until (None when usable)."""

    __slots__ = ("token", "blocked_until")

    def __init__(self, token: str) -> None:
        self.token = token
        self.blocked_until: Optional[float] = None

    def is_blocked(self, now: float) -> bool:
        return self.blocked_until is not None and now < self.blocked_until

    def __repr__(self) -> str:
        return f"Credential({mask_key(self.token)!r}, blocked_until={self.blocked_until!r})"


class KeyPool:
    """
    Round-robin credential selector that skips keys in cooldown.

    Args:
        tokens: Ordered API keys. May be empty; acquire() then raises.
        cooldown_s: How long a rate-limited key stays blocked.
        clock: Time source.
    """

    def __init__(
        self,
        tokens: Sequence[str],
        cooldown_s: float = DEFAULT_COOLDOWN_S,
        clock: Clock | None = None,
    ) -> None:
        self._credentials: tuple[Credential, ...] = tuple(Credential(t) for t in tokens)
        self._cooldown_s = cooldown_s
        self._clock = clock or SystemClock()
        self._cursor = 0
        if self._credentials:
            logger.info("api_keys_loaded", count=len(self._credentials))
        else:
            logger.error("api_keys_missing")

    @property
    def size(self) -> int:
        return len(self._credentials)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def credentials(self) -> tuple[Credential, ...]:
        return self._credentials

    def acquire(self) -> Credential:
        """
        Return the first usable credential at or after the cursor.

        When every key is blocked the key at the cursor is returned anyway so
        the caller can still attempt the call.

        Raises:
            ConfigurationError: The pool is empty.
        """
        if not self._credentials:
            raise ConfigurationError("CRICKET_API_KEY is not configured")

        now = self._clock.now()
        size = len(self._credentials)
        for offset in range(size):
            index = (self._cursor + offset) % size
            if not self._credentials[index].is_blocked(now):
                self._cursor = index
                return self._credentials[index]

        credential = self._credentials[self._cursor]
        logger.warning("all_api_keys_blocked", using=mask_key(credential.token))
        return credential

    def mark_rate_limited(self, credential: Credential) -> None:
        """Block a credential for the cooldown and move the cursor past it."""
        now = self._clock.now()
        credential.blocked_until = now + self._cooldown_s
        RATE_LIMIT_DETECTIONS.inc()

        try:
            index = self._credentials.index(credential)
        except ValueError:
            index = self._cursor
        self._cursor = (index + 1) % len(self._credentials)
        BLOCKED_CREDENTIALS.set(self.blocked_count())

        logger.warning(
            "api_key_rate_limited",
            key=mask_key(credential.token),
            blocked_until=to_iso(credential.blocked_until),
            next_index=self._cursor,
        )

    def blocked_count(self) -> int:
        now = self._clock.now()
        return sum(1 for c in self._credentials if c.is_blocked(now))

    def all_blocked(self) -> bool:
        """True when the pool is non-empty and every key is in cooldown."""
        return bool(self._credentials) and self.blocked_count() == len(self._credentials)

    def earliest_unblock(self) -> Optional[float]:
        """Epoch seconds at which the first blocked key becomes usable again."""
        now = self._clock.now()
        pending = [c.blocked_until for c in self._credentials if c.is_blocked(now)]
        return min(pending) if pending else None  # type: ignore[type-var]

    def status(self) -> dict[str, Any]:
        now = self._clock.now()
        return {
            "total": len(self._credentials),
            "currentIndex": self._cursor,
            "keys": [
                {
                    "index": index,
                    "key": mask_key(c.token),
                    "isBlocked": c.is_blocked(now),
                    "blockedUntil": to_iso(c.blocked_until),
                    "isCurrent": index == self._cursor,
                }
                for index, c in enumerate(self._credentials)
            ],
        }
