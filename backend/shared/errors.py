"""
Error taxonomy for upstream access.

  TransportError     — timeout, connection reset, bad status, undecodable body
  RateLimited        — quota exhausted for a credential (HTTP 429 or reason text)
  UpstreamFailure    — envelope status "failure" for any other reason
  ConfigurationError — no credentials configured

All of them are absorbed at the refresh/enrich boundary and turned into
"serve the best cached value"; callers only see them on a cold cache.
"""
from __future__ import annotations

from typing import Any, Optional

RATE_LIMIT_MARKERS = ("blocked", "limit", "exceeded")


class FeedError(Exception):
    """Base class for every error raised by the feed core."""


class ConfigurationError(FeedError):
    """Raised when the credential pool is empty."""


class TransportError(FeedError):
    """Network-level failure. Never auto-retried."""

    def __init__(self, endpoint: str, message: str, status_code: Optional[int] = None) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(f"{endpoint}: {message}")

    @property
    def error_key(self) -> str:
        suffix = self.status_code if self.status_code is not None else type(self.__cause__).__name__
        return f"transport:{self.endpoint}:{suffix}"


class RateLimited(FeedError):
    """The credential used for a call has exhausted its quota."""

    def __init__(self, endpoint: str, reason: str = "", token: Optional[str] = None) -> None:
        self.endpoint = endpoint
        self.reason = reason
        self.token = token
        super().__init__(f"{endpoint}: rate limited ({reason or 'HTTP 429'})")


class CredentialsExhausted(RateLimited):
    """Every configured credential was tried in one rotation and all were rate limited."""

    def __init__(self, endpoint: str, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(endpoint, reason=f"all {attempts} credential(s) rate limited")


class UpstreamFailure(FeedError):
    """Envelope declared failure for a reason other than rate limiting."""

    def __init__(self, endpoint: str, reason: str = "") -> None:
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"{endpoint}: upstream failure ({reason or 'no reason given'})")

    @property
    def error_key(self) -> str:
        return f"failure:{self.endpoint}:{self.reason[:60]}"


def is_rate_limit_reason(reason: Optional[str]) -> bool:
    text = (reason or "").lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


def classify_payload(endpoint: str, payload: Any, token: Optional[str] = None) -> dict[str, Any]:
    """
    Apply outcome classification to a decoded envelope.

    Returns the payload when it is usable, raises RateLimited or
    UpstreamFailure otherwise.
    """
    if not isinstance(payload, dict):
        raise UpstreamFailure(endpoint, f"unexpected payload type {type(payload).__name__}")
    if payload.get("status") == "failure":
        reason = str(payload.get("reason") or "")
        if is_rate_limit_reason(reason):
            raise RateLimited(endpoint, reason=reason, token=token)
        raise UpstreamFailure(endpoint, reason)
    return payload


def error_key(exc: BaseException) -> str:
    """Stable key used to de-duplicate log lines for the same failure."""
    key = getattr(exc, "error_key", None)
    if isinstance(key, str):
        return key
    return f"{type(exc).__name__}:{str(exc)[:60]}"
