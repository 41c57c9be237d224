"""
Rotating fetch: credential selection, throttle gate, one upstream call and
outcome classification, with key rotation on rate limiting.
"""
from __future__ import annotations

from typing import Any, Protocol

from shared.errors import CredentialsExhausted, RateLimited, classify_payload
from shared.models.enums import Endpoint
from shared.utils.logging import get_logger, mask_key

from ingest.key_pool import KeyPool
from ingest.throttle import ThrottleGate

logger = get_logger(__name__)


class Upstream(Protocol):
    async def call(self, endpoint: str, params: dict[str, Any] | None, credential: str) -> Any:
        ...


class RotatingFetcher:
    """
    Fetches one endpoint, rotating credentials on rate limiting.

    Attempts are strictly sequential and bounded to one per configured
    credential. Transport errors and non-rate-limit failures are not
    retried.
    """

    def __init__(self, key_pool: KeyPool, gate: ThrottleGate, upstream: Upstream) -> None:
        self._pool = key_pool
        self._gate = gate
        self._upstream = upstream

    async def fetch(self, endpoint: Endpoint | str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Returns:
            The upstream envelope (status not "failure").

        Raises:
            ConfigurationError: No credentials configured.
            CredentialsExhausted: Every credential was rate limited.
            UpstreamFailure: Envelope failure for any other reason.
            TransportError: Network-level failure.
        """
        name = endpoint.value if isinstance(endpoint, Endpoint) else endpoint
        credential = self._pool.acquire()
        attempts = self._pool.size

        for attempt in range(1, attempts + 1):
            await self._gate.wait()
            try:
                payload = await self._upstream.call(name, params, credential.token)
                return classify_payload(name, payload, credential.token)
            except RateLimited as exc:
                self._pool.mark_rate_limited(credential)
                logger.warning(
                    "rate_limited_rotating_key",
                    endpoint=name,
                    key=mask_key(credential.token),
                    attempt=attempt,
                    max_attempts=attempts,
                    reason=exc.reason,
                )
                if attempt == attempts:
                    break
                credential = self._pool.acquire()

        raise CredentialsExhausted(name, attempts)
