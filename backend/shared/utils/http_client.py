"""
Async HTTP client wrapper for the upstream cricket API.
One persistent connection pool, bounded timeouts, metrics per request.
Outcome classification lives with the callers; this layer only maps
transport problems onto TransportError / RateLimited.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from shared.errors import RateLimited, TransportError
from shared.utils.logging import ErrorLogThrottle, get_logger, is_connection_reset
from shared.utils.metrics import UPSTREAM_LATENCY, UPSTREAM_REQUESTS

logger = get_logger(__name__)


class UpstreamClient:
    """
    Async HTTP client for the cricket data provider.
    Performs exactly one request per call; nothing is retried here.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        log_throttle: ErrorLogThrottle | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_s
        self._transport = transport
        self._log_throttle = log_throttle or ErrorLogThrottle()
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def timeout_s(self) -> float:
        return self._timeout

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout, connect=10.0),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5, keepalive_expiry=30.0),
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def call(self, endpoint: str, params: dict[str, Any] | None, credential: str) -> Any:
        """
        Perform one GET against an endpoint with one credential.

        Args:
            endpoint: Path relative to the base URL (e.g. "matches").
            params: Query parameters; the credential is added as ``apikey``.
            credential: API key used for this request.

        Returns:
            The decoded JSON payload.

        Raises:
            RateLimited: On HTTP 429.
            TransportError: On timeouts, connection failures, other HTTP
                errors and undecodable bodies.
        """
        if not self._client:
            raise RuntimeError("UpstreamClient not started. Call start() first.")

        path = "/" + endpoint.lstrip("/")
        query = {**(params or {}), "apikey": credential}
        start_time = time.perf_counter()
        outcome = "error"

        try:
            resp = await self._client.get(path, params=query)
            if resp.status_code == 429:
                outcome = "rate_limited"
                raise RateLimited(endpoint, reason="HTTP 429", token=credential)
            resp.raise_for_status()
            payload = resp.json()
            outcome = "ok"
            logger.debug(
                "upstream_request_success",
                endpoint=endpoint,
                status=resp.status_code,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            return payload

        except httpx.TimeoutException as exc:
            outcome = "timeout"
            raise self._transport_error(endpoint, "timed out", exc) from exc

        except httpx.HTTPStatusError as exc:
            outcome = str(exc.response.status_code)
            raise self._transport_error(
                endpoint, f"HTTP {exc.response.status_code}", exc, exc.response.status_code
            ) from exc

        except httpx.TransportError as exc:
            outcome = "connection"
            raise self._transport_error(endpoint, str(exc) or type(exc).__name__, exc) from exc

        except ValueError as exc:
            outcome = "decode"
            raise self._transport_error(endpoint, "invalid JSON body", exc) from exc

        finally:
            UPSTREAM_REQUESTS.labels(endpoint=endpoint, outcome=outcome).inc()
            UPSTREAM_LATENCY.labels(endpoint=endpoint).observe(time.perf_counter() - start_time)

    def _transport_error(
        self,
        endpoint: str,
        message: str,
        cause: Exception,
        status_code: Optional[int] = None,
    ) -> TransportError:
        err = TransportError(endpoint, message, status_code)
        err.__cause__ = cause
        if not is_connection_reset(cause) and self._log_throttle.should_log(err.error_key, cause):
            logger.warning(
                "upstream_transport_error",
                endpoint=endpoint,
                status=status_code,
                error=message,
            )
        return err
