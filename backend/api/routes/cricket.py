"""
Cricket REST endpoints.

GET  /v1/cricket/matches              — Live and upcoming lists together.
GET  /v1/cricket/matches/current      — Live / recently finished matches.
GET  /v1/cricket/matches/upcoming     — Not-yet-started fixtures.
GET  /v1/cricket/matches/{match_id}   — Enriched match detail.
GET  /v1/cricket/series               — Series list.
GET  /v1/cricket/cache-status         — Cache, credential and throttle diagnostics.
POST /v1/cricket/cache-refresh        — Force a refresh of both list regions.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from shared.errors import ConfigurationError
from shared.models.domain import DomainModel
from shared.utils.logging import get_logger

from api.dependencies import get_feed
from ingest.feed import CricketFeed

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/cricket", tags=["cricket"])

MATCHES_MAX_AGE_S = 30
MATCH_DETAILS_MAX_AGE_S = 300
SERIES_MAX_AGE_S = 600
NO_STORE = "no-cache, no-store, must-revalidate"


def cache_control(max_age_s: int) -> str:
    return f"public, s-maxage={max_age_s}, stale-while-revalidate={max_age_s * 2}"


def _wire(value: Any) -> Any:
    if isinstance(value, DomainModel):
        return value.to_wire()
    if isinstance(value, list):
        return [_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: _wire(v) for k, v in value.items()}
    return value


def _ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": _wire(data)}


def _error(message: str, exc: Exception) -> JSONResponse:
    status_code = 503 if isinstance(exc, ConfigurationError) else 500
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": str(exc)},
    )


@router.get("/matches")
async def get_all_matches(response: Response, feed: CricketFeed = Depends(get_feed)) -> Any:
    result = await feed.get_all_matches()
    response.headers["Cache-Control"] = cache_control(MATCHES_MAX_AGE_S)
    body = _ok(result)
    if not result["live"] and not result["upcoming"]:
        retry_in = feed.rate_limit_remaining_minutes()
        if retry_in is not None:
            body["message"] = f"API rate limited. Retrying in {retry_in} minutes."
    return body


@router.get("/matches/current")
async def get_current_matches(response: Response, feed: CricketFeed = Depends(get_feed)) -> Any:
    matches = await feed.get_current_matches()
    response.headers["Cache-Control"] = cache_control(MATCHES_MAX_AGE_S)
    return _ok(matches)


@router.get("/matches/upcoming")
async def get_upcoming_matches(response: Response, feed: CricketFeed = Depends(get_feed)) -> Any:
    matches = await feed.get_upcoming_matches()
    response.headers["Cache-Control"] = cache_control(MATCHES_MAX_AGE_S)
    return _ok(matches)


@router.get("/matches/{match_id}")
async def get_match_details(
    match_id: str,
    response: Response,
    feed: CricketFeed = Depends(get_feed),
) -> Any:
    try:
        detail = await feed.get_match_details(match_id)
    except Exception as exc:
        logger.error("match_details_request_failed", match_id=match_id, error=str(exc))
        return _error("Failed to fetch match details", exc)
    response.headers["Cache-Control"] = cache_control(MATCH_DETAILS_MAX_AGE_S)
    return _ok(detail)


@router.get("/series")
async def get_series(response: Response, feed: CricketFeed = Depends(get_feed)) -> Any:
    try:
        payload = await feed.get_series_list()
    except Exception as exc:
        logger.error("series_request_failed", error=str(exc))
        return _error("Failed to fetch series list", exc)
    response.headers["Cache-Control"] = cache_control(SERIES_MAX_AGE_S)
    return _ok(payload)


@router.get("/cache-status")
async def get_cache_status(response: Response, feed: CricketFeed = Depends(get_feed)) -> Any:
    response.headers["Cache-Control"] = NO_STORE
    return _ok(feed.get_cache_status())


@router.post("/cache-refresh")
async def refresh_cache(response: Response, feed: CricketFeed = Depends(get_feed)) -> Any:
    try:
        status = await feed.refresh_cache()
    except Exception as exc:
        logger.error("cache_refresh_request_failed", error=str(exc))
        return _error("Failed to refresh cache", exc)
    response.headers["Cache-Control"] = NO_STORE
    return {"success": True, "message": "Cache refreshed", "data": status}
