"""
Match enricher: one consolidated match-detail record from up to four
upstream calls (match info, squad, scorecard, alternate scorecard).

Cache-first. A cached record of any age is served without a call; the
upstream is only consulted on a true miss. Last-known-good always wins
over an error.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from pydantic import ValidationError

from shared.errors import FeedError, error_key
from shared.models.domain import MatchDetail
from shared.models.enums import Endpoint
from shared.utils.cache_store import CacheStore
from shared.utils.logging import ErrorLogThrottle, get_logger
from shared.utils.metrics import MATCH_DETAIL_LOOKUPS
from shared.utils.shapes import (
    COMMENTARY_SHAPES,
    MATCH_PLAYERS_SHAPES,
    MATCH_STATS_SHAPES,
    extract_dict,
    extract_list,
)

from ingest.enrichment.batting import current_batting_state
from ingest.enrichment.players import (
    merge_players,
    players_from_live_score,
    players_from_match_info,
    players_from_scorecard,
    split_squad,
)
from ingest.rotation import RotatingFetcher

logger = get_logger(__name__)

SCORECARD_ENDPOINTS = (Endpoint.MATCH_SCORECARD, Endpoint.MATCH_SCORECARD_ALT)
ENRICHMENT_FIELDS = frozenset({
    "players", "team1Squad", "team2Squad", "team1PlayingXI", "team2PlayingXI", "battingData",
})


def build_match_detail(
    match_id: str,
    info: dict[str, Any],
    squad_payload: Optional[dict[str, Any]] = None,
    scorecard_payload: Optional[dict[str, Any]] = None,
) -> MatchDetail:
    """
    Combine match info with whatever squad and scorecard data is available.

    Pure function: missing sources just leave their fields empty.
    """
    squads = split_squad(squad_payload)
    players = merge_players(
        squads.players,
        players_from_scorecard(scorecard_payload),
        players_from_live_score(info.get("score")),
        players_from_match_info(extract_list(info, MATCH_PLAYERS_SHAPES)),
    )

    fields: dict[str, Any] = {k: v for k, v in info.items() if k != "players"}
    fields.update({
        "id": info.get("id") or match_id,
        "team1Squad": squads.team1_squad,
        "team2Squad": squads.team2_squad,
        "team1PlayingXI": squads.team1_playing_xi,
        "team2PlayingXI": squads.team2_playing_xi,
        "players": players,
        "battingData": current_batting_state(scorecard_payload, squads, info),
        "stats": extract_dict(info, MATCH_STATS_SHAPES),
        "commentary": extract_list(info, COMMENTARY_SHAPES),
        "tossWinner": info.get("tossWinner"),
        "tossChoice": info.get("tossChoice"),
        "matchWinner": info.get("matchWinner"),
    })
    return MatchDetail.model_validate(fields)


def bare_match_detail(match_id: str, info: dict[str, Any]) -> MatchDetail:
    """Match info on its own, enrichment fields left at their empty defaults."""
    fields = {k: v for k, v in info.items() if k not in ENRICHMENT_FIELDS}
    fields["id"] = info.get("id") or match_id
    try:
        return MatchDetail.model_validate(fields)
    except ValidationError:
        return MatchDetail(id=match_id)


class MatchEnricher:
    """
    Builds and caches MatchDetail records.

    Concurrent misses for the same id share one in-flight fetch.
    """

    def __init__(
        self,
        fetcher: RotatingFetcher,
        cache: CacheStore,
        log_throttle: ErrorLogThrottle | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._log_throttle = log_throttle or ErrorLogThrottle()
        self._inflight: dict[str, asyncio.Task[MatchDetail]] = {}

    async def enrich(self, match_id: str) -> MatchDetail:
        """
        Raises:
            FeedError: Only when the fetch failed and nothing is cached for the id.
        """
        cached = self._cache.get_match_detail(match_id)
        if cached is not None:
            stale = cached.is_stale(self._cache.now(), self._cache.match_details_ttl_s)
            MATCH_DETAIL_LOOKUPS.labels(source="stale" if stale else "fresh").inc()
            logger.debug("match_details_from_cache", match_id=match_id, stale=stale)
            return cached.payload

        task = self._inflight.get(match_id)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(match_id))
            self._inflight[match_id] = task
            task.add_done_callback(lambda _t: self._inflight.pop(match_id, None))
        return await asyncio.shield(task)

    async def _fetch_and_store(self, match_id: str) -> MatchDetail:
        try:
            return await self._build(match_id)
        except Exception as exc:
            cached = self._cache.get_match_detail(match_id)
            if cached is not None:
                logger.warning("match_details_error_serving_cache", match_id=match_id, error=str(exc))
                MATCH_DETAIL_LOOKUPS.labels(source="fallback").inc()
                return cached.payload
            logger.error("match_details_fetch_failed", match_id=match_id, error=str(exc))
            raise

    async def _build(self, match_id: str) -> MatchDetail:
        logger.info("match_details_fetching", match_id=match_id)
        params = {"id": match_id}
        payload = await self._fetcher.fetch(Endpoint.MATCH_INFO, params)
        MATCH_DETAIL_LOOKUPS.labels(source="upstream").inc()

        info = payload.get("data")
        if payload.get("status") != "success" or not isinstance(info, dict):
            detail = MatchDetail(id=match_id)
            self._cache.set_match_detail(match_id, detail)
            logger.info("match_details_cached_basic", match_id=match_id, status=payload.get("status"))
            return detail

        squad_payload: Optional[dict[str, Any]] = None
        if info.get("hasSquad"):
            squad_payload = await self._optional_fetch(Endpoint.MATCH_SQUAD, params, match_id)
            if squad_payload is not None and not isinstance(squad_payload.get("data"), list):
                squad_payload = None

        scorecard_payload: Optional[dict[str, Any]] = None
        for endpoint in SCORECARD_ENDPOINTS:
            candidate = await self._optional_fetch(endpoint, params, match_id)
            if candidate is not None and candidate.get("data"):
                scorecard_payload = candidate
                break

        try:
            detail = build_match_detail(match_id, info, squad_payload, scorecard_payload)
        except (ValueError, TypeError, AttributeError) as exc:
            if self._log_throttle.should_log(f"enrichment:{error_key(exc)}", exc):
                logger.warning("match_details_enrichment_failed", match_id=match_id, error=str(exc))
            detail = bare_match_detail(match_id, info)
        self._cache.set_match_detail(match_id, detail)
        logger.info(
            "match_details_cached",
            match_id=match_id,
            players=len(detail.players),
            team1_squad=len(detail.team1_squad),
            team2_squad=len(detail.team2_squad),
            has_batting_data=detail.batting_data is not None,
        )
        return detail

    async def _optional_fetch(
        self, endpoint: Endpoint, params: dict[str, Any], match_id: str
    ) -> Optional[dict[str, Any]]:
        """Fetch an enrichment source; failures are logged and yield None."""
        try:
            return await self._fetcher.fetch(endpoint, params)
        except FeedError as exc:
            if self._log_throttle.should_log(f"{endpoint.value}:{error_key(exc)}", exc):
                logger.info(
                    "enrichment_source_unavailable",
                    endpoint=endpoint.value,
                    match_id=match_id,
                    error=str(exc),
                )
            return None
