"""
Normalization layer for the matches endpoint.
Parses raw upstream match dicts into Match models and splits them into
the current (live / recently finished) and upcoming regions.
"""
from __future__ import annotations

from typing import Any, Iterable

from pydantic import ValidationError

from shared.models.domain import Match
from shared.utils.logging import get_logger
from shared.utils.shapes import MATCH_LIST_SHAPES, extract_list

logger = get_logger(__name__)

CURRENT_MATCHES_LIMIT = 10
UPCOMING_MATCHES_LIMIT = 20


def parse_matches(raw: Iterable[Any]) -> list[Match]:
    """Validate raw match dicts, dropping anything that is not a usable match."""
    matches: list[Match] = []
    dropped = 0
    for item in raw:
        if isinstance(item, Match):
            matches.append(item)
            continue
        try:
            matches.append(Match.model_validate(item))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.debug("matches_dropped_on_parse", dropped=dropped, kept=len(matches))
    return matches


def matches_from_payload(payload: Any) -> list[Match]:
    """Pull the match list out of an envelope of any known shape."""
    return parse_matches(extract_list(payload, MATCH_LIST_SHAPES))


def is_current(match: Match) -> bool:
    """Live, or finished with a score on the board."""
    if not match.match_started:
        return False
    return not match.match_ended or match.has_score


def is_upcoming(match: Match) -> bool:
    return not match.match_started


def classify_current(matches: Iterable[Match], limit: int = CURRENT_MATCHES_LIMIT) -> list[Match]:
    """Current region: newest first, capped."""
    live = [m for m in matches if is_current(m)]
    live.sort(key=lambda m: m.start_time, reverse=True)
    return live[:limit]


def classify_upcoming(matches: Iterable[Match], limit: int = UPCOMING_MATCHES_LIMIT) -> list[Match]:
    """Upcoming region: upstream order preserved, capped."""
    return [m for m in matches if is_upcoming(m)][:limit]
