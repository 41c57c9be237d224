"""
Response-shape strategies.

Upstream payloads are not consistent about where they put things: a match
list can be the payload itself or sit under ``data``/``matches``/``results``,
a player name can be ``name``/``playerName``/``player``. Each lookup is an
ordered tuple of strategies; the first one that yields a usable value wins.
"""
from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

Strategy = Callable[[Any], Optional[Any]]


def key(name: str) -> Strategy:
    """Strategy: the value under ``name`` when the payload is a dict."""
    def _extract(payload: Any) -> Optional[Any]:
        if isinstance(payload, dict):
            return payload.get(name)
        return None
    _extract.__name__ = f"key:{name}"
    return _extract


def itself(payload: Any) -> Optional[Any]:
    """Strategy: the payload as-is."""
    return payload


def first_match(
    payload: Any,
    strategies: Sequence[Strategy],
    accept: Callable[[Any], bool],
) -> Optional[Any]:
    for strategy in strategies:
        value = strategy(payload)
        if value is not None and accept(value):
            return value
    return None


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _is_dict(value: Any) -> bool:
    return isinstance(value, dict)


MATCH_LIST_SHAPES: tuple[Strategy, ...] = (key("data"), itself, key("matches"), key("results"))
PLAYER_NAME_SHAPES: tuple[Strategy, ...] = (key("name"), key("playerName"), key("player"))
PLAYER_IMAGE_SHAPES: tuple[Strategy, ...] = (key("image"), key("img"), key("playerImg"))
MATCH_PLAYERS_SHAPES: tuple[Strategy, ...] = (key("players"), key("playerInfo"))
MATCH_STATS_SHAPES: tuple[Strategy, ...] = (key("stats"), key("statistics"))
COMMENTARY_SHAPES: tuple[Strategy, ...] = (key("commentary"), key("recentEvents"))


def extract_list(payload: Any, strategies: Sequence[Strategy] = MATCH_LIST_SHAPES) -> list[Any]:
    """First list found by the strategies, else an empty list."""
    found = first_match(payload, strategies, _is_list)
    return found if found is not None else []


def extract_text(payload: Any, strategies: Sequence[Strategy]) -> Optional[str]:
    return first_match(payload, strategies, _is_text)


def extract_dict(payload: Any, strategies: Sequence[Strategy]) -> dict[str, Any]:
    found = first_match(payload, strategies, _is_dict)
    return found if found is not None else {}
