"""
Cache store regions and match-list classification.

Run: pytest backend/tests/test_cache_normalizer.py -v
"""
from __future__ import annotations

import pytest

from shared.models.domain import Match, MatchDetail
from shared.models.enums import Region
from shared.utils.cache_store import CacheStore
from shared.utils.shapes import MATCH_LIST_SHAPES, extract_list
from ingest.normalization.normalizer import (
    classify_current,
    classify_upcoming,
    matches_from_payload,
    parse_matches,
)

from conftest import FakeClock, raw_match


# ── Cache store ─────────────────────────────────────────────────────────

def test_empty_list_regions_return_empty_lists(cache: CacheStore) -> None:
    assert cache.get_current() == []
    assert cache.get_upcoming() == []
    assert cache.get_list(Region.CURRENT) == []


def test_set_list_stamps_fetched_at(cache: CacheStore, clock: FakeClock) -> None:
    cache.set_list(Region.UPCOMING, parse_matches([raw_match("1", started=False)]))
    assert len(cache.get_upcoming()) == 1
    assert cache.list_fetched_at(Region.UPCOMING) == clock.now()
    assert cache.list_fetched_at(Region.CURRENT) is None


def test_get_list_rejects_non_list_region(cache: CacheStore) -> None:
    with pytest.raises(ValueError):
        cache.get_list(Region.SERIES)


def test_stale_match_detail_still_served(cache: CacheStore, clock: FakeClock) -> None:
    cache.set_match_detail("m1", MatchDetail(id="m1"))
    clock.advance(3600)
    entry = cache.get_match_detail("m1")
    assert entry is not None
    assert entry.is_stale(clock.now(), cache.match_details_ttl_s)
    assert entry.payload.id == "m1"
    assert entry.age(clock.now()) == 3600


def test_clear_drops_every_region(cache: CacheStore) -> None:
    cache.set_current(parse_matches([raw_match("1", started=True)]))
    cache.set_series({"status": "success", "data": []})
    cache.set_match_detail("m1", MatchDetail(id="m1"))
    cache.clear()
    assert cache.get_current() == []
    assert cache.get_series_entry() is None
    assert cache.get_match_detail("m1") is None


def test_status_shape(cache: CacheStore, clock: FakeClock) -> None:
    cache.set_current(parse_matches([raw_match("1", started=True)]))
    cache.set_match_detail("m1", MatchDetail(id="m1"))
    clock.advance(301)
    cache.set_match_detail("m2", MatchDetail(id="m2"))

    status = cache.status()
    assert status["current"]["hasData"] is True
    assert status["current"]["dataLength"] == 1
    assert status["upcoming"]["hasData"] is False
    assert status["upcoming"]["lastFetch"] is None
    assert status["matchDetails"]["cachedMatches"] == 2
    assert status["matchDetails"]["staleMatches"] == 1
    assert status["matchDetails"]["cacheDuration"] == "5 minutes"
    assert status["series"]["hasData"] is False


# ── Classification ──────────────────────────────────────────────────────

def test_started_unfinished_is_current_and_not_started_is_upcoming() -> None:
    matches = parse_matches([raw_match("live", started=True), raw_match("next", started=False)])
    assert [m.id for m in classify_current(matches)] == ["live"]
    assert [m.id for m in classify_upcoming(matches)] == ["next"]


def test_finished_match_needs_score_to_be_current() -> None:
    matches = parse_matches([
        raw_match("done-scored", started=True, ended=True, score=[{"r": 150, "w": 3, "o": 20}]),
        raw_match("done-blank", started=True, ended=True),
    ])
    assert [m.id for m in classify_current(matches)] == ["done-scored"]


def test_current_sorted_newest_first_and_capped() -> None:
    raw = [
        raw_match(str(i), started=True, dateTimeGMT=f"2024-03-{i + 1:02d}T10:00:00")
        for i in range(12)
    ]
    current = classify_current(parse_matches(raw))
    assert len(current) == 10
    assert current[0].id == "11"
    assert current[-1].id == "2"


def test_upcoming_keeps_upstream_order_capped_at_twenty() -> None:
    raw = [raw_match(f"u{i}", started=False) for i in range(25)]
    upcoming = classify_upcoming(parse_matches(raw))
    assert [m.id for m in upcoming] == [f"u{i}" for i in range(20)]


def test_parse_drops_items_without_id() -> None:
    matches = parse_matches([{"name": "no id"}, "junk", raw_match("ok", started=False)])
    assert [m.id for m in matches] == ["ok"]


def test_numeric_ids_and_null_flags_coerced() -> None:
    (match,) = parse_matches([{"id": 42, "matchStarted": None, "matchEnded": None}])
    assert match.id == "42"
    assert match.match_started is False
    assert match.match_ended is False


def test_unparseable_date_sorts_last() -> None:
    current = classify_current(parse_matches([
        raw_match("nodate", started=True, dateTimeGMT="not a date"),
        raw_match("dated", started=True, dateTimeGMT="2024-01-01T00:00:00"),
    ]))
    assert [m.id for m in current] == ["dated", "nodate"]


def test_unknown_upstream_fields_survive_to_wire() -> None:
    (match,) = parse_matches([raw_match("1", started=False, venue="MCG", dateTimeGMT="2024-01-01T00:00:00")])
    wire = match.to_wire()
    assert wire["venue"] == "MCG"
    assert wire["matchStarted"] is False
    assert wire["dateTimeGMT"] == "2024-01-01T00:00:00"


# ── Shapes ──────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "payload",
    [
        [raw_match("1", started=False)],
        {"data": [raw_match("1", started=False)]},
        {"matches": [raw_match("1", started=False)]},
        {"results": [raw_match("1", started=False)]},
    ],
)
def test_match_list_shapes(payload: object) -> None:
    assert [m.id for m in matches_from_payload(payload)] == ["1"]


def test_unknown_shape_yields_empty_list() -> None:
    assert extract_list({"unexpected": {}}, MATCH_LIST_SHAPES) == []
    assert extract_list(None, MATCH_LIST_SHAPES) == []


def test_match_model_accepts_existing_instances() -> None:
    match = Match(id="x")
    assert parse_matches([match]) == [match]
