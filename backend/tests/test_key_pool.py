"""
Unit tests for credential rotation and cooldowns.

Run: pytest backend/tests/test_key_pool.py -v
"""
from __future__ import annotations

import pytest

from shared.errors import ConfigurationError
from ingest.key_pool import DEFAULT_COOLDOWN_S, KeyPool

from conftest import FakeClock


def test_empty_pool_raises_configuration_error(clock: FakeClock) -> None:
    pool = KeyPool([], clock=clock)
    with pytest.raises(ConfigurationError):
        pool.acquire()


def test_acquire_returns_key_at_cursor(key_pool: KeyPool) -> None:
    assert key_pool.acquire().token == "key-alpha-0001"
    assert key_pool.acquire().token == "key-alpha-0001"


def test_rate_limited_key_rotates_to_next(key_pool: KeyPool) -> None:
    first = key_pool.acquire()
    key_pool.mark_rate_limited(first)
    assert key_pool.acquire().token == "key-bravo-0002"


def test_blocked_key_skipped_until_cooldown_expires(clock: FakeClock) -> None:
    pool = KeyPool(["a", "b", "c"], clock=clock)
    pool.mark_rate_limited(pool.acquire())
    assert pool.acquire().token == "b"

    clock.advance(DEFAULT_COOLDOWN_S - 1)
    b = pool.acquire()
    assert b.token == "b"
    pool.mark_rate_limited(b)
    c = pool.acquire()
    assert c.token == "c"
    pool.mark_rate_limited(c)
    assert pool.all_blocked()

    clock.advance(1)
    assert not pool.all_blocked()
    assert pool.acquire().token == "a"


def test_blocked_key_never_selected_before_cooldown(clock: FakeClock) -> None:
    pool = KeyPool(["a", "b"], clock=clock)
    a = pool.acquire()
    pool.mark_rate_limited(a)
    for _ in range(10):
        clock.advance(60)
        if clock.now() < a.blocked_until:
            assert pool.acquire().token == "b"


def test_all_blocked_returns_cursor_key(clock: FakeClock) -> None:
    pool = KeyPool(["a", "b"], clock=clock)
    pool.mark_rate_limited(pool.acquire())
    pool.mark_rate_limited(pool.acquire())
    assert pool.all_blocked()
    assert pool.acquire().token == "a"


def test_single_key_pool_still_usable_while_blocked(clock: FakeClock) -> None:
    pool = KeyPool(["solo"], clock=clock)
    pool.mark_rate_limited(pool.acquire())
    assert pool.all_blocked()
    assert pool.acquire().token == "solo"


def test_cooldown_is_sixteen_minutes(clock: FakeClock) -> None:
    pool = KeyPool(["a"], clock=clock)
    credential = pool.acquire()
    pool.mark_rate_limited(credential)
    assert credential.blocked_until == clock.now() + 16 * 60
    assert pool.earliest_unblock() == credential.blocked_until


def test_earliest_unblock_none_when_nothing_blocked(key_pool: KeyPool) -> None:
    assert key_pool.earliest_unblock() is None
    assert not key_pool.all_blocked()


def test_status_masks_tokens(key_pool: KeyPool) -> None:
    key_pool.mark_rate_limited(key_pool.acquire())
    status = key_pool.status()
    assert status["total"] == 2
    assert status["currentIndex"] == 1
    first, second = status["keys"]
    assert first["key"] == "key-alpha-..."
    assert first["isBlocked"] is True
    assert first["blockedUntil"] is not None
    assert second["isCurrent"] is True
    assert second["isBlocked"] is False
