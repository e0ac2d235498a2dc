from __future__ import annotations

import pytest
from fakes import GUILD

from deathroll_bot import PlayerEntry, SelectionCache

ENTRIES = [PlayerEntry("1", "Alice"), PlayerEntry("2", "Bob")]


def test_pop_consumes_entry(clock) -> None:
    cache = SelectionCache(ttl_seconds=60, clock=clock)
    cache.put(GUILD, 9, 0, ENTRIES)

    assert cache.pop(GUILD, 9, 0) == ENTRIES
    assert cache.pop(GUILD, 9, 0) is None


def test_get_leaves_entry_in_place(clock) -> None:
    cache = SelectionCache(ttl_seconds=60, clock=clock)
    cache.put(GUILD, 9, 0, ENTRIES)

    assert cache.get(GUILD, 9, 0) == ENTRIES
    assert cache.get(GUILD, 9, 0) == ENTRIES
    assert cache.pop(GUILD, 9, 0) == ENTRIES


def test_get_drops_expired_entry(clock) -> None:
    cache = SelectionCache(ttl_seconds=60, clock=clock)
    cache.put(GUILD, 9, 0, ENTRIES)

    clock.now += 60

    assert cache.get(GUILD, 9, 0) is None
    assert len(cache) == 0


def test_entries_are_scoped_by_admin_and_page(clock) -> None:
    cache = SelectionCache(ttl_seconds=60, clock=clock)
    cache.put(GUILD, 9, 0, ENTRIES)

    assert cache.pop(GUILD, 10, 0) is None
    assert cache.pop(GUILD, 9, 1) is None
    assert cache.pop("other", 9, 0) is None
    assert len(cache) == 1


def test_expired_entry_is_not_returned(clock) -> None:
    cache = SelectionCache(ttl_seconds=60, clock=clock)
    cache.put(GUILD, 9, 0, ENTRIES)

    clock.now += 60

    assert cache.pop(GUILD, 9, 0) is None


def test_put_purges_stale_and_caps_size(clock) -> None:
    cache = SelectionCache(ttl_seconds=60, max_entries=2, clock=clock)
    cache.put(GUILD, 1, 0, ENTRIES)
    clock.now += 61
    cache.put(GUILD, 2, 0, ENTRIES)
    assert len(cache) == 1

    cache.put(GUILD, 3, 0, ENTRIES)
    cache.put(GUILD, 4, 0, ENTRIES)

    assert len(cache) == 2
    assert cache.pop(GUILD, 2, 0) is None
    assert cache.pop(GUILD, 4, 0) == ENTRIES


def test_stored_entries_are_copied(clock) -> None:
    cache = SelectionCache(clock=clock)
    entries = list(ENTRIES)
    cache.put(GUILD, 9, 0, entries)
    entries.clear()

    assert cache.pop(GUILD, 9, 0) == ENTRIES


@pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"max_entries": 0}])
def test_rejects_non_positive_limits(kwargs) -> None:
    with pytest.raises(ValueError):
        SelectionCache(**kwargs)
