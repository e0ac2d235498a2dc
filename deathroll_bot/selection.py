from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .models import PlayerEntry, guild_key, user_key

SelectionKey = tuple[str, str, int]

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 256


@dataclass(slots=True)
class _CachedSelection:
    entries: list[PlayerEntry]
    stored_at: float


class SelectionCache:
    """Short-lived mapping from (guild, admin, page) to removal targets.

    Select menus can only carry an option index, so the entries behind a page
    are remembered here until the admin submits or the entry expires. Reading
    an entry with :meth:`get` leaves it in place; :meth:`pop` consumes it.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._items: OrderedDict[SelectionKey, _CachedSelection] = OrderedDict()

    @staticmethod
    def key(
        guild_id: int | str | None, admin_id: int | str, page: int
    ) -> SelectionKey:
        return (guild_key(guild_id), user_key(admin_id), page)

    def put(
        self,
        guild_id: int | str | None,
        admin_id: int | str,
        page: int,
        entries: Sequence[PlayerEntry],
    ) -> None:
        self.purge_expired()
        key = self.key(guild_id, admin_id, page)
        self._items.pop(key, None)
        self._items[key] = _CachedSelection(list(entries), self._clock())
        while len(self._items) > self._max_entries:
            self._items.popitem(last=False)

    def get(
        self, guild_id: int | str | None, admin_id: int | str, page: int
    ) -> list[PlayerEntry] | None:
        key = self.key(guild_id, admin_id, page)
        cached = self._items.get(key)
        if cached is None:
            return None
        if self._expired(cached):
            del self._items[key]
            return None
        return list(cached.entries)

    def pop(
        self, guild_id: int | str | None, admin_id: int | str, page: int
    ) -> list[PlayerEntry] | None:
        cached = self._items.pop(self.key(guild_id, admin_id, page), None)
        if cached is None or self._expired(cached):
            return None
        return cached.entries

    def purge_expired(self) -> int:
        stale = [key for key, cached in self._items.items() if self._expired(cached)]
        for key in stale:
            del self._items[key]
        return len(stale)

    def _expired(self, cached: _CachedSelection) -> bool:
        return self._clock() - cached.stored_at >= self._ttl

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["SelectionCache", "SelectionKey"]
