from __future__ import annotations

from collections.abc import Iterable

from .models import PlayerEntry, user_key
from .storage import GuildStore


class RosterManager:
    """Per-guild player lists, grouped by the user who submitted them.

    An absent user key always reads as an empty list, and a list emptied by a
    removal is dropped rather than stored.
    """

    def __init__(self, store: GuildStore) -> None:
        self._store = store

    # ----- Mutations -----
    def add_players(
        self, guild_id: int | str | None, user_id: int | str, names: Iterable[str]
    ) -> None:
        names = list(names)
        if not names:
            return
        with self._store.mutate(guild_id) as record:
            record.players.setdefault(user_key(user_id), []).extend(names)

    def remove_players(
        self, guild_id: int | str | None, user_id: int | str, names: Iterable[str]
    ) -> None:
        targets = set(names)
        uid = user_key(user_id)
        record = self._store.get(guild_id)
        current = record.players.get(uid)
        if not targets or not current:
            return
        remaining = [name for name in current if name not in targets]
        if len(remaining) == len(current):
            return
        with self._store.mutate(guild_id) as record:
            if remaining:
                record.players[uid] = remaining
            else:
                del record.players[uid]

    def remove_one(
        self, guild_id: int | str | None, user_id: int | str, name: str
    ) -> bool:
        uid = user_key(user_id)
        current = self._store.get(guild_id).players.get(uid)
        if not current or name not in current:
            return False
        with self._store.mutate(guild_id) as record:
            current.remove(name)
            if not current:
                del record.players[uid]
        return True

    def clear(self, guild_id: int | str | None) -> None:
        with self._store.mutate(guild_id) as record:
            record.players.clear()

    def set_nickname(
        self, guild_id: int | str | None, user_id: int | str, nickname: str
    ) -> None:
        uid = user_key(user_id)
        with self._store.mutate(guild_id) as record:
            previous = record.nicknames.get(uid)
            record.nicknames[uid] = nickname
            names = record.players.get(uid)
            if not previous or previous == nickname or not names:
                return
            if previous not in names:
                return
            # A user's own list never holds the same name twice.
            if nickname in names:
                names.remove(previous)
            else:
                names[names.index(previous)] = nickname

    # ----- Queries -----
    def get_nickname(self, guild_id: int | str | None, user_id: int | str) -> str | None:
        return self._store.get(guild_id).nicknames.get(user_key(user_id))

    def list_all(self, guild_id: int | str | None) -> list[str]:
        return self._store.get(guild_id).roster()

    def list_for_user(
        self, guild_id: int | str | None, user_id: int | str
    ) -> list[str]:
        return list(self._store.get(guild_id).players.get(user_key(user_id), []))

    def list_entries(self, guild_id: int | str | None) -> list[PlayerEntry]:
        players = self._store.get(guild_id).players
        return [
            PlayerEntry(user_id=uid, name=name)
            for uid, names in players.items()
            for name in names
        ]

    def count(self, guild_id: int | str | None) -> int:
        return sum(len(names) for names in self._store.get(guild_id).players.values())


__all__ = ["RosterManager"]
