from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Final

from .backends import DocumentBackend
from .errors import PersistenceError
from .models import (
    DEFAULT_TIMEZONE,
    GLOBAL_GUILD_KEY,
    GuildRecord,
    TournamentStatus,
    guild_key,
)

log: Final = logging.getLogger("deathroll-bot.storage")


def resolve_legacy_guild_id(
    configured_guild_id: str | None, allowed_guild_ids: Sequence[str] = ()
) -> str:
    """Pick the guild that inherits a legacy single-tenant document."""
    if configured_guild_id and configured_guild_id.strip():
        return configured_guild_id.strip()
    for candidate in allowed_guild_ids:
        if candidate and candidate.strip():
            return candidate.strip()
    return GLOBAL_GUILD_KEY


class GuildStore:
    """Owns the in-memory guild documents and writes them through on change.

    Records handed out by :meth:`get` are live; callers mutate them inside
    :meth:`mutate` so every change is flushed before control returns.
    """

    def __init__(
        self, backend: DocumentBackend, *, legacy_guild_id: str = GLOBAL_GUILD_KEY
    ) -> None:
        self._backend = backend
        self._legacy_guild_id = legacy_guild_id
        self._guilds: dict[str, GuildRecord] = {}

    @classmethod
    def open(
        cls, backend: DocumentBackend, *, legacy_guild_id: str = GLOBAL_GUILD_KEY
    ) -> GuildStore:
        store = cls(backend, legacy_guild_id=legacy_guild_id)
        store.load()
        return store

    # ----- Load / persist -----
    def load(self) -> None:
        try:
            raw = self._backend.load()
        except PersistenceError:
            log.exception("Failed to read stored guild documents")
            raise
        except ValueError:
            log.exception("Failed to parse stored guild documents, starting fresh")
            self._guilds = {}
            return

        if raw is None:
            self._guilds = {}
            return
        if not isinstance(raw, dict):
            log.warning(
                "Stored document has unexpected type %s, starting fresh",
                type(raw).__name__,
            )
            self._guilds = {}
            return

        if "guilds" not in raw:
            self._migrate_legacy(raw)
            return

        guilds = raw.get("guilds")
        if not isinstance(guilds, dict):
            log.warning("Stored 'guilds' entry is malformed, starting fresh")
            guilds = {}
        self._guilds = {
            guild_key(gid): GuildRecord.from_dict(data) for gid, data in guilds.items()
        }
        log.info("Loaded tournament data for %d guild(s)", len(self._guilds))

    def _migrate_legacy(self, raw: dict[str, object]) -> None:
        target = self._legacy_guild_id
        self._guilds = {target: GuildRecord.from_dict(raw)}
        log.info("Migrated legacy single-guild document to guild %s", target)
        try:
            self.persist()
        except PersistenceError:
            log.warning("Migrated document kept in memory until the next write")

    def to_document(self) -> dict[str, object]:
        return {"guilds": {gid: rec.to_dict() for gid, rec in self._guilds.items()}}

    def persist(self) -> None:
        try:
            self._backend.save(self.to_document())
        except PersistenceError:
            log.exception("Failed to persist guild documents")
            raise
        except (TypeError, ValueError) as exc:
            log.exception("Guild documents are not serializable")
            raise PersistenceError(f"Guild documents are not serializable: {exc}") from exc

    # ----- Records -----
    def get(self, guild_id: int | str | None) -> GuildRecord:
        key = guild_key(guild_id)
        record = self._guilds.get(key)
        if record is None:
            record = GuildRecord()
            self._guilds[key] = record
        return record

    @contextmanager
    def mutate(self, guild_id: int | str | None) -> Iterator[GuildRecord]:
        record = self.get(guild_id)
        yield record
        self.persist()

    def guild_ids(self) -> list[str]:
        return list(self._guilds)

    def guilds_with_status(self, status: TournamentStatus) -> list[str]:
        return [gid for gid, rec in self._guilds.items() if rec.status == status]

    # ----- State helpers -----
    def get_state(
        self, guild_id: int | str | None, key: str, default: object = None
    ) -> object:
        return self.get(guild_id).state.get(key, default)

    def set_state(self, guild_id: int | str | None, key: str, value: object) -> None:
        with self.mutate(guild_id) as record:
            if value is None:
                record.state.pop(key, None)
            else:
                record.state[key] = value

    def status(self, guild_id: int | str | None) -> TournamentStatus:
        return self.get(guild_id).status

    def set_status(self, guild_id: int | str | None, status: TournamentStatus) -> None:
        self.set_state(guild_id, "tournamentStatus", status.value)

    def default_tz(self, guild_id: int | str | None) -> str:
        value = self.get_state(guild_id, "defaultTz")
        return str(value) if value else DEFAULT_TIMEZONE

    def set_default_tz(self, guild_id: int | str | None, tz: str) -> None:
        self.set_state(guild_id, "defaultTz", tz)


__all__ = ["GuildStore", "resolve_legacy_guild_id"]
