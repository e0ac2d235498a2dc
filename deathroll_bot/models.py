from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import ClassVar

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
GLOBAL_GUILD_KEY = "global"
DEFAULT_TOURNAMENT_NAME = "Death Roll Tournament"
DEFAULT_TIMEZONE = "UTC"

# State keys reset whenever a tournament is killed.
TOURNAMENT_SCOPED_KEYS: tuple[str, ...] = (
    "tournamentName",
    "tournamentDate",
    "tournamentTime",
    "tournamentTimestamp",
    "bracket",
    "challongeId",
    "challongeUrl",
)


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


def guild_key(guild_id: int | str | None) -> str:
    if guild_id is None:
        return GLOBAL_GUILD_KEY
    text = str(guild_id).strip()
    return text or GLOBAL_GUILD_KEY


def user_key(user_id: int | str) -> str:
    return str(user_id)


class TournamentStatus(StrEnum):
    NONE = "none"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"

    @classmethod
    def parse(cls, value: object) -> TournamentStatus:
        try:
            return cls(str(value))
        except ValueError:
            return cls.NONE


@dataclass(slots=True)
class PlayerEntry:
    user_id: str
    name: str


@dataclass(slots=True)
class CurrentMatch:
    player1: str
    player2: str
    round: int | None
    match_id: str | None = None


@dataclass(slots=True)
class BracketSnapshot:
    name: str
    time: str
    players: list[str]
    created_at: str

    @classmethod
    def capture(cls, name: str, time: str, players: Iterable[str]) -> BracketSnapshot:
        return cls(name=name, time=time, players=list(players), created_at=utc_now_iso())

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "time": self.time,
            "players": list(self.players),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: object) -> BracketSnapshot | None:
        if not isinstance(data, dict):
            return None
        players_raw = data.get("players", [])
        players = [str(p) for p in players_raw] if isinstance(players_raw, list) else []
        return cls(
            name=str(data.get("name") or DEFAULT_TOURNAMENT_NAME),
            time=str(data.get("time") or "TBD"),
            players=players,
            created_at=str(data.get("createdAt", "")),
        )


@dataclass(slots=True)
class GuildRecord:
    players: dict[str, list[str]] = field(default_factory=dict)
    state: dict[str, object] = field(default_factory=dict)
    nicknames: dict[str, str] = field(default_factory=dict)

    FIELDS: ClassVar[tuple[str, ...]] = ("players", "state", "nicknames")

    def to_dict(self) -> dict[str, object]:
        return {
            "players": {uid: list(names) for uid, names in self.players.items()},
            "state": dict(self.state),
            "nicknames": dict(self.nicknames),
        }

    @classmethod
    def from_dict(cls, data: object) -> GuildRecord:
        """Build a record from persisted data, repairing any malformed field."""
        if not isinstance(data, dict):
            return cls()

        players: dict[str, list[str]] = {}
        raw_players = data.get("players")
        if isinstance(raw_players, dict):
            for uid, names in raw_players.items():
                if not isinstance(names, list):
                    continue
                cleaned = [str(name) for name in names if name is not None]
                if cleaned:
                    players[str(uid)] = cleaned

        raw_state = data.get("state")
        state = dict(raw_state) if isinstance(raw_state, dict) else {}

        nicknames: dict[str, str] = {}
        raw_nicknames = data.get("nicknames")
        if isinstance(raw_nicknames, dict):
            for uid, nickname in raw_nicknames.items():
                if isinstance(nickname, str):
                    nicknames[str(uid)] = nickname

        return cls(players=players, state=state, nicknames=nicknames)

    @property
    def status(self) -> TournamentStatus:
        return TournamentStatus.parse(self.state.get("tournamentStatus", "none"))

    def roster(self) -> list[str]:
        return [name for names in self.players.values() for name in names]


__all__ = [
    "BracketSnapshot",
    "CurrentMatch",
    "DEFAULT_TIMEZONE",
    "DEFAULT_TOURNAMENT_NAME",
    "GLOBAL_GUILD_KEY",
    "GuildRecord",
    "ISO_FORMAT",
    "PlayerEntry",
    "TOURNAMENT_SCOPED_KEYS",
    "TournamentStatus",
    "guild_key",
    "user_key",
    "utc_now_iso",
]
