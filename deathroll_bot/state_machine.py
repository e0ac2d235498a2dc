from __future__ import annotations

import logging
from enum import StrEnum
from typing import Final

from .errors import PreconditionError
from .models import (
    TOURNAMENT_SCOPED_KEYS,
    BracketSnapshot,
    GuildRecord,
    TournamentStatus,
)
from .storage import GuildStore

log: Final = logging.getLogger("deathroll-bot.state")

MIN_BRACKET_PLAYERS: Final[int] = 2


class TournamentAction(StrEnum):
    SCHEDULE = "schedule"
    CREATE_BRACKET = "create-bracket"
    START_BRACKET = "start-bracket"
    END_BRACKET = "end-bracket"
    KILL = "kill"


_ALL_STATUSES = frozenset(TournamentStatus)

ALLOWED_FROM: Final[dict[TournamentAction, frozenset[TournamentStatus]]] = {
    TournamentAction.SCHEDULE: frozenset(
        {TournamentStatus.NONE, TournamentStatus.SCHEDULED}
    ),
    TournamentAction.CREATE_BRACKET: frozenset({TournamentStatus.SCHEDULED}),
    TournamentAction.START_BRACKET: frozenset({TournamentStatus.SCHEDULED}),
    TournamentAction.END_BRACKET: _ALL_STATUSES,
    TournamentAction.KILL: _ALL_STATUSES,
}

_STATUS_REJECTIONS: Final[dict[TournamentAction, str]] = {
    TournamentAction.SCHEDULE: (
        "Cannot create a new tournament while one is currently in progress. "
        "Please end the current tournament first."
    ),
    TournamentAction.CREATE_BRACKET: "No scheduled tournament to create a bracket for.",
    TournamentAction.START_BRACKET: "No scheduled tournament to start.",
}


class TournamentStateMachine:
    """Guards status transitions and applies their side effects to a guild."""

    def __init__(self, store: GuildStore) -> None:
        self._store = store

    def status(self, guild_id: int | str | None) -> TournamentStatus:
        return self._store.status(guild_id)

    def check(
        self,
        guild_id: int | str | None,
        action: TournamentAction,
        *,
        roster_guard: bool = True,
    ) -> None:
        record = self._store.get(guild_id)
        status = record.status
        if status not in ALLOWED_FROM[action]:
            raise PreconditionError(_STATUS_REJECTIONS[action])

        challonge_id = record.state.get("challongeId")
        if action is TournamentAction.CREATE_BRACKET:
            if challonge_id:
                url = record.state.get("challongeUrl") or "(no url saved)"
                raise PreconditionError(
                    f"A Challonge tournament already exists.\n{url}"
                )
            if roster_guard and len(record.roster()) < MIN_BRACKET_PLAYERS:
                raise PreconditionError("Not enough players to create a bracket.")
        elif action is TournamentAction.START_BRACKET:
            if not challonge_id:
                raise PreconditionError("No Challonge tournament created yet.")
        elif action is TournamentAction.END_BRACKET:
            if not challonge_id and status is not TournamentStatus.IN_PROGRESS:
                raise PreconditionError("No existing bracket to end.")

    def can(self, guild_id: int | str | None, action: TournamentAction) -> bool:
        try:
            self.check(guild_id, action)
        except PreconditionError:
            return False
        return True

    # ----- Transitions -----
    def schedule(
        self,
        guild_id: int | str | None,
        *,
        name: str,
        date: str,
        time: str,
        timestamp: int,
    ) -> None:
        self.check(guild_id, TournamentAction.SCHEDULE)
        with self._store.mutate(guild_id) as record:
            record.players.clear()
            _drop_bracket_identity(record)
            record.state.pop("bracket", None)
            record.state.update(
                {
                    "tournamentName": name,
                    "tournamentDate": date,
                    "tournamentTime": time,
                    "tournamentTimestamp": timestamp,
                    "tournamentStatus": TournamentStatus.SCHEDULED.value,
                }
            )
        log.info("Guild %s scheduled tournament %r for %s", guild_id, name, time)

    def attach_bracket(
        self,
        guild_id: int | str | None,
        snapshot: BracketSnapshot,
        *,
        challonge_id: str,
        challonge_url: str | None,
    ) -> None:
        # The roster may shrink while the push is in flight; the snapshot wins.
        self.check(guild_id, TournamentAction.CREATE_BRACKET, roster_guard=False)
        with self._store.mutate(guild_id) as record:
            record.state["bracket"] = snapshot.to_dict()
            record.state["challongeId"] = challonge_id
            if challonge_url:
                record.state["challongeUrl"] = challonge_url
        log.info("Guild %s attached bracket %s", guild_id, challonge_id)

    def start(self, guild_id: int | str | None) -> None:
        self.check(guild_id, TournamentAction.START_BRACKET)
        with self._store.mutate(guild_id) as record:
            record.players.clear()
            record.state["tournamentStatus"] = TournamentStatus.IN_PROGRESS.value
        log.info("Guild %s tournament started", guild_id)

    def end(self, guild_id: int | str | None, *, guarded: bool = True) -> None:
        """Clear the bracket identity and reset the status.

        ``guarded=False`` is for callers that already passed :meth:`check`
        before awaiting the provider; a kill in the meantime has reset the
        guild already and ending again is a no-op on the same fields.
        """
        if guarded:
            self.check(guild_id, TournamentAction.END_BRACKET)
        with self._store.mutate(guild_id) as record:
            _drop_bracket_identity(record)
            record.state["tournamentStatus"] = TournamentStatus.NONE.value
        log.info("Guild %s tournament ended", guild_id)

    def kill(self, guild_id: int | str | None) -> None:
        with self._store.mutate(guild_id) as record:
            record.players.clear()
            for key in TOURNAMENT_SCOPED_KEYS:
                record.state.pop(key, None)
            record.state["tournamentStatus"] = TournamentStatus.NONE.value
        log.warning("Guild %s tournament killed", guild_id)


def _drop_bracket_identity(record: GuildRecord) -> None:
    record.state.pop("challongeId", None)
    record.state.pop("challongeUrl", None)


__all__ = [
    "ALLOWED_FROM",
    "MIN_BRACKET_PLAYERS",
    "TournamentAction",
    "TournamentStateMachine",
]
