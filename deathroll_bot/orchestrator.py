"""Guild-scoped tournament operations consumed by the Discord layer."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Final, Protocol

from .errors import PreconditionError, ProviderError, ValidationError
from .models import (
    DEFAULT_TOURNAMENT_NAME,
    BracketSnapshot,
    CurrentMatch,
    TournamentStatus,
    guild_key,
)
from .roster import RosterManager
from .selection import SelectionCache
from .state_machine import TournamentAction, TournamentStateMachine
from .storage import GuildStore
from .validation import (
    parse_friend_names,
    parse_schedule,
    validate_nickname,
    validate_timezone,
    validate_tournament_name,
)

log: Final = logging.getLogger("deathroll-bot")

REMOVAL_PAGE_SIZE: Final[int] = 25
OPTION_LABEL_LIMIT: Final[int] = 100


class BracketProvider(Protocol):
    async def push_bracket(self, snapshot: BracketSnapshot) -> dict: ...

    async def start_tournament(self, tournament_id: str) -> dict: ...

    async def finalize(self, tournament_id: str) -> dict: ...

    async def fetch_state(self, tournament_id: str) -> str: ...

    async def fetch_current_match(self, tournament_id: str) -> CurrentMatch | None: ...


@dataclass(slots=True, frozen=True)
class Actor:
    """The member invoking an operation, reduced to what the core needs."""

    user_id: str
    display_name: str = ""
    role_ids: frozenset[str] = frozenset()
    administrator: bool = False

    @classmethod
    def build(
        cls,
        user_id: int | str,
        display_name: str = "",
        role_ids: Iterable[int | str] = (),
        *,
        administrator: bool = False,
    ) -> Actor:
        return cls(
            user_id=str(user_id),
            display_name=display_name,
            role_ids=frozenset(str(role_id) for role_id in role_ids),
            administrator=administrator,
        )


@dataclass(slots=True)
class ScheduleResult:
    name: str
    display: str
    timestamp: int
    cleared_players: int


@dataclass(slots=True)
class BracketCreated:
    name: str
    challonge_id: str
    url: str | None
    player_count: int


@dataclass(slots=True)
class EndResult:
    finalized: bool = False
    already_complete: bool = False
    fallback: bool = False
    reason: str | None = None


@dataclass(slots=True)
class FriendSignupResult:
    added: list[str]
    skipped: list[str]


@dataclass(slots=True)
class RemovalOption:
    index: int
    label: str
    user_id: str


@dataclass(slots=True)
class RemovalPage:
    page: int
    total_pages: int
    options: list[RemovalOption]


@dataclass(slots=True)
class RemovalResult:
    removed: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


@dataclass(slots=True)
class GuildOverview:
    guild_id: str
    status: TournamentStatus
    name: str
    time: str
    timestamp: int | None
    player_count: int
    challonge_url: str | None
    signup_channel_id: str | None
    signup_message_id: str | None


@dataclass(slots=True)
class LiveStatus:
    overview: GuildOverview
    current_match: CurrentMatch | None


class TournamentOrchestrator:
    def __init__(
        self,
        store: GuildStore,
        provider: BracketProvider,
        *,
        selection_cache: SelectionCache | None = None,
        default_owner_role_id: int | str | None = None,
        default_staff_role_id: int | str | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.roster = RosterManager(store)
        self.machine = TournamentStateMachine(store)
        self.selections = selection_cache or SelectionCache()
        self._default_owner_role = (
            str(default_owner_role_id) if default_owner_role_id is not None else None
        )
        self._default_staff_role = (
            str(default_staff_role_id) if default_staff_role_id is not None else None
        )
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, guild_id: int | str | None) -> asyncio.Lock:
        return self._locks.setdefault(guild_key(guild_id), asyncio.Lock())

    # ----- Authorization -----
    def _role(self, guild_id: int | str | None, key: str, default: str | None) -> str | None:
        value = self.store.get_state(guild_id, key)
        return str(value) if value else default

    def is_owner(self, guild_id: int | str | None, actor: Actor) -> bool:
        owner_role = self._role(guild_id, "ownerRoleId", self._default_owner_role)
        return owner_role is not None and owner_role in actor.role_ids

    def is_admin(self, guild_id: int | str | None, actor: Actor) -> bool:
        if actor.administrator or self.is_owner(guild_id, actor):
            return True
        staff_role = self._role(guild_id, "staffRoleId", self._default_staff_role)
        return staff_role is not None and staff_role in actor.role_ids

    def _require_admin(self, guild_id: int | str | None, actor: Actor) -> None:
        if not self.is_admin(guild_id, actor):
            raise PreconditionError("Not allowed.")

    def _require_owner(
        self, guild_id: int | str | None, actor: Actor, action: str
    ) -> None:
        if not (actor.administrator or self.is_owner(guild_id, actor)):
            raise PreconditionError(f"Only Owners can {action}.")

    # ----- Tournament lifecycle -----
    async def schedule_tournament(
        self,
        guild_id: int | str | None,
        actor: Actor,
        *,
        name: str,
        date: str,
        time: str,
        meridiem: str,
    ) -> ScheduleResult:
        self._require_admin(guild_id, actor)
        self.machine.check(guild_id, TournamentAction.SCHEDULE)
        clean_name = validate_tournament_name(name)
        when = parse_schedule(date, time, meridiem, self.store.default_tz(guild_id))

        async with self._lock(guild_id):
            cleared = self.roster.count(guild_id)
            self.machine.schedule(
                guild_id,
                name=clean_name,
                date=when.date_iso,
                time=when.display,
                timestamp=when.timestamp,
            )
        return ScheduleResult(
            name=clean_name,
            display=when.display,
            timestamp=when.timestamp,
            cleared_players=cleared,
        )

    async def create_bracket(
        self, guild_id: int | str | None, actor: Actor
    ) -> BracketCreated:
        self._require_owner(guild_id, actor, "create brackets")
        async with self._lock(guild_id):
            self.machine.check(guild_id, TournamentAction.CREATE_BRACKET)
            state = self.store.get(guild_id).state
            snapshot = BracketSnapshot.capture(
                str(state.get("tournamentName") or DEFAULT_TOURNAMENT_NAME),
                str(state.get("tournamentTime") or "TBD"),
                self.roster.list_all(guild_id),
            )
            tournament = await self.provider.push_bracket(snapshot)
            challonge_id = str(tournament["id"])
            url = tournament.get("full_challonge_url") or tournament.get("url")
            self.machine.attach_bracket(
                guild_id, snapshot, challonge_id=challonge_id, challonge_url=url
            )
        return BracketCreated(
            name=snapshot.name,
            challonge_id=challonge_id,
            url=url,
            player_count=len(snapshot.players),
        )

    async def start_bracket(self, guild_id: int | str | None, actor: Actor) -> str | None:
        self._require_owner(guild_id, actor, "start the bracket")
        async with self._lock(guild_id):
            self.machine.check(guild_id, TournamentAction.START_BRACKET)
            challonge_id = str(self.store.get_state(guild_id, "challongeId"))
            await self.provider.start_tournament(challonge_id)
            self.machine.start(guild_id)
        url = self.store.get_state(guild_id, "challongeUrl")
        return str(url) if url else None

    async def end_bracket(self, guild_id: int | str | None, actor: Actor) -> EndResult:
        """Finalize the hosted bracket and reset the guild.

        The local reset happens even when Challonge refuses or cannot be
        reached; the failure is reported on the result instead.
        """
        self._require_admin(guild_id, actor)
        async with self._lock(guild_id):
            self.machine.check(guild_id, TournamentAction.END_BRACKET)
            challonge_id = self.store.get_state(guild_id, "challongeId")
            result = EndResult()
            if challonge_id:
                try:
                    remote_state = await self.provider.fetch_state(str(challonge_id))
                    if remote_state == "complete":
                        result.already_complete = True
                    else:
                        await self.provider.finalize(str(challonge_id))
                        result.finalized = True
                except ProviderError as exc:
                    log.warning(
                        "Could not finalize bracket %s for guild %s: %s",
                        challonge_id,
                        guild_id,
                        exc,
                    )
                    result.fallback = True
                    result.reason = str(exc)
            # Kill does not take the lock and may have reset the guild meanwhile.
            self.machine.end(guild_id, guarded=False)
        return result

    async def kill_tournament(self, guild_id: int | str | None, actor: Actor) -> int:
        self._require_admin(guild_id, actor)
        removed = self.roster.count(guild_id)
        self.machine.kill(guild_id)
        return removed

    # ----- Sign-ups -----
    def effective_display_name(self, guild_id: int | str | None, actor: Actor) -> str:
        nickname = self.roster.get_nickname(guild_id, actor.user_id)
        return nickname or actor.display_name.strip()

    def _require_signups_open(self, guild_id: int | str | None) -> None:
        if self.machine.status(guild_id) is not TournamentStatus.SCHEDULED:
            raise PreconditionError("Signups are closed right now.")

    async def sign_up(self, guild_id: int | str | None, actor: Actor) -> str:
        self._require_signups_open(guild_id)
        name = self.effective_display_name(guild_id, actor)
        if not name:
            raise ValidationError("Set a nickname before signing up.")
        if name in self.roster.list_all(guild_id):
            raise PreconditionError(f"You're already signed up as {name}.")
        self.roster.add_players(guild_id, actor.user_id, [name])
        return name

    async def sign_up_friends(
        self, guild_id: int | str | None, actor: Actor, names: str | Sequence[str]
    ) -> FriendSignupResult:
        self._require_signups_open(guild_id)
        raw = names if isinstance(names, str) else "\n".join(names)
        submitted = parse_friend_names(raw)
        existing = {name.casefold() for name in self.roster.list_all(guild_id)}
        added = [name for name in submitted if name.casefold() not in existing]
        skipped = [name for name in submitted if name.casefold() in existing]
        if not added:
            raise PreconditionError(
                "All of those names are already signed up (or were duplicates)."
            )
        self.roster.add_players(guild_id, actor.user_id, added)
        return FriendSignupResult(added=added, skipped=skipped)

    async def withdraw(
        self, guild_id: int | str | None, actor: Actor, names: Iterable[str]
    ) -> list[str]:
        mine = self.roster.list_for_user(guild_id, actor.user_id)
        if not mine:
            raise PreconditionError("You have no signups to withdraw.")
        selected = list(dict.fromkeys(name for name in names if name in mine))
        self.roster.remove_players(guild_id, actor.user_id, selected)
        return selected

    async def withdraw_all(self, guild_id: int | str | None, actor: Actor) -> list[str]:
        mine = self.roster.list_for_user(guild_id, actor.user_id)
        if not mine:
            raise PreconditionError("Nothing to withdraw.")
        self.roster.remove_players(guild_id, actor.user_id, mine)
        return mine

    # ----- Admin removal -----
    async def open_removal_page(
        self, guild_id: int | str | None, actor: Actor, page: int = 0
    ) -> RemovalPage:
        self._require_admin(guild_id, actor)
        entries = self.roster.list_entries(guild_id)
        if not entries:
            raise PreconditionError("No signups to remove.")
        total_pages = math.ceil(len(entries) / REMOVAL_PAGE_SIZE)
        if not 0 <= page < total_pages:
            raise ValidationError(f"Page must be between 1 and {total_pages}.")
        start = page * REMOVAL_PAGE_SIZE
        chunk = entries[start : start + REMOVAL_PAGE_SIZE]
        self.selections.put(guild_id, actor.user_id, page, chunk)
        options = [
            RemovalOption(
                index=index,
                label=entry.name[:OPTION_LABEL_LIMIT],
                user_id=entry.user_id,
            )
            for index, entry in enumerate(chunk)
        ]
        return RemovalPage(page=page, total_pages=total_pages, options=options)

    async def remove_selected(
        self,
        guild_id: int | str | None,
        actor: Actor,
        page: int,
        indexes: Iterable[int],
    ) -> RemovalResult:
        self._require_admin(guild_id, actor)
        entries = self.selections.get(guild_id, actor.user_id, page)
        if entries is None:
            raise PreconditionError(
                "That selection has expired. Please open the list again."
            )
        chosen = sorted(set(indexes))
        if not chosen:
            raise ValidationError("Select at least one player to remove.")
        if any(not 0 <= index < len(entries) for index in chosen):
            raise ValidationError("Selection does not match the current list.")
        self.selections.pop(guild_id, actor.user_id, page)

        result = RemovalResult()
        for index in chosen:
            entry = entries[index]
            if self.roster.remove_one(guild_id, entry.user_id, entry.name):
                result.removed.append(entry.name)
            else:
                result.missing.append(entry.name)
        if result.removed:
            log.info(
                "Admin %s removed %d signup(s) in guild %s",
                actor.user_id,
                len(result.removed),
                guild_id,
            )
        return result

    # ----- Settings -----
    async def set_nickname(
        self, guild_id: int | str | None, actor: Actor, nickname: str
    ) -> str:
        clean = validate_nickname(nickname)
        self.roster.set_nickname(guild_id, actor.user_id, clean)
        return clean

    async def set_default_timezone(
        self, guild_id: int | str | None, actor: Actor, tz: str
    ) -> str:
        self._require_admin(guild_id, actor)
        zone = validate_timezone(tz)
        self.store.set_default_tz(guild_id, zone)
        return zone

    async def set_signup_channel(
        self, guild_id: int | str | None, actor: Actor, channel_id: int | str
    ) -> None:
        self._require_admin(guild_id, actor)
        with self.store.mutate(guild_id) as record:
            record.state["signupChannelId"] = str(channel_id)
            record.state.pop("signupMessageId", None)

    def record_signup_message(
        self,
        guild_id: int | str | None,
        channel_id: int | str,
        message_id: int | str,
    ) -> None:
        with self.store.mutate(guild_id) as record:
            record.state["signupChannelId"] = str(channel_id)
            record.state["signupMessageId"] = str(message_id)

    async def set_owner_role(
        self, guild_id: int | str | None, actor: Actor, role_id: int | str | None
    ) -> None:
        self._require_admin(guild_id, actor)
        self.store.set_state(
            guild_id, "ownerRoleId", str(role_id) if role_id is not None else None
        )

    async def set_staff_role(
        self, guild_id: int | str | None, actor: Actor, role_id: int | str | None
    ) -> None:
        self._require_admin(guild_id, actor)
        self.store.set_state(
            guild_id, "staffRoleId", str(role_id) if role_id is not None else None
        )

    # ----- Read path -----
    def list_players(self, guild_id: int | str | None) -> list[str]:
        return self.roster.list_all(guild_id)

    def overview(self, guild_id: int | str | None) -> GuildOverview:
        record = self.store.get(guild_id)
        state = record.state

        def _optional(key: str) -> str | None:
            value = state.get(key)
            return str(value) if value else None

        timestamp = state.get("tournamentTimestamp")
        return GuildOverview(
            guild_id=guild_key(guild_id),
            status=record.status,
            name=str(state.get("tournamentName") or DEFAULT_TOURNAMENT_NAME),
            time=str(state.get("tournamentTime") or "TBD"),
            timestamp=timestamp if isinstance(timestamp, int) else None,
            player_count=len(record.roster()),
            challonge_url=_optional("challongeUrl"),
            signup_channel_id=_optional("signupChannelId"),
            signup_message_id=_optional("signupMessageId"),
        )

    async def current_match(self, guild_id: int | str | None) -> CurrentMatch | None:
        if self.machine.status(guild_id) is not TournamentStatus.IN_PROGRESS:
            return None
        challonge_id = self.store.get_state(guild_id, "challongeId")
        if not challonge_id:
            return None
        return await self.provider.fetch_current_match(str(challonge_id))

    async def live_status(self, guild_id: int | str | None) -> LiveStatus:
        current = await self.current_match(guild_id)
        return LiveStatus(overview=self.overview(guild_id), current_match=current)

    async def refresh_live_guilds(
        self, publish: Callable[[LiveStatus], Awaitable[None]]
    ) -> int:
        """Run one refresh tick for every in-progress guild.

        Each guild is handled on its own; a failure is logged and the tick
        moves on to the next guild.
        """
        refreshed = 0
        for guild_id in self.store.guilds_with_status(TournamentStatus.IN_PROGRESS):
            try:
                status = await self.live_status(guild_id)
                await publish(status)
            except Exception:  # pylint: disable=broad-except
                log.exception("Failed to refresh live status for guild %s", guild_id)
                continue
            refreshed += 1
        return refreshed


__all__ = [
    "Actor",
    "BracketCreated",
    "BracketProvider",
    "EndResult",
    "FriendSignupResult",
    "GuildOverview",
    "LiveStatus",
    "RemovalOption",
    "RemovalPage",
    "RemovalResult",
    "ScheduleResult",
    "TournamentOrchestrator",
]
