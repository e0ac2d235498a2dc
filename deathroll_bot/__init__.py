"""Death roll tournament bot helpers."""

from .backends import DynamoDocumentBackend, JsonFileBackend, build_backend
from .challonge import ChallongeClient
from .errors import (
    DeathRollError,
    PersistenceError,
    PreconditionError,
    ProviderError,
    ValidationError,
)
from .models import (
    BracketSnapshot,
    CurrentMatch,
    GuildRecord,
    PlayerEntry,
    TournamentStatus,
    utc_now_iso,
)
from .orchestrator import Actor, TournamentOrchestrator
from .roster import RosterManager
from .selection import SelectionCache
from .state_machine import TournamentAction, TournamentStateMachine
from .storage import GuildStore, resolve_legacy_guild_id
from .validation import (
    parse_friend_names,
    parse_schedule,
    validate_nickname,
    validate_timezone,
    validate_tournament_name,
)

__all__ = [
    "Actor",
    "BracketSnapshot",
    "ChallongeClient",
    "CurrentMatch",
    "DeathRollError",
    "DynamoDocumentBackend",
    "GuildRecord",
    "GuildStore",
    "JsonFileBackend",
    "PersistenceError",
    "PlayerEntry",
    "PreconditionError",
    "ProviderError",
    "RosterManager",
    "SelectionCache",
    "TournamentAction",
    "TournamentOrchestrator",
    "TournamentStateMachine",
    "TournamentStatus",
    "ValidationError",
    "build_backend",
    "parse_friend_names",
    "parse_schedule",
    "resolve_legacy_guild_id",
    "utc_now_iso",
    "validate_nickname",
    "validate_timezone",
    "validate_tournament_name",
]
