"""Environment configuration for the death roll bot."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .challonge import DEFAULT_API_BASE
from .selection import DEFAULT_TTL_SECONDS

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_list(name: str) -> list[str]:
    raw = os.getenv(name) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class BotConfig:
    discord_token: str
    challonge_api_key: str
    challonge_api_base: str = DEFAULT_API_BASE
    channel_id: int | None = None
    guild_id: str | None = None
    allowed_guild_ids: list[str] = field(default_factory=list)
    owner_role_id: int | None = None
    staff_role_id: int | None = None
    db_path: str = "db.json"
    table_name: str | None = None
    aws_region: str = "us-east-1"
    refresh_interval_seconds: int = 5
    selection_ttl_seconds: int = DEFAULT_TTL_SECONDS
    sync_commands: bool = True

    @classmethod
    def load(cls) -> BotConfig:
        missing: list[str] = []

        def need(name: str) -> str:
            value = os.getenv(name)
            if not value:
                missing.append(name)
                return ""
            return value

        discord_token = need("DISCORD_TOKEN")
        challonge_api_key = need("CHALLONGE_API_KEY")

        if missing:
            raise RuntimeError("Missing env vars: " + ", ".join(sorted(set(missing))))

        refresh = env_int("REFRESH_INTERVAL_SECONDS", default=5) or 5
        ttl = env_int("SELECTION_TTL_SECONDS", default=DEFAULT_TTL_SECONDS)
        return cls(
            discord_token=discord_token,
            challonge_api_key=challonge_api_key,
            challonge_api_base=os.getenv("CHALLONGE_API_BASE") or DEFAULT_API_BASE,
            channel_id=env_int("CHANNEL_ID"),
            guild_id=(os.getenv("GUILD_ID") or "").strip() or None,
            allowed_guild_ids=env_list("ALLOWED_GUILD_IDS"),
            owner_role_id=env_int("OWNER_ROLE_ID"),
            staff_role_id=env_int("STAFF_ROLE_ID"),
            db_path=os.getenv("DEATHROLL_DB_PATH") or "db.json",
            table_name=os.getenv("DEATHROLL_TABLE_NAME") or None,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            refresh_interval_seconds=max(1, refresh),
            selection_ttl_seconds=max(1, ttl or DEFAULT_TTL_SECONDS),
            sync_commands=env_bool("SYNC_COMMANDS", default=True),
        )


__all__ = ["BotConfig", "env_bool", "env_int", "env_list"]
