from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ValidationError

NICKNAME_MAX_LENGTH = 233
TOURNAMENT_NAME_MAX_LENGTH = 100
MAX_FRIEND_NAMES = 5

_DATE_PATTERN = re.compile(r"(\d{1,2})[-/](\d{1,2})[-/](\d{2}|\d{4})$")
_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})$")
_SPLIT_PATTERN = re.compile(r"[\n,]+")
DISPLAY_FORMAT = "%m-%d-%y %I:%M %p %Z"


@dataclass(slots=True, frozen=True)
class ScheduledTime:
    at: datetime
    date_iso: str
    display: str
    timestamp: int


def validate_timezone(raw: str) -> str:
    name = raw.strip()
    if not name:
        raise ValidationError("A time zone is required")
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown time zone: {name}") from exc
    return name


def validate_tournament_name(raw: str) -> str:
    name = raw.strip()
    if not name:
        raise ValidationError("Tournament name cannot be empty")
    if len(name) > TOURNAMENT_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Tournament name must be {TOURNAMENT_NAME_MAX_LENGTH} characters or fewer"
        )
    return name


def validate_nickname(raw: str) -> str:
    nickname = raw.strip()
    if not nickname:
        raise ValidationError("Nickname cannot be empty")
    if len(nickname) > NICKNAME_MAX_LENGTH:
        raise ValidationError(
            f"Nickname is too long! Maximum {NICKNAME_MAX_LENGTH} characters allowed."
        )
    return nickname


def parse_friend_names(raw: str) -> list[str]:
    """Split a free-text submission into at most five distinct names.

    Duplicates are compared case-insensitively and the first spelling wins.
    """
    parts = [part.strip() for part in _SPLIT_PATTERN.split(raw)]
    names = [part for part in parts if part][:MAX_FRIEND_NAMES]
    if not names:
        raise ValidationError("At least one name is required")
    seen: set[str] = set()
    unique: list[str] = []
    for name in names:
        lowered = name.casefold()
        if lowered in seen:
            continue
        seen.add(lowered)
        unique.append(name)
    return unique


def parse_schedule(
    date_raw: str, time_raw: str, meridiem_raw: str, tz_name: str
) -> ScheduledTime:
    """Parse ``MM-DD-YY``, ``HH:MM`` and ``AM``/``PM`` in the given zone."""
    date_match = _DATE_PATTERN.match(date_raw.strip())
    if not date_match:
        raise ValidationError("Date must look like MM-DD-YY")
    time_match = _TIME_PATTERN.match(time_raw.strip())
    if not time_match:
        raise ValidationError("Time must look like HH:MM")
    meridiem = meridiem_raw.strip().upper()
    if meridiem not in {"AM", "PM"}:
        raise ValidationError("Please enter AM or PM")

    month, day, year = (int(part) for part in date_match.groups())
    hour, minute = (int(part) for part in time_match.groups())
    if not 1 <= hour <= 12:
        raise ValidationError("Hour must be between 1 and 12")
    if not 0 <= minute <= 59:
        raise ValidationError("Minute must be between 00 and 59")

    if meridiem == "PM" and hour != 12:
        hour += 12
    if meridiem == "AM" and hour == 12:
        hour = 0
    if year < 100:
        year += 2000

    zone = ZoneInfo(validate_timezone(tz_name))
    try:
        at = datetime(year, month, day, hour, minute, tzinfo=zone)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {date_raw.strip()}") from exc

    return ScheduledTime(
        at=at,
        date_iso=at.date().isoformat(),
        display=at.strftime(DISPLAY_FORMAT),
        timestamp=int(at.timestamp()),
    )


__all__ = [
    "MAX_FRIEND_NAMES",
    "NICKNAME_MAX_LENGTH",
    "ScheduledTime",
    "TOURNAMENT_NAME_MAX_LENGTH",
    "parse_friend_names",
    "parse_schedule",
    "validate_nickname",
    "validate_timezone",
    "validate_tournament_name",
]
