"""Day and tournament-type classification for partitioning standings."""
from __future__ import annotations

from datetime import datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

import config
from standings.errors import InvalidTournamentTypeError
from standings.models.base import TOURNAMENT_TYPES

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Sunday special tournament window, local time, [start, end)
SPECIAL_START = time(13, 0)
SPECIAL_END = time(14, 0)


def local_now() -> datetime:
    """Current time in the configured tournament timezone (host local time if unset)."""
    if config.TIMEZONE:
        return datetime.now(ZoneInfo(config.TIMEZONE))
    return datetime.now()


def classify_day(override: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Return the day label: the override lowercased, else the weekday name of ``now``."""
    if override and override.strip():
        return override.strip().lower()
    now = now or local_now()
    return WEEKDAYS[now.weekday()]


def is_special_window(now: datetime) -> bool:
    return SPECIAL_START <= now.time() < SPECIAL_END


def classify_tournament_type(
    day: str, override: Optional[str] = None, now: Optional[datetime] = None
) -> str:
    """Return "all-day" or "special".

    An explicit override wins. Saturday only runs the all-day tournament; on Sunday
    the special tournament runs 13:00-14:00.
    """
    if override:
        if override not in TOURNAMENT_TYPES:
            raise InvalidTournamentTypeError(
                f"Invalid tournament_type {override!r}. Must be one of: {', '.join(TOURNAMENT_TYPES)}"
            )
        return override
    if day == "sunday" and is_special_window(now or local_now()):
        return "special"
    return "all-day"


def resolve_event(override: Optional[str] = None) -> str:
    if override and override.strip():
        return override.strip()
    return config.CURRENT_EVENT


def resolve_partition(
    day: Optional[str] = None,
    tournament_type: Optional[str] = None,
    event: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[str, str, str]:
    """Fill in (day, tournament_type, event) from overrides and the clock."""
    now = now or local_now()
    resolved_day = classify_day(day, now)
    return (
        resolved_day,
        classify_tournament_type(resolved_day, tournament_type, now),
        resolve_event(event),
    )
