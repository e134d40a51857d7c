from __future__ import annotations

from datetime import date, datetime, time, timezone as dt_timezone
from functools import lru_cache
from typing import Protocol, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.parser import isoparse

from scheduler.domain.enums import ParseErrorKind
from scheduler.domain.errors import ParseError

Instant = datetime
InstantLike = Union[datetime, str, int, float]


@lru_cache(maxsize=64)
def zone_for(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
        raise ParseError(ParseErrorKind.INVALID_TIMEZONE, f"Unknown timezone: {timezone!r}") from exc


class Clock(Protocol):
    def now(self, timezone: str) -> Instant: ...


class SystemClock:
    """Real wall clock. Only collaborators default to it; the engine takes `now` as a parameter."""

    def now(self, timezone: str) -> Instant:
        return datetime.now(zone_for(timezone))


class FixedClock:
    def __init__(self, instant: Instant) -> None:
        if instant.tzinfo is None:
            raise ValueError("FixedClock needs an aware datetime")
        self._instant = instant

    def now(self, timezone: str) -> Instant:
        return self._instant.astimezone(zone_for(timezone))


def to_instant(value: InstantLike, timezone: str = "UTC") -> Instant:
    """Normalize a completion timestamp. Naive values are read in `timezone`."""
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, dt_timezone.utc)
    else:
        instant = isoparse(value.strip())
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=zone_for(timezone))
    return instant


def local_date(value: InstantLike, timezone: str) -> date:
    return to_instant(value, timezone).astimezone(zone_for(timezone)).date()


def today(now: Instant, timezone: str) -> date:
    return local_date(now, timezone)


def start_of_day(day: date, timezone: str) -> Instant:
    return datetime.combine(day, time(0), tzinfo=zone_for(timezone))
