from __future__ import annotations

from enum import IntEnum, StrEnum


class Frequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# Sort order used by the daily overview and the habit list.
FREQUENCY_ORDER = (Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY, Frequency.YEARLY)


class ParseErrorKind(StrEnum):
    UNRECOGNIZED = "unrecognized"
    INVALID_INTERVAL = "invalid_interval"
    AMBIGUOUS_DATE = "ambiguous_date"
    INVALID_TIMEZONE = "invalid_timezone"


class WeekDay(IntEnum):
    """Week-start setting. Only display ordering reads it."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def python_weekday(self) -> int:
        return (self.value - 1) % 7
