from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from .enums import Frequency

LAST_DAY_OF_MONTH = -1

# Rules given without a start count their periods from here.
EPOCH_ANCHOR = date(1970, 1, 1)


def _normalized(values, low: int, high: int, name: str, allow_last: bool = False) -> tuple[int, ...]:
    # The last-day marker sorts after the numbered days.
    result = tuple(sorted(set(int(v) for v in values), key=lambda v: (v < 0, v)))
    for value in result:
        if allow_last and value == LAST_DAY_OF_MONTH:
            continue
        if not low <= value <= high:
            raise ValueError(f"{name} out of range: {value}")
    return result


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: Frequency
    interval: int = 1
    by_weekday: tuple[int, ...] = ()
    by_month_day: tuple[int, ...] = ()
    by_month: tuple[int, ...] = ()
    start: Optional[date] = None
    until: Optional[date] = None
    count: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "frequency", Frequency(self.frequency))
        if self.interval < 1:
            raise ValueError("interval must be >= 1")
        if self.until is not None and self.count is not None:
            raise ValueError("until and count are mutually exclusive")
        if self.count is not None and self.count < 1:
            raise ValueError("count must be >= 1")
        if self.start is None:
            object.__setattr__(self, "start", EPOCH_ANCHOR)
        object.__setattr__(self, "by_weekday", _normalized(self.by_weekday, 0, 6, "weekday"))
        object.__setattr__(
            self,
            "by_month_day",
            _normalized(self.by_month_day, 1, 31, "month day", allow_last=True),
        )
        object.__setattr__(self, "by_month", _normalized(self.by_month, 1, 12, "month"))
        if self.frequency == Frequency.WEEKLY and not self.by_weekday:
            object.__setattr__(self, "by_weekday", (self.start.weekday(),))


@dataclass(frozen=True)
class FixedDueDate:
    day: date
    time_of_day: Optional[time] = None
    timezone: str = "UTC"

    @property
    def instant(self) -> datetime:
        """Due instant; a date-only task is due until the end of its local day."""
        zone = ZoneInfo(self.timezone)
        if self.time_of_day is None:
            next_day = datetime.combine(self.day + timedelta(days=1), time(0), tzinfo=zone)
            return next_day - timedelta(microseconds=1)
        return datetime.combine(self.day, self.time_of_day, tzinfo=zone)


HabitSchedule = Union[RecurrenceRule, FixedDueDate]


@dataclass(frozen=True)
class HabitEntity:
    id: str | None
    name: str
    frequency: str
    is_task: bool = False
    description: str = ""
    completions: tuple[str, ...] = field(default_factory=tuple)
    target_completions: Optional[int] = None
    archived: bool = False
    coin_reward: int = 1
    pinned: bool = False

    @property
    def target(self) -> int:
        return self.target_completions or 1
