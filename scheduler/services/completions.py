from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Hashable, Iterable, Mapping, NamedTuple, Optional, Sequence

from .clock import InstantLike, local_date, zone_for

ItemId = Hashable


class CompletionSource(NamedTuple):
    item_id: ItemId
    completions: Sequence[InstantLike]
    target_completions: Optional[int] = 1


def _target(value: Optional[int]) -> int:
    if value is None:
        return 1
    if value < 1:
        raise ValueError(f"target_completions must be >= 1, got {value}")
    return value


def daily_counts(log: Iterable[InstantLike], timezone: str) -> Counter:
    zone_for(timezone)
    return Counter(local_date(instant, timezone) for instant in log)


def completions_on_day(log: Iterable[InstantLike], timezone: str, day: date) -> int:
    return daily_counts(log, timezone)[day]


@dataclass(frozen=True)
class DailyCompletionIndex:
    """Local day -> ids of the items whose count that day met their target."""

    by_day: Mapping[date, frozenset] = field(default_factory=dict)

    def items_on(self, day: date) -> frozenset:
        return self.by_day.get(day, frozenset())

    def satisfied(self, item_id: ItemId, day: date) -> bool:
        return item_id in self.items_on(day)

    def heatmap(self) -> dict[date, int]:
        return {day: len(items) for day, items in sorted(self.by_day.items())}


def aggregate(items: Iterable[CompletionSource | tuple], timezone: str) -> DailyCompletionIndex:
    satisfied: dict[date, set] = defaultdict(set)
    for item_id, log, target in items:
        needed = _target(target)
        for day, count in daily_counts(log, timezone).items():
            if count >= needed:
                satisfied[day].add(item_id)
    return DailyCompletionIndex({day: frozenset(ids) for day, ids in satisfied.items()})


def recent_days(end: date, days: int) -> list[date]:
    """The `days` calendar days ending at `end`, oldest first."""
    return [end - timedelta(days=offset) for offset in reversed(range(days))]
