"""Due and overdue decisions for habits and tasks.

Occurrences are computed on local calendar dates only, so a daylight-saving
transition can never move an occurrence to another day. Interval counting is
modular arithmetic on the number of periods since the anchor. COUNT bounds
are summed per period where the calendar allows; other shapes walk their
expansion only up to the checked day or the count, whichever is smaller.
"""
from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, rrule

from scheduler.domain.entities import (
    EPOCH_ANCHOR,
    LAST_DAY_OF_MONTH,
    FixedDueDate,
    HabitSchedule,
    RecurrenceRule,
)
from scheduler.domain.enums import Frequency

from .clock import Instant, local_date, to_instant, zone_for

RRULE_FREQUENCIES = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}


def anchor_of(rule: RecurrenceRule) -> date:
    return rule.start or EPOCH_ANCHOR


def effective_selectors(rule: RecurrenceRule) -> tuple[tuple[int, ...], tuple[int, ...], tuple[int, ...]]:
    """(months, month days, weekdays) after filling the anchor defaults.

    A rule that names neither month days nor weekdays repeats on the anchor's
    weekday (weekly), day of month (monthly) or month and day (yearly).
    """
    months, month_days, weekdays = rule.by_month, rule.by_month_day, rule.by_weekday
    if not month_days and not weekdays:
        anchor = anchor_of(rule)
        if rule.frequency == Frequency.WEEKLY:
            weekdays = (anchor.weekday(),)
        elif rule.frequency == Frequency.MONTHLY:
            month_days = (anchor.day,)
        elif rule.frequency == Frequency.YEARLY:
            months = months or (anchor.month,)
            month_days = (anchor.day,)
    return months, month_days, weekdays


def _month_day_matches(day: date, month_days: tuple[int, ...]) -> bool:
    last = monthrange(day.year, day.month)[1]
    return any(
        day.day == (last if wanted == LAST_DAY_OF_MONTH else wanted)
        for wanted in month_days
    )


def periods_since(anchor: date, day: date, frequency: Frequency) -> int:
    if frequency == Frequency.DAILY:
        return (day - anchor).days
    if frequency == Frequency.WEEKLY:
        anchor_monday = anchor - timedelta(days=anchor.weekday())
        return (day - anchor_monday).days // 7
    if frequency == Frequency.MONTHLY:
        return (day.year - anchor.year) * 12 + (day.month - anchor.month)
    return day.year - anchor.year


def matches_pattern(rule: RecurrenceRule, day: date) -> bool:
    """True when `day` is an occurrence, ignoring the end condition."""
    anchor = anchor_of(rule)
    if day < anchor:
        return False
    if periods_since(anchor, day, rule.frequency) % rule.interval:
        return False
    months, month_days, weekdays = effective_selectors(rule)
    if months and day.month not in months:
        return False
    if month_days and not _month_day_matches(day, month_days):
        return False
    if weekdays and day.weekday() not in weekdays:
        return False
    return True


def to_dateutil(rule: RecurrenceRule, count: Optional[int] = None) -> rrule:
    months, month_days, weekdays = effective_selectors(rule)
    anchor = anchor_of(rule)
    return rrule(
        RRULE_FREQUENCIES[rule.frequency],
        dtstart=datetime(anchor.year, anchor.month, anchor.day),
        interval=rule.interval,
        wkst=0,
        bymonth=months or None,
        bymonthday=month_days or None,
        byweekday=weekdays or None,
        count=count,
    )


def period_start(anchor: date, frequency: Frequency, index: int) -> date:
    """First day of the period `index` periods after the anchor's period."""
    if frequency == Frequency.DAILY:
        return anchor + timedelta(days=index)
    if frequency == Frequency.WEEKLY:
        return anchor - timedelta(days=anchor.weekday()) + timedelta(weeks=index)
    if frequency == Frequency.MONTHLY:
        return date(anchor.year, anchor.month, 1) + relativedelta(months=index)
    return date(anchor.year + index, 1, 1)


def occurrences_per_period(rule: RecurrenceRule) -> Optional[int]:
    """Occurrences in every whole period, or None when it depends on the calendar.

    Month days up to the 28th and the last day exist in every month, so those
    selectors give a constant; weekday filters on days or months do not.
    """
    months, month_days, weekdays = effective_selectors(rule)
    every_month = all(day == LAST_DAY_OF_MONTH or day <= 28 for day in month_days)
    if rule.frequency == Frequency.DAILY:
        return None if months or month_days or weekdays else 1
    if rule.frequency == Frequency.WEEKLY:
        return None if months or month_days else len(weekdays)
    if weekdays or not every_month:
        return None
    if rule.frequency == Frequency.MONTHLY:
        return None if months else len(month_days)
    return len(months or range(12)) * len(month_days)


def _matches_between(rule: RecurrenceRule, first: date, last: date) -> int:
    # Callers keep [first, last) inside a single period.
    return sum(
        1 for offset in range((last - first).days)
        if matches_pattern(rule, first + timedelta(days=offset))
    )


def occurrences_before(rule: RecurrenceRule, day: date, limit: int) -> int:
    """Occurrences in [anchor, day), counted no further than `limit`.

    Rules with a constant per-period count are summed from the period index;
    the rest walk the expansion and stop at `day` or `limit`, whichever
    comes first.
    """
    anchor = anchor_of(rule)
    if day <= anchor:
        return 0
    per_period = occurrences_per_period(rule)
    if per_period is None:
        seen = 0
        for moment in to_dateutil(rule):
            if seen >= limit or moment.date() >= day:
                break
            seen += 1
        return seen

    current = periods_since(anchor, day, rule.frequency)
    if current == 0:
        return _matches_between(rule, anchor, day)
    total = _matches_between(rule, anchor, period_start(anchor, rule.frequency, 1))
    total += (current - 1) // rule.interval * per_period
    if current % rule.interval == 0:
        total += _matches_between(rule, period_start(anchor, rule.frequency, current), day)
    return min(total, limit)


def is_due(schedule: HabitSchedule, timezone: str, day: date) -> bool:
    zone_for(timezone)
    if isinstance(schedule, FixedDueDate):
        if schedule.time_of_day is None:
            return schedule.day == day
        return local_date(schedule.instant, timezone) == day
    if schedule.until is not None and day > schedule.until:
        return False
    if not matches_pattern(schedule, day):
        return False
    if schedule.count is not None:
        return occurrences_before(schedule, day, schedule.count) < schedule.count
    return True


def is_overdue(
    schedule: HabitSchedule,
    timezone: str,
    now: Instant,
    archived: bool = False,
    completed: bool = False,
) -> bool:
    """Fixed tasks only: `now` strictly after the due instant, neither archived nor completed."""
    if archived or completed or not isinstance(schedule, FixedDueDate):
        return False
    zone = zone_for(timezone)
    return to_instant(now, timezone).astimezone(zone) > schedule.instant


def frequency_class(schedule: HabitSchedule) -> Frequency:
    if isinstance(schedule, RecurrenceRule):
        return schedule.frequency
    return Frequency.DAILY
