from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import pytest

from scheduler.domain.entities import LAST_DAY_OF_MONTH, FixedDueDate, RecurrenceRule
from scheduler.domain.enums import Frequency
from scheduler.domain.errors import ParseError
from scheduler.services import due_dates
from scheduler.services.due_dates import frequency_class, is_due, is_overdue, to_dateutil

from conftest import TODAY


def _due_days(rule: RecurrenceRule, first: date, last: date, tz: str = "UTC") -> set[date]:
    days = set()
    day = first
    while day <= last:
        if is_due(rule, tz, day):
            days.add(day)
        day += timedelta(days=1)
    return days


def test_every_three_days() -> None:
    rule = RecurrenceRule(Frequency.DAILY, interval=3, start=TODAY)
    assert is_due(rule, "UTC", date(2024, 1, 1))
    assert not is_due(rule, "UTC", date(2024, 1, 2))
    assert is_due(rule, "UTC", date(2024, 1, 4))
    assert is_due(rule, "UTC", date(2024, 1, 7))
    assert not is_due(rule, "UTC", date(2023, 12, 29))


def test_same_inputs_same_answer() -> None:
    rule = RecurrenceRule(Frequency.WEEKLY, interval=3, by_weekday=(1, 3), start=TODAY)
    answers = {is_due(rule, "Europe/Berlin", date(2024, 5, 14)) for _ in range(5)}
    assert len(answers) == 1


def test_weekly_sundays_across_daylight_saving_changes() -> None:
    rule = RecurrenceRule(Frequency.WEEKLY, by_weekday=(6,), start=date(2024, 3, 3))
    tz = "America/New_York"
    assert is_due(rule, tz, date(2024, 3, 10))
    assert not is_due(rule, tz, date(2024, 3, 9))
    assert not is_due(rule, tz, date(2024, 3, 11))
    assert is_due(rule, tz, date(2024, 3, 17))
    assert is_due(rule, tz, date(2024, 11, 3))
    assert not is_due(rule, tz, date(2024, 11, 4))


def test_biweekly_counts_weeks_from_the_anchor() -> None:
    rule = RecurrenceRule(Frequency.WEEKLY, interval=2, start=date(2024, 1, 3))
    assert is_due(rule, "UTC", date(2024, 1, 3))
    assert not is_due(rule, "UTC", date(2024, 1, 10))
    assert is_due(rule, "UTC", date(2024, 1, 17))


def test_large_count_is_summed_without_expanding(monkeypatch: pytest.MonkeyPatch) -> None:
    def no_expansion(*args, **kwargs):
        raise AssertionError("expanded the rule")

    monkeypatch.setattr(due_dates, "to_dateutil", no_expansion)
    rule = RecurrenceRule(Frequency.DAILY, start=TODAY, count=2_000_000)
    last = TODAY + timedelta(days=1_999_999)

    assert is_due(rule, "UTC", date(2024, 1, 3))
    assert is_due(rule, "UTC", last)
    assert not is_due(rule, "UTC", last + timedelta(days=1))


def test_count_walk_stops_at_the_checked_day(monkeypatch: pytest.MonkeyPatch) -> None:
    yielded = []
    expand = due_dates.to_dateutil

    def recording(rule, count=None):
        for moment in expand(rule, count):
            yielded.append(moment)
            yield moment

    monkeypatch.setattr(due_dates, "to_dateutil", recording)
    weekends = RecurrenceRule(Frequency.DAILY, by_weekday=(5, 6), start=TODAY, count=1_000_000)

    assert is_due(weekends, "UTC", date(2024, 1, 13))
    assert len(yielded) <= 3


def test_thirty_first_skips_short_months() -> None:
    rule = RecurrenceRule(Frequency.MONTHLY, start=date(2024, 1, 31))
    assert is_due(rule, "UTC", date(2024, 1, 31))
    assert not is_due(rule, "UTC", date(2024, 2, 29))
    assert is_due(rule, "UTC", date(2024, 3, 31))
    assert not is_due(rule, "UTC", date(2024, 4, 30))


def test_last_day_of_month() -> None:
    rule = RecurrenceRule(Frequency.MONTHLY, by_month_day=(LAST_DAY_OF_MONTH,), start=TODAY)
    assert is_due(rule, "UTC", date(2024, 2, 29))
    assert not is_due(rule, "UTC", date(2024, 2, 28))
    assert is_due(rule, "UTC", date(2025, 2, 28))
    assert is_due(rule, "UTC", date(2024, 4, 30))


def test_leap_day_anchor_only_occurs_in_leap_years() -> None:
    rule = RecurrenceRule(Frequency.YEARLY, start=date(2024, 2, 29))
    assert is_due(rule, "UTC", date(2024, 2, 29))
    assert not is_due(rule, "UTC", date(2025, 2, 28))
    assert not is_due(rule, "UTC", date(2025, 3, 1))
    assert is_due(rule, "UTC", date(2028, 2, 29))


def test_until_is_inclusive() -> None:
    rule = RecurrenceRule(Frequency.DAILY, start=TODAY, until=date(2024, 1, 10))
    assert is_due(rule, "UTC", date(2024, 1, 10))
    assert not is_due(rule, "UTC", date(2024, 1, 11))


def test_count_stops_after_the_last_occurrence() -> None:
    rule = RecurrenceRule(Frequency.WEEKLY, by_weekday=(0, 2), start=TODAY, count=3)
    assert _due_days(rule, TODAY, date(2024, 1, 31)) == {
        date(2024, 1, 1),
        date(2024, 1, 3),
        date(2024, 1, 8),
    }
    assert not is_due(rule, "UTC", date(2024, 1, 10))


def test_far_future_dates_do_not_walk_from_the_anchor() -> None:
    rule = RecurrenceRule(Frequency.DAILY, interval=7, start=TODAY)
    far = TODAY + timedelta(days=7 * 100_000)
    assert is_due(rule, "UTC", far)
    assert not is_due(rule, "UTC", far + timedelta(days=1))


def test_unanchored_rule_counts_from_the_epoch() -> None:
    rule = RecurrenceRule(Frequency.DAILY, interval=2)
    assert is_due(rule, "UTC", date(1970, 1, 1))
    assert not is_due(rule, "UTC", date(1970, 1, 2))
    assert is_due(rule, "UTC", date(1970, 1, 3))


AGREEMENT_RULES = [
    RecurrenceRule(Frequency.DAILY, interval=5, start=date(2024, 1, 7)),
    RecurrenceRule(Frequency.DAILY, by_weekday=(5, 6), start=TODAY, count=9),
    RecurrenceRule(Frequency.WEEKLY, interval=3, by_weekday=(1, 4), start=date(2024, 1, 4)),
    RecurrenceRule(Frequency.WEEKLY, by_weekday=(6,)),
    RecurrenceRule(Frequency.MONTHLY, interval=2, by_month_day=(1, 15, LAST_DAY_OF_MONTH), start=TODAY),
    RecurrenceRule(Frequency.MONTHLY, by_weekday=(5,), start=TODAY, until=date(2025, 6, 30)),
    RecurrenceRule(Frequency.MONTHLY, start=date(2024, 1, 30)),
    RecurrenceRule(Frequency.YEARLY, by_month=(3, 6, 9), start=date(2024, 1, 10)),
    RecurrenceRule(Frequency.WEEKLY, interval=2, by_weekday=(1, 3), start=date(2024, 1, 4), count=7),
    RecurrenceRule(Frequency.MONTHLY, by_month_day=(1, 15), start=date(2024, 1, 10), count=5),
    RecurrenceRule(Frequency.MONTHLY, start=date(2024, 1, 31), count=4),
    RecurrenceRule(Frequency.YEARLY, by_month=(3, 9), by_month_day=(LAST_DAY_OF_MONTH,), start=TODAY, count=3),
    RecurrenceRule(Frequency.DAILY, interval=4, start=date(2024, 1, 2), count=40),
    RecurrenceRule(Frequency.YEARLY, start=date(2024, 2, 29)),
]


@pytest.mark.parametrize("rule", AGREEMENT_RULES)
def test_agrees_with_dateutil_expansion(rule: RecurrenceRule) -> None:
    first, last = date(2024, 1, 1), date(2025, 12, 31)
    expansion = to_dateutil(rule, count=rule.count)
    expected = {
        moment.date()
        for moment in expansion.between(datetime(2024, 1, 1), datetime(2025, 12, 31), inc=True)
        if rule.until is None or moment.date() <= rule.until
    }
    assert _due_days(rule, first, last) == expected


def test_fixed_date_is_due_on_its_local_day_only() -> None:
    due = FixedDueDate(date(2024, 6, 1), time(17, 0), "UTC")
    assert is_due(due, "UTC", date(2024, 6, 1))
    assert not is_due(due, "UTC", date(2024, 6, 2))

    early = FixedDueDate(date(2024, 6, 1), time(2, 0), "UTC")
    assert is_due(early, "America/New_York", date(2024, 5, 31))
    assert not is_due(early, "America/New_York", date(2024, 6, 1))


def test_overdue_is_strictly_after_the_due_instant() -> None:
    due = FixedDueDate(date(2024, 6, 1), time(17, 0), "UTC")
    assert not is_overdue(due, "UTC", datetime(2024, 6, 1, 16, 59, tzinfo=timezone.utc))
    assert not is_overdue(due, "UTC", datetime(2024, 6, 1, 17, 0, tzinfo=timezone.utc))
    assert is_overdue(due, "UTC", datetime(2024, 6, 1, 17, 1, tzinfo=timezone.utc))
    assert not is_overdue(due, "UTC", datetime(2024, 6, 1, 17, 1, tzinfo=timezone.utc), archived=True)
    assert not is_overdue(due, "UTC", datetime(2024, 6, 1, 17, 1, tzinfo=timezone.utc), completed=True)


def test_date_only_task_is_overdue_after_its_local_day_ends() -> None:
    due = FixedDueDate(date(2024, 6, 1), None, "America/New_York")
    tz = "America/New_York"
    assert not is_overdue(due, tz, datetime(2024, 6, 2, 3, 59, tzinfo=timezone.utc))
    assert is_overdue(due, tz, datetime(2024, 6, 2, 4, 1, tzinfo=timezone.utc))


def test_recurrences_are_never_overdue() -> None:
    rule = RecurrenceRule(Frequency.DAILY, start=TODAY)
    assert not is_overdue(rule, "UTC", datetime(2030, 1, 1, tzinfo=timezone.utc))


def test_overdue_accepts_iso_text() -> None:
    due = FixedDueDate(date(2024, 6, 1), time(17, 0), "UTC")
    assert is_overdue(due, "UTC", "2024-06-01T13:30:00-04:00")


def test_unknown_timezone_is_rejected() -> None:
    with pytest.raises(ParseError):
        is_due(RecurrenceRule(Frequency.DAILY), "Atlantis/Capital", TODAY)


def test_frequency_class() -> None:
    assert frequency_class(RecurrenceRule(Frequency.MONTHLY)) == Frequency.MONTHLY
    assert frequency_class(FixedDueDate(TODAY)) == Frequency.DAILY
