from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from scheduler.services.completions import (
    CompletionSource,
    aggregate,
    completions_on_day,
    daily_counts,
    recent_days,
)

D1 = date(2024, 1, 1)
D2 = date(2024, 1, 2)


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_target_must_be_met_on_the_day() -> None:
    log = [_utc(2024, 1, 1, 9), _utc(2024, 1, 1, 18), _utc(2024, 1, 2, 10)]
    index = aggregate([CompletionSource("water", log, 2)], "UTC")
    assert index.satisfied("water", D1)
    assert not index.satisfied("water", D2)
    assert index.items_on(D2) == frozenset()


def test_completion_order_does_not_matter() -> None:
    log = [_utc(2024, 1, 2, 10), _utc(2024, 1, 1, 18), _utc(2024, 1, 1, 9)]
    forward = aggregate([CompletionSource("water", log, 2)], "UTC")
    backward = aggregate([CompletionSource("water", list(reversed(log)), 2)], "UTC")
    assert forward == backward


def test_days_are_bucketed_in_the_given_timezone() -> None:
    late = "2024-01-02T03:00:00Z"
    assert daily_counts([late], "UTC") == {D2: 1}
    assert daily_counts([late], "America/New_York") == {D1: 1}


def test_epoch_seconds_are_utc() -> None:
    assert completions_on_day([1704067200], "UTC", D1) == 1
    assert completions_on_day([1704067200], "America/New_York", date(2023, 12, 31)) == 1


def test_naive_text_is_read_in_the_timezone() -> None:
    assert completions_on_day(["2024-01-01T23:30:00"], "America/New_York", D1) == 1


def test_fall_back_day_keeps_all_twenty_five_hours() -> None:
    tz = "America/New_York"
    log = [_utc(2024, 11, 3, 4, 30), _utc(2024, 11, 3, 6, 30), _utc(2024, 11, 4, 4, 30)]
    assert completions_on_day(log, tz, date(2024, 11, 3)) == 3
    assert completions_on_day([_utc(2024, 11, 4, 5, 0)], tz, date(2024, 11, 4)) == 1


def test_missing_target_means_one() -> None:
    index = aggregate([("read", [_utc(2024, 1, 1, 8)], None)], "UTC")
    assert index.satisfied("read", D1)


def test_target_below_one_is_rejected() -> None:
    with pytest.raises(ValueError):
        aggregate([CompletionSource("read", [_utc(2024, 1, 1, 8)], 0)], "UTC")


def test_index_collects_items_per_day_for_the_heatmap() -> None:
    index = aggregate(
        [
            CompletionSource("water", [_utc(2024, 1, 1, 9)]),
            CompletionSource("read", [_utc(2024, 1, 1, 21), _utc(2024, 1, 2, 21)]),
            CompletionSource("run", [_utc(2024, 1, 2, 7)], 2),
        ],
        "UTC",
    )
    assert index.items_on(D1) == {"water", "read"}
    assert index.heatmap() == {D1: 2, D2: 1}


def test_recent_days_are_oldest_first() -> None:
    assert recent_days(date(2024, 1, 3), 3) == [D1, D2, date(2024, 1, 3)]
    assert recent_days(D1, 0) == []
