"""Shared fixtures. "Now" is Monday 2024-01-01 12:00 UTC unless a test says otherwise."""
from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from scheduler.services.clock import FixedClock

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
TODAY = date(2024, 1, 1)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(NOW)
