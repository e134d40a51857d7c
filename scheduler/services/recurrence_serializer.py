"""Canonical machine text for schedules and its human-readable rendering.

Recurring rules are stored as an RFC 5545 ``RRULE`` after a date-valued
``DTSTART`` line, fixed due dates as ISO-8601. Stored rules without
``DTSTART`` are read as anchored on 1970-01-01.
"""
from __future__ import annotations

import re
from datetime import date

from dateutil.parser import isoparse

from scheduler.domain.entities import LAST_DAY_OF_MONTH, FixedDueDate, HabitSchedule, RecurrenceRule
from scheduler.domain.enums import Frequency, ParseErrorKind
from scheduler.domain.errors import ParseError

from .clock import zone_for
from .vocabulary import MONTH_NAMES, UNIT_NAMES, WEEKDAY_NAMES, ordinal_suffix

INVALID = "invalid"

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
FREQ_CODES = {
    Frequency.DAILY: "DAILY",
    Frequency.WEEKLY: "WEEKLY",
    Frequency.MONTHLY: "MONTHLY",
    Frequency.YEARLY: "YEARLY",
}
ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def _unrecognized(message: str) -> ParseError:
    return ParseError(ParseErrorKind.UNRECOGNIZED, message)


def _ints(values) -> str:
    return ",".join(str(value) for value in values)


def serialize(rule: RecurrenceRule) -> str:
    parts = [f"FREQ={FREQ_CODES[rule.frequency]}", f"INTERVAL={rule.interval}"]
    if rule.by_month:
        parts.append(f"BYMONTH={_ints(rule.by_month)}")
    if rule.by_month_day:
        parts.append(f"BYMONTHDAY={_ints(rule.by_month_day)}")
    if rule.by_weekday:
        parts.append("BYDAY=" + ",".join(WEEKDAY_CODES[day] for day in rule.by_weekday))
    if rule.until is not None:
        parts.append(f"UNTIL={rule.until:%Y%m%d}")
    if rule.count is not None:
        parts.append(f"COUNT={rule.count}")
    return f"DTSTART;VALUE=DATE:{rule.start:%Y%m%d}\nRRULE:" + ";".join(parts)


def _parse_rrule_date(value: str) -> date:
    try:
        return date(int(value[0:4]), int(value[4:6]), int(value[6:8]))
    except (ValueError, IndexError) as exc:
        raise _unrecognized(f"Invalid date value {value!r}") from exc


def _parse_int_list(key: str, value: str) -> tuple[int, ...]:
    try:
        return tuple(int(item) for item in value.split(","))
    except ValueError as exc:
        raise _unrecognized(f"Invalid {key} value {value!r}") from exc


def _positive(key: str, value: str) -> int:
    number = _parse_int_list(key, value)[0]
    if number <= 0:
        raise ParseError(ParseErrorKind.INVALID_INTERVAL, f"{key} must be positive, got {number}")
    return number


def deserialize(text: str) -> RecurrenceRule:
    fields: dict = {}
    start = None
    for line in text.strip().upper().splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith("DTSTART"):
            start = _parse_rrule_date(line.rsplit(":", 1)[-1])
            continue
        if line.startswith("RRULE:"):
            line = line[len("RRULE:"):]
        for part in line.split(";"):
            key, sep, value = part.partition("=")
            if not sep or not value:
                raise _unrecognized(f"Malformed rule part {part!r}")
            fields[key] = value

    if "FREQ" not in fields:
        raise _unrecognized("Rule has no FREQ")
    codes = {code: freq for freq, code in FREQ_CODES.items()}
    if fields["FREQ"] not in codes:
        raise _unrecognized(f"Unsupported frequency {fields['FREQ']!r}")
    if fields.get("WKST", "MO") != "MO":
        raise _unrecognized("Only WKST=MO is supported")

    kwargs: dict = {"frequency": codes[fields.pop("FREQ")], "start": start}
    fields.pop("WKST", None)
    for key, value in fields.items():
        if key == "INTERVAL":
            kwargs["interval"] = _positive(key, value)
        elif key == "BYDAY":
            try:
                kwargs["by_weekday"] = tuple(WEEKDAY_CODES.index(code) for code in value.split(","))
            except ValueError as exc:
                raise _unrecognized(f"Unsupported BYDAY value {value!r}") from exc
        elif key == "BYMONTHDAY":
            kwargs["by_month_day"] = _parse_int_list(key, value)
        elif key == "BYMONTH":
            kwargs["by_month"] = _parse_int_list(key, value)
        elif key == "UNTIL":
            kwargs["until"] = _parse_rrule_date(value)
        elif key == "COUNT":
            kwargs["count"] = _positive(key, value)
        else:
            raise _unrecognized(f"Unsupported rule part {key!r}")
    try:
        return RecurrenceRule(**kwargs)
    except ValueError as exc:
        raise _unrecognized(str(exc)) from exc


def encode_fixed_date(due: FixedDueDate) -> str:
    if due.time_of_day is None:
        return due.day.isoformat()
    return due.instant.isoformat()


def decode_fixed_date(text: str, timezone: str) -> FixedDueDate:
    zone = zone_for(timezone)
    text = text.strip()
    try:
        if ISO_DATE.fullmatch(text):
            return FixedDueDate(day=date.fromisoformat(text), timezone=timezone)
        moment = isoparse(text)
    except ValueError as exc:
        raise _unrecognized(f"Not an ISO-8601 instant: {text!r}") from exc
    moment = moment.astimezone(zone) if moment.tzinfo else moment.replace(tzinfo=zone)
    return FixedDueDate(day=moment.date(), time_of_day=moment.time().replace(tzinfo=None), timezone=timezone)


def encode_schedule(schedule: HabitSchedule) -> str:
    if isinstance(schedule, FixedDueDate):
        return encode_fixed_date(schedule)
    return serialize(schedule)


def decode_schedule(frequency: str, is_task: bool, timezone: str) -> HabitSchedule:
    zone_for(timezone)
    if is_task:
        return decode_fixed_date(frequency, timezone)
    return deserialize(frequency)


def _join(words: list[str]) -> str:
    if len(words) == 1:
        return words[0]
    return ", ".join(words[:-1]) + " and " + words[-1]


def _month_day_word(day: int) -> str:
    if day == LAST_DAY_OF_MONTH:
        return "last day"
    return f"{day}{ordinal_suffix(day)}"


def render_rule(rule: RecurrenceRule) -> str:
    singular, plural = UNIT_NAMES[rule.frequency]
    text = f"every {singular}" if rule.interval == 1 else f"every {rule.interval} {plural}"
    if rule.by_month:
        text += " in " + _join([MONTH_NAMES[month - 1] for month in rule.by_month])
    if rule.by_month_day:
        text += " on the " + _join([_month_day_word(day) for day in rule.by_month_day])
    if rule.by_weekday:
        text += " on " + _join([WEEKDAY_NAMES[day] for day in rule.by_weekday])
    text += f" starting {rule.start.isoformat()}"
    if rule.until is not None:
        text += f" until {rule.until.isoformat()}"
    if rule.count is not None:
        text += f" for {rule.count} {'time' if rule.count == 1 else 'times'}"
    return text


def render(schedule: HabitSchedule, timezone: str) -> str:
    if isinstance(schedule, RecurrenceRule):
        return render_rule(schedule)
    if schedule.time_of_day is None:
        return schedule.day.isoformat()
    local = schedule.instant.astimezone(zone_for(timezone))
    return f"{local.date().isoformat()} at {local:%H:%M}"


def render_frequency(frequency: str, is_task: bool, timezone: str) -> str:
    """Display text for a stored frequency; corrupt data renders as ``"invalid"``."""
    try:
        return render(decode_schedule(frequency, is_task, timezone), timezone)
    except (ParseError, ValueError):
        return INVALID
