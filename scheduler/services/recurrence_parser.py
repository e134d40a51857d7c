"""Free-text recurrence and due-date parsing.

The grammar, informally::

    rule      := ("every" [count] (unit | weekdays) | frequency | weekdays) clause*
    clause    := "on" (weekdays | ["the"] month_days | month day)
               | "in" months
               | ("starting" | "from" | "beginning") date
               | ("until" | "through") date
               | ["for"] number "times"
    fixed     := date ["at"] [time] | ["at"] time [date]
    date      := "today" | "tomorrow" | "yesterday" | "next" weekday | weekday
               | "in" number unit | iso-date | iso-datetime | slash-date
               | month day [year] | day month [year]

Habits use ``rule`` and tasks use ``fixed``; the caller picks which through
``is_recurring`` and the text never decides.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import NamedTuple, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from scheduler.domain.entities import LAST_DAY_OF_MONTH, FixedDueDate, HabitSchedule, RecurrenceRule
from scheduler.domain.enums import Frequency, ParseErrorKind
from scheduler.domain.errors import ParseError, ParseResult

from .clock import Instant, to_instant, zone_for
from .recurrence_serializer import deserialize
from .vocabulary import VOCABULARY, TokenKind

TOKEN_PATTERN = re.compile(
    r"""
    (?P<datetime>\d{4}-\d{2}-\d{2}[t\ ]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:z|[+-]\d{2}:?\d{2})?)
    |(?P<isodate>\d{4}-\d{2}-\d{2})
    |(?P<slashdate>\d{1,2}/\d{1,2}(?:/\d{2,4})?)
    |(?P<clock>\d{1,2}(?::\d{2})?\ ?(?:am|pm)\b|\d{1,2}:\d{2})
    |(?P<ordinal>\d+(?:st|nd|rd|th)\b)
    |(?P<number>[+-]?\d+)
    |(?P<word>[a-z]+)
    |(?P<comma>,)
    |(?P<space>\s+)
    |(?P<junk>.)
    """,
    re.VERBOSE,
)
CLOCK_PATTERN = re.compile(r"(\d{1,2})(?::(\d{2}))?\s?(am|pm)?")
UNIT_STEPS = {
    Frequency.DAILY: "days",
    Frequency.WEEKLY: "weeks",
    Frequency.MONTHLY: "months",
    Frequency.YEARLY: "years",
}


class Token(NamedTuple):
    kind: TokenKind
    value: object
    text: str


def _unrecognized(message: str) -> ParseError:
    return ParseError(ParseErrorKind.UNRECOGNIZED, message)


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    for match in TOKEN_PATTERN.finditer(text.lower()):
        group = match.lastgroup
        raw = match.group()
        if group == "space":
            continue
        if group == "junk":
            raise _unrecognized(f"Unexpected character {raw!r}")
        if group == "datetime":
            try:
                tokens.append(Token(TokenKind.DATETIME, isoparse(raw.upper().replace(" ", "T")), raw))
            except ValueError as exc:
                raise _unrecognized(f"Invalid date {raw!r}") from exc
        elif group == "isodate":
            try:
                tokens.append(Token(TokenKind.DATE, isoparse(raw).date(), raw))
            except ValueError as exc:
                raise _unrecognized(f"Invalid date {raw!r}") from exc
        elif group == "slashdate":
            parts = tuple(int(part) for part in raw.split("/"))
            tokens.append(Token(TokenKind.DATE, parts, raw))
        elif group == "clock":
            hour, minute, meridiem = CLOCK_PATTERN.fullmatch(raw).groups()
            tokens.append(Token(TokenKind.CLOCK, (int(hour), int(minute or 0), meridiem), raw))
        elif group == "ordinal":
            tokens.append(Token(TokenKind.ORDINAL, int(raw[:-2]), raw))
        elif group == "number":
            tokens.append(Token(TokenKind.NUMBER, int(raw), raw))
        elif group == "comma":
            tokens.append(Token(TokenKind.COMMA, None, raw))
        else:
            word = VOCABULARY.get(raw)
            if word is None:
                raise _unrecognized(f"Unknown word {raw!r}")
            tokens.append(Token(word.kind, word.value, raw))
    return tokens


class _Parser:
    def __init__(self, tokens: list[Token], today: date, timezone: str) -> None:
        self.tokens = tokens
        self.pos = 0
        self.today = today
        self.timezone = timezone

    # -- token helpers -------------------------------------------------

    def peek(self, offset: int = 0) -> Optional[Token]:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def at(self, *kinds: TokenKind, offset: int = 0) -> bool:
        token = self.peek(offset)
        return token is not None and token.kind in kinds

    def accept(self, *kinds: TokenKind) -> Optional[Token]:
        if self.at(*kinds):
            token = self.tokens[self.pos]
            self.pos += 1
            return token
        return None

    def expect(self, *kinds: TokenKind) -> Token:
        token = self.accept(*kinds)
        if token is None:
            found = self.peek()
            where = f"near {found.text!r}" if found else "at end of input"
            raise _unrecognized(f"Expected {' or '.join(kinds)} {where}")
        return token

    def done(self) -> bool:
        return self.pos >= len(self.tokens)

    def separator_before(self, *kinds: TokenKind) -> bool:
        """Consume ", ", "and" or ", and" when a list item of `kinds` follows."""
        for length in (2, 1):
            seps = [self.peek(i) for i in range(length)]
            if any(tok is None or tok.kind not in (TokenKind.COMMA, TokenKind.AND) for tok in seps):
                continue
            nxt = self.peek(length)
            if nxt is not None and nxt.kind in kinds:
                self.pos += length
                return True
        return False

    # -- recurrence ----------------------------------------------------

    def rule(self) -> RecurrenceRule:
        interval = 1
        weekdays: set[int] = set()
        if self.accept(TokenKind.EVERY):
            count_token = self.accept(TokenKind.NUMBER, TokenKind.ORDINAL)
            if count_token is not None:
                interval = count_token.value
                if interval <= 0:
                    raise ParseError(
                        ParseErrorKind.INVALID_INTERVAL,
                        f"Interval must be a positive number, got {interval}",
                    )
            if self.at(TokenKind.UNIT):
                frequency = self.expect(TokenKind.UNIT).value
            elif self.at(TokenKind.WEEKDAY):
                frequency = Frequency.WEEKLY
                weekdays |= self.weekday_list()
            else:
                raise _unrecognized("Expected a unit or weekday after 'every'")
        elif self.at(TokenKind.FREQUENCY):
            frequency = self.expect(TokenKind.FREQUENCY).value
        elif self.at(TokenKind.WEEKDAY):
            frequency = Frequency.WEEKLY
            weekdays |= self.weekday_list()
        else:
            raise _unrecognized(f"Not a recurrence: {self.peek().text!r}")

        month_days: set[int] = set()
        months: set[int] = set()
        start = until = count = None
        while not self.done():
            if self.accept(TokenKind.COMMA) and self.done():
                break
            if self.accept(TokenKind.ON):
                if self.at(TokenKind.WEEKDAY):
                    weekdays |= self.weekday_list()
                elif self.at(TokenKind.MONTH):
                    months.add(self.expect(TokenKind.MONTH).value)
                    month_days.add(self.expect(TokenKind.NUMBER, TokenKind.ORDINAL).value)
                else:
                    month_days |= self.month_day_list()
            elif self.accept(TokenKind.IN):
                months |= self.month_list()
            elif self.accept(TokenKind.START):
                if start is not None:
                    raise _unrecognized("Start date given twice")
                start = self.date_only()
            elif self.accept(TokenKind.UNTIL):
                if until is not None or count is not None:
                    raise _unrecognized("Only one end condition is allowed")
                until = self.date_only()
            elif self.at(TokenKind.FOR, TokenKind.NUMBER):
                if until is not None or count is not None:
                    raise _unrecognized("Only one end condition is allowed")
                self.accept(TokenKind.FOR)
                count = self.expect(TokenKind.NUMBER).value
                self.expect(TokenKind.TIMES)
                if count <= 0:
                    raise ParseError(
                        ParseErrorKind.INVALID_INTERVAL,
                        f"Repeat count must be a positive number, got {count}",
                    )
            else:
                raise _unrecognized(f"Unexpected {self.peek().text!r}")

        try:
            return RecurrenceRule(
                frequency=frequency,
                interval=interval,
                by_weekday=tuple(weekdays),
                by_month_day=tuple(month_days),
                by_month=tuple(months),
                start=start or self.today,
                until=until,
                count=count,
            )
        except ValueError as exc:
            raise _unrecognized(str(exc)) from exc

    def weekday_list(self) -> set[int]:
        days = set(self.expect(TokenKind.WEEKDAY).value)
        while self.separator_before(TokenKind.WEEKDAY):
            days |= set(self.expect(TokenKind.WEEKDAY).value)
        return days

    def month_list(self) -> set[int]:
        months = {self.expect(TokenKind.MONTH).value}
        while self.separator_before(TokenKind.MONTH):
            months.add(self.expect(TokenKind.MONTH).value)
        return months

    def month_day(self) -> int:
        self.accept(TokenKind.THE)
        if self.accept(TokenKind.LAST):
            if self.at(TokenKind.UNIT) and self.peek().value == Frequency.DAILY:
                self.pos += 1
            if self.accept(TokenKind.OF):
                self.accept(TokenKind.THE)
                unit = self.expect(TokenKind.UNIT)
                if unit.value != Frequency.MONTHLY:
                    raise _unrecognized(f"Unexpected {unit.text!r}")
            return LAST_DAY_OF_MONTH
        value = self.expect(TokenKind.ORDINAL).value
        if self.at(TokenKind.UNIT) and self.peek().value == Frequency.DAILY:
            self.pos += 1
        return value

    def month_day_list(self) -> set[int]:
        days = {self.month_day()}
        while self.separator_before(TokenKind.ORDINAL, TokenKind.LAST, TokenKind.THE):
            days.add(self.month_day())
        return days

    # -- dates ---------------------------------------------------------

    def date_only(self) -> date:
        day, _ = self.date_expr()
        return day

    def date_expr(self) -> tuple[date, Optional[time]]:
        token = self.peek()
        if token is None:
            raise _unrecognized("Expected a date")
        if self.accept(TokenKind.RELATIVE_DAY):
            return self.today + timedelta(days=token.value), None
        if self.accept(TokenKind.NEXT):
            weekdays = self.expect(TokenKind.WEEKDAY).value
            return self._weekday_on_or_after(weekdays, self.today + timedelta(days=1)), None
        if self.accept(TokenKind.WEEKDAY):
            return self._weekday_on_or_after(token.value, self.today), None
        if self.accept(TokenKind.IN):
            amount = self.expect(TokenKind.NUMBER).value
            if amount < 0:
                raise ParseError(ParseErrorKind.INVALID_INTERVAL, f"Offset must not be negative, got {amount}")
            unit = self.expect(TokenKind.UNIT).value
            return self.today + relativedelta(**{UNIT_STEPS[unit]: amount}), None
        if self.accept(TokenKind.DATETIME):
            moment: datetime = token.value
            if moment.tzinfo is not None:
                moment = moment.astimezone(zone_for(self.timezone))
            return moment.date(), moment.time().replace(tzinfo=None)
        if self.accept(TokenKind.DATE):
            if isinstance(token.value, date):
                return token.value, None
            return self._slash_date(token), None
        if self.at(TokenKind.MONTH):
            month = self.expect(TokenKind.MONTH).value
            day = self.expect(TokenKind.NUMBER, TokenKind.ORDINAL).value
            return self._calendar_date(month, day), None
        if self.at(TokenKind.NUMBER, TokenKind.ORDINAL) and self.at(TokenKind.MONTH, offset=1):
            day = self.expect(TokenKind.NUMBER, TokenKind.ORDINAL).value
            month = self.expect(TokenKind.MONTH).value
            return self._calendar_date(month, day), None
        raise _unrecognized(f"Not a date: {token.text!r}")

    def _weekday_on_or_after(self, weekdays: tuple[int, ...], first: date) -> date:
        if len(weekdays) != 1:
            raise ParseError(ParseErrorKind.AMBIGUOUS_DATE, "A weekday group names more than one day")
        return first + timedelta(days=(weekdays[0] - first.weekday()) % 7)

    def _year(self) -> Optional[int]:
        if self.at(TokenKind.COMMA) and self.at(TokenKind.NUMBER, offset=1):
            self.pos += 1
        if self.at(TokenKind.NUMBER) and self.peek().value >= 1000:
            return self.expect(TokenKind.NUMBER).value
        return None

    def _calendar_date(self, month: int, day: int) -> date:
        year = self._year()
        try:
            if year is not None:
                return date(year, month, day)
            candidate = date(self.today.year, month, day)
            if candidate < self.today:
                candidate = date(self.today.year + 1, month, day)
            return candidate
        except ValueError as exc:
            raise _unrecognized(f"Invalid date: month {month}, day {day}") from exc

    def _slash_date(self, token: Token) -> date:
        first, second, *rest = token.value
        year = rest[0] if rest else self.today.year
        if year < 100:
            year += 2000
        candidates = set()
        for month, day in ((first, second), (second, first)):
            try:
                candidates.add(date(year, month, day))
            except ValueError:
                continue
        if not candidates:
            raise _unrecognized(f"Invalid date {token.text!r}")
        if len(candidates) > 1:
            raise ParseError(
                ParseErrorKind.AMBIGUOUS_DATE,
                f"{token.text!r} could be {' or '.join(sorted(c.isoformat() for c in candidates))}",
            )
        return candidates.pop()

    def time_expr(self) -> time:
        token = self.expect(TokenKind.CLOCK, TokenKind.NUMBER, TokenKind.NAMED_TIME)
        if token.kind == TokenKind.NAMED_TIME:
            return time(token.value)
        if token.kind == TokenKind.NUMBER:
            hour, minute = token.value, 0
            meridiem = self.accept(TokenKind.MERIDIEM)
            meridiem = meridiem.value if meridiem else None
        else:
            hour, minute, meridiem = token.value
        if meridiem is not None:
            if not 1 <= hour <= 12:
                raise _unrecognized(f"Invalid time {token.text!r}")
            hour = hour % 12 + (12 if meridiem == "pm" else 0)
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise _unrecognized(f"Invalid time {token.text!r}")
        return time(hour, minute)

    def fixed(self) -> tuple[date, Optional[time]]:
        if self.at(TokenKind.AT, TokenKind.CLOCK, TokenKind.NAMED_TIME):
            self.accept(TokenKind.AT)
            moment = self.time_expr()
            day = self.date_only() if not self.done() else self.today
            return day, moment
        day, moment = self.date_expr()
        if not self.done() and moment is None:
            self.accept(TokenKind.AT)
            moment = self.time_expr()
        return day, moment


def _local_today(timezone: str, now: Instant) -> date:
    zone = zone_for(timezone)
    return to_instant(now, timezone).astimezone(zone).date()


def _is_machine_text(text: str) -> bool:
    return "freq=" in text.lower()


def parse_recurrence(text: str, timezone: str, now: Instant) -> ParseResult[RecurrenceRule]:
    try:
        today = _local_today(timezone, now)
        if _is_machine_text(text):
            return ParseResult(value=deserialize(text))
        parser = _Parser(tokenize(text), today, timezone)
        if parser.done():
            raise _unrecognized("Empty recurrence")
        return ParseResult(value=parser.rule())
    except ParseError as exc:
        return ParseResult(error=exc)


def parse_fixed_date(text: str, timezone: str, now: Instant) -> ParseResult[FixedDueDate]:
    try:
        today = _local_today(timezone, now)
        parser = _Parser(tokenize(text), today, timezone)
        if parser.done():
            raise _unrecognized("Empty date")
        day, moment = parser.fixed()
        if not parser.done():
            raise _unrecognized(f"Unexpected {parser.peek().text!r}")
        return ParseResult(value=FixedDueDate(day=day, time_of_day=moment, timezone=timezone))
    except ParseError as exc:
        return ParseResult(error=exc)


def parse_schedule(text: str, timezone: str, now: Instant, is_recurring: bool) -> ParseResult[HabitSchedule]:
    if is_recurring:
        return parse_recurrence(text, timezone, now)
    return parse_fixed_date(text, timezone, now)
