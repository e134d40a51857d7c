"""Words understood by the recurrence and date grammar.

Every word the tokenizer recognizes is listed in ``VOCABULARY`` together with
the token kind the parser consumes and the value it carries. Anything not in
the table (and not a number, ordinal, date or time literal) makes the input
unrecognized.
"""
from __future__ import annotations

from enum import StrEnum
from typing import Any, NamedTuple

from scheduler.domain.enums import Frequency


class TokenKind(StrEnum):
    EVERY = "every"              # every, each
    FREQUENCY = "frequency"      # daily, weekly, ... -> Frequency
    UNIT = "unit"                # day(s), week(s), ... -> Frequency
    WEEKDAY = "weekday"          # monday, mon, mondays -> (0,)
    MONTH = "month"              # january, jan -> 1
    NUMBER = "number"            # 3, -1, three, other -> int
    ORDINAL = "ordinal"          # 1st, first -> int
    LAST = "last"                # last
    ON = "on"
    IN = "in"
    AT = "at"
    THE = "the"
    AND = "and"
    COMMA = "comma"
    OF = "of"
    START = "start"              # starting, from, beginning
    UNTIL = "until"              # until, through
    FOR = "for"
    TIMES = "times"              # times, time, occurrences
    RELATIVE_DAY = "relative"    # today, tomorrow, yesterday -> day offset
    NEXT = "next"
    MERIDIEM = "meridiem"        # am, pm
    NAMED_TIME = "named_time"    # noon, midnight -> hour
    DATE = "date"                # ISO or slash date literal
    DATETIME = "datetime"        # ISO datetime literal
    CLOCK = "clock"              # 17:00, 5pm -> (hour, minute, meridiem)


class Word(NamedTuple):
    kind: TokenKind
    value: Any = None


WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)
UNIT_NAMES = {
    Frequency.DAILY: ("day", "days"),
    Frequency.WEEKLY: ("week", "weeks"),
    Frequency.MONTHLY: ("month", "months"),
    Frequency.YEARLY: ("year", "years"),
}
NUMBER_WORDS = (
    "one", "two", "three", "four", "five", "six",
    "seven", "eight", "nine", "ten", "eleven", "twelve",
)
ORDINAL_WORDS = (
    "first", "second", "third", "fourth", "fifth", "sixth", "seventh",
    "eighth", "ninth", "tenth", "eleventh", "twelfth",
)


def _build_vocabulary() -> dict[str, Word]:
    table: dict[str, Word] = {
        "every": Word(TokenKind.EVERY),
        "each": Word(TokenKind.EVERY),
        "daily": Word(TokenKind.FREQUENCY, Frequency.DAILY),
        "weekly": Word(TokenKind.FREQUENCY, Frequency.WEEKLY),
        "monthly": Word(TokenKind.FREQUENCY, Frequency.MONTHLY),
        "yearly": Word(TokenKind.FREQUENCY, Frequency.YEARLY),
        "annually": Word(TokenKind.FREQUENCY, Frequency.YEARLY),
        "weekday": Word(TokenKind.WEEKDAY, (0, 1, 2, 3, 4)),
        "weekdays": Word(TokenKind.WEEKDAY, (0, 1, 2, 3, 4)),
        "weekend": Word(TokenKind.WEEKDAY, (5, 6)),
        "weekends": Word(TokenKind.WEEKDAY, (5, 6)),
        "other": Word(TokenKind.NUMBER, 2),
        "last": Word(TokenKind.LAST),
        "on": Word(TokenKind.ON),
        "in": Word(TokenKind.IN),
        "at": Word(TokenKind.AT),
        "the": Word(TokenKind.THE),
        "and": Word(TokenKind.AND),
        "of": Word(TokenKind.OF),
        "starting": Word(TokenKind.START),
        "from": Word(TokenKind.START),
        "beginning": Word(TokenKind.START),
        "until": Word(TokenKind.UNTIL),
        "through": Word(TokenKind.UNTIL),
        "for": Word(TokenKind.FOR),
        "times": Word(TokenKind.TIMES),
        "time": Word(TokenKind.TIMES),
        "occurrences": Word(TokenKind.TIMES),
        "today": Word(TokenKind.RELATIVE_DAY, 0),
        "tomorrow": Word(TokenKind.RELATIVE_DAY, 1),
        "yesterday": Word(TokenKind.RELATIVE_DAY, -1),
        "next": Word(TokenKind.NEXT),
        "am": Word(TokenKind.MERIDIEM, "am"),
        "pm": Word(TokenKind.MERIDIEM, "pm"),
        "noon": Word(TokenKind.NAMED_TIME, 12),
        "midnight": Word(TokenKind.NAMED_TIME, 0),
    }
    for index, name in enumerate(WEEKDAY_NAMES):
        for spelling in (name, name + "s", name[:3]):
            table[spelling] = Word(TokenKind.WEEKDAY, (index,))
    table["tues"] = table["tue"]
    table["thur"] = table["thurs"] = table["thu"]
    for index, name in enumerate(MONTH_NAMES, start=1):
        table[name] = Word(TokenKind.MONTH, index)
        table[name[:3]] = Word(TokenKind.MONTH, index)
    table["sept"] = table["sep"]
    for frequency, spellings in UNIT_NAMES.items():
        for spelling in spellings:
            table[spelling] = Word(TokenKind.UNIT, frequency)
    for index, name in enumerate(NUMBER_WORDS, start=1):
        table[name] = Word(TokenKind.NUMBER, index)
    for index, name in enumerate(ORDINAL_WORDS, start=1):
        table[name] = Word(TokenKind.ORDINAL, index)
    return table


VOCABULARY = _build_vocabulary()


def ordinal_suffix(number: int) -> str:
    if 10 <= number % 100 <= 20:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
