# src/ccal/core/julian.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Tuple

from .errors import InvalidDate


class Calendar(str, Enum):
    GREGORIAN = "gregorian"
    JULIAN = "julian"


# JDN 2451545 (2000-01-01) is a Saturday
REFERENCE_JDN = 2451545
_WEEKDAY_OFFSET = 1

_DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


@dataclass(frozen=True)
class CalendarDate:
    """
    A proleptic Gregorian (or Julian) date together with its Julian Day Number.

    year uses astronomical numbering: 1 BC is 0, 2 BC is -1.
    """
    year: int
    month: int
    day: int
    jdn: int
    calendar: Calendar = Calendar.GREGORIAN

    @property
    def ymd(self) -> Tuple[int, int, int]:
        return (self.year, self.month, self.day)

    def iso(self) -> str:
        sign = "-" if self.year < 0 else ""
        return f"{sign}{abs(self.year):04d}-{self.month:02d}-{self.day:02d}"


def is_leap_year(year: int, calendar: Calendar = Calendar.GREGORIAN) -> bool:
    if calendar == Calendar.JULIAN:
        return year % 4 == 0
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def days_in_month(year: int, month: int, calendar: Calendar = Calendar.GREGORIAN) -> int:
    if not (1 <= month <= 12):
        raise InvalidDate(f"month out of range: {month}")
    if month == 2 and is_leap_year(year, calendar):
        return 29
    return _DAYS_IN_MONTH[month - 1]


def to_jdn(year: int, month: int, day: int, *, calendar: Calendar = Calendar.GREGORIAN) -> int:
    """
    Calendar date -> Julian Day Number.

    Floor division keeps the formula valid for years before -4800 as well.

    Raises
    ------
    InvalidDate
        If month is not in 1..12 or the day does not exist in that month.
    """
    y, m, d = int(year), int(month), int(day)
    n = days_in_month(y, m, calendar)
    if not (1 <= d <= n):
        raise InvalidDate(f"day out of range: {y:04d}-{m:02d}-{d:02d} (month has {n} days)")

    a = (14 - m) // 12
    yy = y + 4800 - a
    mm = m + 12 * a - 3
    jdn = d + (153 * mm + 2) // 5 + 365 * yy + yy // 4
    if calendar == Calendar.JULIAN:
        return jdn - 32083
    return jdn - yy // 100 + yy // 400 - 32045


def from_jdn(jdn: int, *, calendar: Calendar = Calendar.GREGORIAN) -> CalendarDate:
    """Julian Day Number -> calendar date. Total over all integers."""
    j = int(jdn)
    if calendar == Calendar.JULIAN:
        b = 0
        c = j + 32082
    else:
        a = j + 32044
        b = (4 * a + 3) // 146097
        c = a - (146097 * b) // 4

    d = (4 * c + 3) // 1461
    e = c - (1461 * d) // 4
    m = (5 * e + 2) // 153

    day = e - (153 * m + 2) // 5 + 1
    month = m + 3 - 12 * (m // 10)
    year = 100 * b + d - 4800 + m // 10
    return CalendarDate(year=year, month=month, day=day, jdn=j, calendar=calendar)


def jdn_from_date(d: date) -> int:
    return to_jdn(d.year, d.month, d.day)


def day_of_week(jdn: int) -> int:
    """0=Sunday .. 6=Saturday."""
    return (int(jdn) + _WEEKDAY_OFFSET) % 7


def iso_weekday(jdn: int) -> int:
    """1=Monday .. 7=Sunday."""
    return int(jdn) % 7 + 1


def iso_year_week(jdn: int) -> Tuple[int, int]:
    """
    ISO-8601 week-numbering (year, week) of the day.
    The week belongs to the year that contains its Thursday.
    """
    thursday = int(jdn) - iso_weekday(jdn) + 4
    iso_year = from_jdn(thursday).year
    week = (thursday - to_jdn(iso_year, 1, 1)) // 7 + 1
    return iso_year, week


def sexagenary_day(jdn: int) -> int:
    """Sexagenary day number, 1 (甲子) .. 60 (癸亥)."""
    return (int(jdn) + 49) % 60 + 1
