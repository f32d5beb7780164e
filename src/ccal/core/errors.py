# src/ccal/core/errors.py
from __future__ import annotations

from typing import Literal, Optional


class CalendarError(Exception):
    """Base class for every error raised by ccal."""


class InvalidDate(CalendarError, ValueError):
    """A (year, month, day) triple that does not exist in the calendar."""


class OutOfRange(CalendarError, LookupError):
    """A day or instant outside the loaded event table's coverage."""


class TableError(CalendarError):
    """The astronomical data source failed an integrity check at load time."""


class MalformedTable(TableError):
    """
    A record could not be parsed, or events are not strictly increasing.

    line_num / field_num are 1-based and refer to the source text, when known.
    """

    def __init__(self, message: str, *, line_num: Optional[int] = None, field_num: Optional[int] = None) -> None:
        where = []
        if line_num is not None:
            where.append(f"line {line_num}")
        if field_num is not None:
            where.append(f"field {field_num}")
        super().__init__(f"{message} ({', '.join(where)})" if where else message)
        self.line_num = line_num
        self.field_num = field_num


class IncompleteTable(TableError):
    """The table lacks full coverage (missing terms or new moons)."""


class InconsistentYearStructure(CalendarError, RuntimeError):
    """An Annus reconstruction broke the 12/13-month or leap-month invariant."""


class DateNotInYear(CalendarError, LookupError):
    """A day presented to ymd_for lies outside the given Annus."""

    def __init__(self, jdn: int, side: Literal["before", "after"], start: int, end: int) -> None:
        super().__init__(f"jdn={jdn} is {side} annus span [{start}, {end})")
        self.jdn = jdn
        self.side = side
        self.start = start
        self.end = end
