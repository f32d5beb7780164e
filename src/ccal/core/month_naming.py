# src/ccal/core/month_naming.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .ephemeris import EventTime


class MonthKind(str, Enum):
    COMMON = "common"
    LEAP = "leap"


@dataclass(frozen=True)
class Month:
    """
    Month designation: kind (common / leap) and number 1..12.

    A leap month carries the number of the month it follows.
    """
    kind: MonthKind
    number: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", MonthKind(self.kind))
        n = int(self.number)
        if not (1 <= n <= 12):
            raise ValueError(f"month number must be in 1..12 (got {self.number})")
        object.__setattr__(self, "number", n)

    @classmethod
    def common(cls, number: int) -> "Month":
        return cls(MonthKind.COMMON, number)

    @classmethod
    def leap(cls, number: int) -> "Month":
        return cls(MonthKind.LEAP, number)

    @property
    def is_leap(self) -> bool:
        return self.kind == MonthKind.LEAP

    @property
    def label(self) -> str:
        if self.is_leap:
            return f"M{self.number:02d} (LEAP)"
        return f"M{self.number:02d}"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class LunarMonth:
    """
    One month of an annus on civil days: [start, start + length)

    pos:
      0-based position in the annus (0 is the winter-solstice month)
    zhongqi:
      first principal term falling in the month, None for a leap month
    """
    pos: int
    month: Month
    start: int
    length: int
    new_moon: EventTime
    zhongqi: Optional[EventTime] = None

    @property
    def end(self) -> int:
        return self.start + self.length

    @property
    def is_leap(self) -> bool:
        return self.month.is_leap

    def contains(self, jdn: int) -> bool:
        return self.start <= int(jdn) < self.end

    @property
    def label(self) -> str:
        return self.month.label
