# src/ccal/core/lunisolar.py
from __future__ import annotations

import os
import sys

from bisect import bisect_right
from dataclasses import dataclass
from datetime import date
from typing import Iterator, List, NamedTuple, Optional, Tuple, Union

from .config import LuniSolarConfig
from .ephemeris import EventTable, EventTime
from .errors import DateNotInYear, InconsistentYearStructure
from .julian import from_jdn, jdn_from_date
from .leap_month import (
    LunarSpan,
    assign_month_numbers,
    decide_leap_month,
    first_zhongqi_in_span,
    lunar_spans_for_window,
)
from .month_naming import LunarMonth, Month
from .solstice_anchor import SolsticeWindow, solstice_window_for, solstice_window_for_year

DayLike = Union[int, date]


# ============================================================
# env helpers
# ============================================================

def _env_truthy(name: str) -> bool:
    v = os.environ.get(name, "")
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _debug_enabled() -> bool:
    return _env_truthy("CCAL_DEBUG_LUNISOLAR")


def _debug_print(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


def _as_jdn(d: DayLike) -> int:
    if isinstance(d, date):
        return jdn_from_date(d)
    return int(d)


def _debug_dump_months(annus: "Annus") -> None:
    if not _debug_enabled():
        return
    leap = annus.leap_month
    _debug_print(
        f"[CCAL_DEBUG_LUNISOLAR] annus={annus.annus} months={annus.month_count} "
        f"leap={leap.label if leap is not None else '-'} "
        f"span={from_jdn(annus.start).iso()}..{from_jdn(annus.end).iso()}"
    )
    for m in annus.months:
        zq = f"{m.zhongqi.longitude:03d}@{from_jdn(m.zhongqi.day).iso()}" if m.zhongqi is not None else "-"
        _debug_print(
            f"  month[pos={m.pos:02d}] {m.label:<11} start={from_jdn(m.start).iso()} "
            f"length={m.length} zq={zq}"
        )


# ============================================================
# Public types
# ============================================================

class YMD(NamedTuple):
    """(gregorian_year, Month, day) as returned by ymd_for."""
    year: int
    month: Month
    day: int


@dataclass(frozen=True)
class LunarYMD:
    """
    Lunar year / month / day / leap flag (the flat form the API serves)
    """
    year: int
    month: int
    day: int
    is_leap: bool


@dataclass(frozen=True)
class TermDay:
    """
    Principal term in force on a day.

    days_since:
      0 on the day of the term itself
    """
    term: EventTime
    longitude: int
    days_since: int


@dataclass(frozen=True)
class Annus:
    """
    One reconstructed lunisolar year: the months between two consecutive
    winter-solstice months.

    annus:
      Gregorian year of the closing winter solstice
    """
    annus: int
    window: SolsticeWindow
    months: Tuple[LunarMonth, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "months", tuple(self.months))
        # bisect keys
        object.__setattr__(self, "_month_starts", [m.start for m in self.months])

    @classmethod
    def from_date(cls, jdn: DayLike, table: EventTable) -> "Annus":
        return build(_as_jdn(jdn), table)

    @classmethod
    def for_year(cls, year: int, table: EventTable) -> "Annus":
        return build_for_year(year, table)

    @property
    def start(self) -> int:
        return self.months[0].start

    @property
    def end(self) -> int:
        return self.months[-1].end

    @property
    def month_count(self) -> int:
        return len(self.months)

    @property
    def is_leap_year(self) -> bool:
        return self.month_count == 13

    @property
    def leap_month(self) -> Optional[LunarMonth]:
        for m in self.months:
            if m.is_leap:
                return m
        return None

    def contains(self, jdn: int) -> bool:
        return self.start <= int(jdn) < self.end

    def month_for(self, jdn: DayLike) -> LunarMonth:
        j = _as_jdn(jdn)
        if j < self.start:
            raise DateNotInYear(j, "before", self.start, self.end)
        if j >= self.end:
            raise DateNotInYear(j, "after", self.start, self.end)
        i = bisect_right(self._month_starts, j) - 1
        return self.months[i]

    def ymd_for(self, jdn: DayLike) -> YMD:
        return ymd_for(self, jdn)


# ============================================================
# Annus engine
# ============================================================

def _months_from_spans(
    spans: List[LunarSpan],
    numbers: List[Month],
    table: EventTable,
    config: LuniSolarConfig,
) -> List[LunarMonth]:
    out: List[LunarMonth] = []
    prev_end: Optional[int] = None

    for sp, month in zip(spans, numbers):
        if not (config.min_month_days <= sp.length <= config.max_month_days):
            raise InconsistentYearStructure(
                f"month {month.label} from {from_jdn(sp.start).iso()} has {sp.length} days"
            )
        if prev_end is not None and sp.start != prev_end:
            raise InconsistentYearStructure(
                f"month {month.label} starts {from_jdn(sp.start).iso()}, previous ended {from_jdn(prev_end).iso()}"
            )
        zq = None if month.is_leap else first_zhongqi_in_span(sp, table)
        out.append(
            LunarMonth(
                pos=sp.pos,
                month=month,
                start=sp.start,
                length=sp.length,
                new_moon=sp.new_moon,
                zhongqi=zq,
            )
        )
        prev_end = sp.end

    return out


def _build_from_window(
    window: SolsticeWindow,
    table: EventTable,
    config: LuniSolarConfig,
) -> Annus:
    spans = lunar_spans_for_window(window, table)
    if len(spans) != window.month_count:
        raise InconsistentYearStructure(f"spans={len(spans)} but window counted {window.month_count} months")

    dec = decide_leap_month(spans, table)
    numbers = assign_month_numbers(
        len(spans),
        leap_span_pos=dec.leap_span_pos,
        anchor_month_no=config.anchor_month_no,
    )
    months = _months_from_spans(spans, numbers, table, config)

    annus = Annus(
        annus=window.end_anchor.gregorian_year,
        window=window,
        months=tuple(months),
    )
    _debug_dump_months(annus)
    return annus


def build(anchor_jdn: int, table: EventTable, *, config: LuniSolarConfig = LuniSolarConfig()) -> Annus:
    """
    Reconstruct the lunisolar year whose months contain anchor_jdn.

    Raises
    ------
    OutOfRange
        the year needs events beyond the loaded table
    InconsistentYearStructure
        neither 12 nor 13 months, or no leap month candidate
    """
    window = solstice_window_for(int(anchor_jdn), table)
    return _build_from_window(window, table, config)


def build_for_year(year: int, table: EventTable, *, config: LuniSolarConfig = LuniSolarConfig()) -> Annus:
    """Reconstruct the lunisolar year closed by the winter solstice of Gregorian `year`."""
    window = solstice_window_for_year(int(year), table)
    return _build_from_window(window, table, config)


# ============================================================
# Resolver
# ============================================================

def _year_label(annus: Annus, month: Month) -> int:
    # months 11 and 12 open the window in the previous Gregorian year
    if month.number >= 11:
        return annus.annus - 1
    return annus.annus


def ymd_for(annus: Annus, jdn: DayLike) -> YMD:
    """
    (gregorian_year, Month, day) of a day inside the annus.

    Raises DateNotInYear when the day belongs to another annus.
    """
    j = _as_jdn(jdn)
    m = annus.month_for(j)
    return YMD(year=_year_label(annus, m.month), month=m.month, day=j - m.start + 1)


def gregorian_to_lunar(
    d: DayLike,
    table: EventTable,
    *,
    annus: Optional[Annus] = None,
    config: LuniSolarConfig = LuniSolarConfig(),
) -> LunarYMD:
    """
    Calendar day (JDN or datetime.date, Gregorian) -> lunar year/month/day/leap.

    Pass the annus when it is already known to skip the reconstruction.
    """
    j = _as_jdn(d)
    if annus is None or not annus.contains(j):
        annus = build(j, table, config=config)
    ymd = ymd_for(annus, j)
    return LunarYMD(year=ymd.year, month=ymd.month.number, day=ymd.day, is_leap=ymd.month.is_leap)


def lunar_dates_between(
    start: DayLike,
    end: DayLike,
    table: EventTable,
    *,
    config: LuniSolarConfig = LuniSolarConfig(),
) -> Iterator[Tuple[int, LunarYMD]]:
    """
    [start, end) day by day. One annus is reused until the days leave it.
    """
    j = _as_jdn(start)
    j_end = _as_jdn(end)
    annus: Optional[Annus] = None
    while j < j_end:
        if annus is None or not annus.contains(j):
            annus = build(j, table, config=config)
        yield j, gregorian_to_lunar(j, table, annus=annus, config=config)
        j += 1


def principal_term_for(d: DayLike, table: EventTable) -> TermDay:
    """The principal term in force on a day: the latest one on or before it."""
    j = _as_jdn(d)
    t = table.principal_term_on_or_before(j)
    return TermDay(term=t, longitude=int(t.longitude), days_since=j - t.day)


def sexagenary_for_year(year: int) -> int:
    """
    Sexagenary number (1 = 甲子) of the lunar year labelled `year`.
    -2696 is 1, 1984 is 1, 2000 is 17.
    """
    return (int(year) + 2696) % 60 + 1
