# src/ccal/core/solstice_anchor.py
from __future__ import annotations

from dataclasses import dataclass

from .errors import InconsistentYearStructure
from .ephemeris import WINTER_SOLSTICE, EventTable, EventTime
from .julian import from_jdn, to_jdn


@dataclass(frozen=True)
class SolsticeAnchor:
    """
    Winter-solstice anchor for lunisolar month numbering.

    new_moon:
      latest new moon whose civil day is at or before the solstice's
      => its month is month 11
    """
    solstice: EventTime
    new_moon: EventTime

    @property
    def gregorian_year(self) -> int:
        return from_jdn(self.solstice.day).year


@dataclass(frozen=True)
class SolsticeWindow:
    """
    Two consecutive winter-solstice anchors; the months of one annus run
    from start_anchor.new_moon (inclusive) to end_anchor.new_moon (exclusive).
    """
    start_anchor: SolsticeAnchor
    end_anchor: SolsticeAnchor
    month_count: int

    @property
    def start(self) -> int:
        return self.start_anchor.new_moon.day

    @property
    def end(self) -> int:
        return self.end_anchor.new_moon.day

    @property
    def is_leap_year(self) -> bool:
        return self.month_count == 13


def anchor_for_solstice(solstice: EventTime, table: EventTable) -> SolsticeAnchor:
    if solstice.longitude_index != WINTER_SOLSTICE:
        raise ValueError(f"not a winter solstice: longitude={solstice.longitude}")
    return SolsticeAnchor(solstice=solstice, new_moon=table.new_moon_before(solstice.day))


def _window(ws0: EventTime, ws1: EventTime, table: EventTable) -> SolsticeWindow:
    a0 = anchor_for_solstice(ws0, table)
    a1 = anchor_for_solstice(ws1, table)

    month_count = len(table.new_moons_between(a0.new_moon.day, a1.new_moon.day))
    if month_count not in (12, 13):
        raise InconsistentYearStructure(
            f"{month_count} new moons between solstice months "
            f"{from_jdn(a0.new_moon.day).iso()}..{from_jdn(a1.new_moon.day).iso()} (expected 12 or 13)"
        )
    return SolsticeWindow(start_anchor=a0, end_anchor=a1, month_count=month_count)


def solstice_window_for(anchor_jdn: int, table: EventTable) -> SolsticeWindow:
    """
    The solstice window whose months contain anchor_jdn.

    WS0 is normally the last winter solstice at or before anchor_jdn. A day
    between a solstice month's new moon and the solstice itself already
    belongs to the next window, so there the following solstice is WS0.
    """
    j = int(anchor_jdn)
    ws_next = table.solar_term_after(WINTER_SOLSTICE, j)

    if table.new_moon_before(ws_next.day).day <= j:
        ws0 = ws_next
        ws1 = table.next_solar_term(ws_next)
    else:
        ws0 = table.previous_solar_term(ws_next)
        ws1 = ws_next

    return _window(ws0, ws1, table)


def solstice_window_for_year(year: int, table: EventTable) -> SolsticeWindow:
    """
    The window closed by the winter solstice of Gregorian `year`.
    """
    # mid-December of `year` is always within a few days of its solstice
    ws1 = table.solar_term_near(WINTER_SOLSTICE, to_jdn(int(year), 12, 21))
    ws0 = table.previous_solar_term(ws1)
    return _window(ws0, ws1, table)
