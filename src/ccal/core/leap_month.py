# src/ccal/core/leap_month.py
from __future__ import annotations

import os
import sys
from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .ephemeris import EventTable, EventTime
from .errors import InconsistentYearStructure
from .julian import from_jdn
from .month_naming import Month
from .solstice_anchor import SolsticeWindow

# ============================
# Data models
# ============================

@dataclass(frozen=True)
class LunarSpan:
    """
    One synodic month on civil days: [start, end)
    """
    pos: int
    new_moon: EventTime
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class LeapDecision:
    """
    Step4 output:
      - leap_span_pos: 0-based position within the spans (None if common year)
      - no_zhongqi_positions: every span position that has no principal term
    """
    leap_span_pos: Optional[int]
    no_zhongqi_positions: List[int]


def _debug_enabled() -> bool:
    return os.getenv("CCAL_DEBUG_LUNISOLAR", "").strip().lower() in ("1", "true", "yes", "y", "on")


def _debug_dump_spans_and_terms(spans: Sequence[LunarSpan], table: EventTable) -> None:
    print("[CCAL_DEBUG_LUNISOLAR] spans:", file=sys.stderr)
    for s in spans:
        print(
            f"  span[pos={s.pos}] start={from_jdn(s.start).iso()} end={from_jdn(s.end).iso()} "
            f"new_moon_tdb={s.new_moon.tdb:.5f}",
            file=sys.stderr,
        )
        inside = table.principal_terms_between(s.start, s.end)
        if inside:
            for t in inside:
                print(f"    term deg={t.longitude:03d} tdb={t.tdb:.5f} day={from_jdn(t.day).iso()}", file=sys.stderr)
        else:
            print("    (no zhongqi terms in this span)", file=sys.stderr)


# ============================
# Span building
# ============================

def lunar_spans_for_window(window: SolsticeWindow, table: EventTable) -> List[LunarSpan]:
    """
    Spans between the window's two month-11 new moons.
    The last span ends at the closing anchor's new moon.
    """
    moons = table.new_moons_between(window.start, window.end)
    bounds = [m.day for m in moons] + [window.end]

    out: List[LunarSpan] = []
    for pos, nm in enumerate(moons):
        out.append(LunarSpan(pos=pos, new_moon=nm, start=bounds[pos], end=bounds[pos + 1]))
    return out


# ============================
# Zhongqi presence
# ============================

def _term_pos_in_spans_daybasis(spans: Sequence[LunarSpan], term_day: int) -> Optional[int]:
    """
    Assign a term to a span by civil day.
    Rule: span_start_day <= term_day < span_end_day
    """
    if not spans:
        return None
    starts = [s.start for s in spans]
    i = bisect_right(starts, int(term_day)) - 1
    if i < 0:
        return None
    if spans[i].start <= term_day < spans[i].end:
        return i
    return None


def spans_with_zhongqi(spans: Sequence[LunarSpan], table: EventTable) -> List[bool]:
    """
    For each span, True if it contains at least one principal term (day basis).
    """
    has = [False] * len(spans)
    if not spans:
        return has
    for e in table.principal_terms_between(spans[0].start, spans[-1].end):
        pos = _term_pos_in_spans_daybasis(spans, e.day)
        if pos is not None:
            has[pos] = True
    return has


def first_zhongqi_in_span(span: LunarSpan, table: EventTable) -> Optional[EventTime]:
    inside = table.principal_terms_between(span.start, span.end)
    return inside[0] if inside else None


# ============================
# Month numbering
# ============================

def assign_month_numbers(
    span_count: int,
    *,
    leap_span_pos: Optional[int],
    anchor_month_no: int = 11,
) -> List[Month]:
    """
    Rules:
      - span 0 is anchor_month_no (winter-solstice month => 11).
      - each next span increments the number (wrap 12->1).
      - the leap span repeats the previous number and does NOT advance the cycle.
    """
    if span_count <= 0:
        return []

    out: List[Month] = []
    cur = int(anchor_month_no)

    for pos in range(span_count):
        if pos == 0:
            out.append(Month.common(cur))
            continue

        if leap_span_pos is not None and pos == leap_span_pos:
            out.append(Month.leap(cur))
        else:
            cur = 1 if cur == 12 else (cur + 1)
            out.append(Month.common(cur))

    return out


# ============================
# Step4 decision
# ============================

def decide_leap_month(spans: Sequence[LunarSpan], table: EventTable) -> LeapDecision:
    """
    12 spans: common year, no leap month.
    13 spans: the first span after month 11 without a principal term is the leap month.
    """
    span_count = len(spans)
    has_zh = spans_with_zhongqi(spans, table)
    no_zh = [i for i, v in enumerate(has_zh) if not v]

    if _debug_enabled():
        print(f"[CCAL_DEBUG_LUNISOLAR] span_count={span_count} no_zh(pos)={no_zh}", file=sys.stderr)
        _debug_dump_spans_and_terms(spans, table)

    if span_count == 12:
        return LeapDecision(leap_span_pos=None, no_zhongqi_positions=no_zh)

    if span_count != 13:
        raise InconsistentYearStructure(f"span_count={span_count} (expected 12 or 13)")

    # month 11 (pos 0) is never a candidate. pos 1 still can be, which
    # gives Leap(11) (2033); accepted as is, see DESIGN.md "Leap month number".
    for pos in no_zh:
        if pos >= 1:
            return LeapDecision(leap_span_pos=pos, no_zhongqi_positions=no_zh)

    raise InconsistentYearStructure(
        f"13 months from {from_jdn(spans[0].start).iso()} but every month after month 11 has a principal term"
    )
