from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field

from ccal.core.config import CCalConfig
from ccal.core.ephemeris import EventTable, default_table
from ccal.core.errors import (
    CalendarError,
    DateNotInYear,
    InvalidDate,
    OutOfRange,
    TableError,
)
from ccal.core.julian import (
    Calendar,
    day_of_week,
    from_jdn,
    iso_weekday,
    sexagenary_day,
    to_jdn,
)
from ccal.core.lunisolar import (
    LunarYMD,
    build_for_year,
    gregorian_to_lunar,
    lunar_dates_between,
    principal_term_for,
    sexagenary_for_year,
)
from ccal.features.config import (
    day_name,
    lunar_month_display_name,
    principal_term_name,
    sexagenary_name,
)
from ccal.features.lunar_months import enrich_months

router = APIRouter(prefix="/api/v1", tags=["public"])

log = logging.getLogger("ccal.api.public")

_DATE_RE = re.compile(r"^(-?\d{1,6})-(\d{2})-(\d{2})$")


# ============================================================
# Response Models
# ============================================================
class LunarDate(BaseModel):
    year: int
    month: int
    day: int
    is_leap: bool = Field(default=False, description="true for a leap month")
    month_name: str
    day_name: str
    label: str
    year_sexagenary: int
    year_sexagenary_name: str


class TermInfo(BaseModel):
    longitude: int
    name: str
    date: str = Field(description="civil date (UTC+8) of the term")
    days_since: int


class DayResponse(BaseModel):
    date: str
    calendar: str
    gregorian_date: str
    jdn: int
    weekday: int = Field(description="0=Sunday .. 6=Saturday")
    iso_weekday: int
    sexagenary_day: int
    sexagenary_day_name: str
    lunar: LunarDate
    term: TermInfo


class RangeResponse(BaseModel):
    start: str
    end: str
    calendar: str
    days: List[DayResponse]


class AnnusMonth(BaseModel):
    pos: int
    month: int
    is_leap: bool
    month_name: str
    start_date: str
    end_date: str
    length: int
    zhongqi_name: Optional[str] = None
    zhongqi_date: Optional[str] = None


class AnnusResponse(BaseModel):
    annus: int
    month_count: int
    is_leap_year: bool
    leap_month: Optional[int] = None
    start_date: str
    end_date: str
    months: List[AnnusMonth]


# ============================================================
# Helpers: parsing & errors
# ============================================================
def _parse_calendar(calendar: str) -> Calendar:
    try:
        return Calendar(str(calendar).strip().lower())
    except ValueError as e:
        raise InvalidDate(f"Unknown calendar: {calendar} (expected 'gregorian' or 'julian')") from e


def _parse_date_jdn(s: str, calendar: Calendar) -> int:
    """
    YYYY-MM-DD (astronomical year, may be negative) -> JDN.
    """
    m = _DATE_RE.match(str(s).strip())
    if m is None:
        raise InvalidDate(f"Invalid date format: {s} (expected YYYY-MM-DD)")
    y, mo, d = (int(x) for x in m.groups())
    return to_jdn(y, mo, d, calendar=calendar)


def _http_error(e: CalendarError) -> HTTPException:
    if isinstance(e, InvalidDate):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, (OutOfRange, DateNotInYear)):
        return HTTPException(status_code=404, detail=str(e))
    log.exception("calendar computation failed: %s", e)
    return HTTPException(status_code=500, detail=str(e))


def get_table() -> EventTable:
    """
    Shared event table (dependency; override in tests).
    """
    try:
        return default_table()
    except (FileNotFoundError, TableError) as e:
        log.exception("event table load failed")
        raise HTTPException(status_code=500, detail=f"event table unavailable: {e}") from e


# =========================================================
# Public JSON API (function-style, HTTP-ready)
# =========================================================
def _format_lunar_label(month: int, day: int, is_leap: bool) -> str:
    prefix = "閏" if is_leap else ""
    return f"{prefix}{int(month):02d}/{int(day):02d}"


def _lunar_payload(l: LunarYMD) -> Dict[str, Any]:
    ys = sexagenary_for_year(l.year)
    return {
        "year": int(l.year),
        "month": int(l.month),
        "day": int(l.day),
        "is_leap": bool(l.is_leap),
        "month_name": lunar_month_display_name(int(l.month), bool(l.is_leap)),
        "day_name": day_name(int(l.day)),
        "label": _format_lunar_label(l.month, l.day, l.is_leap),
        "year_sexagenary": ys,
        "year_sexagenary_name": sexagenary_name(ys),
    }


def _day_payload(jdn: int, calendar: Calendar, l: LunarYMD, table: EventTable) -> Dict[str, Any]:
    td = principal_term_for(jdn, table)
    sd = sexagenary_day(jdn)
    return {
        "date": from_jdn(jdn, calendar=calendar).iso(),
        "calendar": calendar.value,
        "gregorian_date": from_jdn(jdn).iso(),
        "jdn": jdn,
        "weekday": day_of_week(jdn),
        "iso_weekday": iso_weekday(jdn),
        "sexagenary_day": sd,
        "sexagenary_day_name": sexagenary_name(sd),
        "lunar": _lunar_payload(l),
        "term": {
            "longitude": td.longitude,
            "name": principal_term_name(td.longitude),
            "date": from_jdn(td.term.day).iso(),
            "days_since": td.days_since,
        },
    }


def get_calendar_day(
    date_: str,
    *,
    calendar: str = "gregorian",
    table: Optional[EventTable] = None,
    config: CCalConfig = CCalConfig(),
) -> Dict[str, Any]:
    """
    One day as a JSON-ready dict. Core errors propagate unchanged.
    """
    cal = _parse_calendar(calendar)
    tbl = table if table is not None else default_table(config=config.table)
    jdn = _parse_date_jdn(date_, cal)
    return _day_payload(jdn, cal, gregorian_to_lunar(jdn, tbl, config=config.lunisolar), tbl)


def get_calendar_range(
    start: str,
    end: str,
    *,
    calendar: str = "gregorian",
    table: Optional[EventTable] = None,
    config: CCalConfig = CCalConfig(),
) -> Dict[str, Any]:
    """
    [start, end] inclusive, one annus reconstruction per lunisolar year touched.
    """
    cal = _parse_calendar(calendar)
    tbl = table if table is not None else default_table(config=config.table)
    j0 = _parse_date_jdn(start, cal)
    j1 = _parse_date_jdn(end, cal)
    if j1 < j0:
        raise InvalidDate("end must be >= start")

    days = [_day_payload(j, cal, l, tbl) for j, l in lunar_dates_between(j0, j1 + 1, tbl, config=config.lunisolar)]
    return {
        "start": from_jdn(j0, calendar=cal).iso(),
        "end": from_jdn(j1, calendar=cal).iso(),
        "calendar": cal.value,
        "days": days,
    }


def get_annus(
    year: int,
    *,
    table: Optional[EventTable] = None,
    config: CCalConfig = CCalConfig(),
) -> Dict[str, Any]:
    tbl = table if table is not None else default_table(config=config.table)
    annus = build_for_year(int(year), tbl, config=config.lunisolar)
    leap = annus.leap_month
    return {
        "annus": annus.annus,
        "month_count": annus.month_count,
        "is_leap_year": annus.is_leap_year,
        "leap_month": leap.month.number if leap is not None else None,
        "start_date": from_jdn(annus.start).iso(),
        "end_date": from_jdn(annus.end).iso(),
        "months": [
            {
                "pos": m.pos,
                "month": m.month_no,
                "is_leap": m.is_leap,
                "month_name": m.month_name,
                "start_date": m.start_date,
                "end_date": m.end_date,
                "length": m.length,
                "zhongqi_name": m.zhongqi_name,
                "zhongqi_date": m.zhongqi_date,
            }
            for m in enrich_months(annus)
        ],
    }


# ============================================================
# Endpoints
# ============================================================
@router.get("/day", response_model=DayResponse)
def get_day(
    date_str: str = Query(..., alias="date", description="YYYY-MM-DD"),
    calendar: str = Query("gregorian", description="gregorian | julian"),
    timing: bool = Query(False, description="log timing"),
    table: EventTable = Depends(get_table),
) -> DayResponse:
    t0 = time.perf_counter()
    try:
        payload = get_calendar_day(date_str, calendar=calendar, table=table)
    except CalendarError as e:
        raise _http_error(e) from e
    t1 = time.perf_counter()

    if timing:
        log.warning("timing /day date=%s calendar=%s total=%.3fs", date_str, calendar, t1 - t0)

    return DayResponse(**payload)


@router.get("/range", response_model=RangeResponse)
def get_range(
    start_str: str = Query(..., alias="start", description="YYYY-MM-DD"),
    end_str: str = Query(..., alias="end", description="YYYY-MM-DD"),
    calendar: str = Query("gregorian", description="gregorian | julian"),
    limit_days: int = Query(370, ge=1, le=2000, description="maximum number of days"),
    timing: bool = Query(False, description="log timing"),
    table: EventTable = Depends(get_table),
) -> RangeResponse:
    try:
        cal = _parse_calendar(calendar)
        j0 = _parse_date_jdn(start_str, cal)
        j1 = _parse_date_jdn(end_str, cal)
    except CalendarError as e:
        raise _http_error(e) from e

    if j1 < j0:
        raise HTTPException(status_code=422, detail="end must be >= start")

    days_count = j1 - j0 + 1
    if days_count > limit_days:
        raise HTTPException(status_code=422, detail=f"range too large: {days_count} days (limit_days={limit_days})")

    t0 = time.perf_counter()
    try:
        payload = get_calendar_range(start_str, end_str, calendar=calendar, table=table)
    except CalendarError as e:
        raise _http_error(e) from e
    t1 = time.perf_counter()

    if timing:
        log.warning(
            "timing /range start=%s end=%s calendar=%s days=%d total=%.3fs",
            start_str, end_str, calendar, days_count, t1 - t0,
        )

    return RangeResponse(**payload)


@router.get("/annus/{year}", response_model=AnnusResponse)
def get_annus_endpoint(
    year: int = Path(..., description="Gregorian year of the closing winter solstice"),
    table: EventTable = Depends(get_table),
) -> AnnusResponse:
    try:
        payload = get_annus(year, table=table)
    except CalendarError as e:
        raise _http_error(e) from e
    return AnnusResponse(**payload)
