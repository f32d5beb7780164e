from __future__ import annotations

import math
from pathlib import Path

import pytest

from ccal.core.config import EventTableConfig
from ccal.core.ephemeris import (
    ENV_TABLE_PATH,
    SUMMER_SOLSTICE,
    WINTER_SOLSTICE,
    EventTable,
    EventTime,
    default_table,
    load,
)
from ccal.core.errors import IncompleteTable, MalformedTable, OutOfRange

DATA = Path(__file__).resolve().parent / "data"


def _fixture_lines() -> list[str]:
    return (DATA / "events_1998_2002.txt").read_text(encoding="utf-8").splitlines()


def _tdbtimes_lines(years: list[int]) -> list[str]:
    """
    Synthetic upstream-format lines: a mean tropical year, a 29.5-day month.
    Consecutive lines overlap by one solstice and a few new moons.
    """
    ws0 = 2451534.7917
    step = 365.25 / 24
    nm0 = ws0 - 14.0
    lines = ["annus jd0 st[25] mp[15][4]"]
    for n, annus in enumerate(years):
        jd0 = ws0 + n * 365.25
        terms = [ws0 + (24 * n + k) * step - jd0 for k in range(25)]
        i0 = math.floor((jd0 - nm0) / 29.5)
        phases = []
        for i in range(15):
            t = nm0 + (i0 + i) * 29.5
            for p in range(4):
                phases.append(t + 7.375 * p - jd0)
        lines.append(" ".join([str(annus), f"{jd0:.6f}"] + [f"{x:.6f}" for x in terms + phases]))
    return lines


# ============================================================
# load: events format
# ============================================================

def test_load_fixture(table_1999):
    assert len(table_1999.new_moons) == 41
    assert len(table_1999.solar_terms) == 39
    assert table_1999.coverage == (2451140, 2452295)
    assert table_1999.tz_offset_minutes == 480
    assert all(e.longitude is None for e in table_1999.new_moons)
    assert all(e.longitude % 30 == 0 for e in table_1999.solar_terms)


def test_event_days_are_civil_days_in_utc8(table_1999):
    # new moon 1999-12-08 06h (UTC+8), winter solstice 1999-12-22 15h
    nm = table_1999.new_moon_before(2451521)
    assert nm.day == 2451521
    assert nm.tdb == pytest.approx(2451520.4167)
    ws = table_1999.solar_term_near(WINTER_SOLSTICE, 2451535)
    assert ws.day == 2451535
    assert ws.longitude == 270
    assert ws.longitude_index == 9


def test_event_time_orders_by_instant():
    a = EventTime(tdb=1.0, day=5)
    b = EventTime(tdb=2.0, day=1)
    assert a < b
    assert sorted([b, a]) == [a, b]


def test_sectional_terms_are_dropped():
    lines = _fixture_lines()
    i = lines.index("solar_term  270 2451534.7917")
    lines.insert(i + 1, "solar_term  285 2451549.9000  # 小寒")
    t = load(lines)
    assert len(t.solar_terms) == 39


def test_comments_and_blank_lines_are_ignored():
    lines = ["", "# header", ""] + _fixture_lines() + ["   ", "# trailer"]
    assert len(load(lines).new_moons) == 41


def test_unknown_record_kind_reports_position():
    lines = _fixture_lines()
    lines.insert(2, "full_moon 2451140.0")
    with pytest.raises(MalformedTable) as ei:
        load(lines)
    assert ei.value.line_num == 3
    assert ei.value.field_num == 1


def test_bad_number_reports_field():
    lines = _fixture_lines()
    lines.insert(2, "new_moon 2451100.x")
    with pytest.raises(MalformedTable) as ei:
        load(lines)
    assert ei.value.line_num == 3
    assert ei.value.field_num == 2


@pytest.mark.parametrize("value", ["nan", "inf", "-inf", "NaN"])
def test_non_finite_new_moon_reports_field(value):
    lines = _fixture_lines()
    lines.insert(2, f"new_moon {value}")
    with pytest.raises(MalformedTable) as ei:
        load(lines)
    assert ei.value.line_num == 3
    assert ei.value.field_num == 2


def test_non_finite_solar_term_reports_field():
    lines = _fixture_lines() + ["solar_term nan 2452400.0"]
    with pytest.raises(MalformedTable) as ei:
        load(lines)
    assert ei.value.line_num == len(lines)
    assert ei.value.field_num == 2

    lines = _fixture_lines() + ["solar_term 60 inf"]
    with pytest.raises(MalformedTable) as ei:
        load(lines)
    assert ei.value.field_num == 3


def test_non_utf8_file_is_malformed(tmp_path):
    p = tmp_path / "events.txt"
    p.write_bytes(b"new_moon 2451136.6667\n\xff\n")
    with pytest.raises(MalformedTable):
        load(p)


def test_off_grid_longitude_is_not_a_principal_term():
    lines = _fixture_lines()
    i = lines.index("solar_term  270 2451534.7917")
    # would round to 300
    lines.insert(i + 1, "solar_term  299.6 2451549.9000")
    t = load(lines)
    assert len(t.solar_terms) == 39
    assert [e.longitude for e in t.solar_terms].count(300) == 4


def test_from_instants_rejects_non_finite(table_1999):
    nms = [e.tdb for e in table_1999.new_moons]
    terms = [(e.longitude, e.tdb) for e in table_1999.solar_terms]
    with pytest.raises(MalformedTable):
        EventTable.from_instants(nms + [float("inf")], terms)
    with pytest.raises(MalformedTable):
        EventTable.from_instants(nms, terms + [(float("nan"), 2452400.0)])


def test_non_increasing_new_moons():
    lines = _fixture_lines()
    a = lines.index("new_moon    2451166.4167")
    b = lines.index("new_moon    2451196.1250")
    lines[a], lines[b] = lines[b], lines[a]
    with pytest.raises(MalformedTable):
        load(lines)


def test_missing_principal_term_is_incomplete():
    lines = [x for x in _fixture_lines() if x != "solar_term  0   2451623.7917"]
    with pytest.raises(IncompleteTable):
        load(lines)


def test_missing_new_moon_is_incomplete():
    lines = [x for x in _fixture_lines() if x != "new_moon    2451550.2500"]
    with pytest.raises(IncompleteTable):
        load(lines)


def test_too_short_is_incomplete():
    lines = [x for x in _fixture_lines() if not x.startswith("new_moon")][:10]
    lines += ["new_moon 2451136.6667", "new_moon 2451166.4167"]
    with pytest.raises(IncompleteTable):
        load(lines)


def test_unknown_format():
    with pytest.raises(ValueError):
        load(_fixture_lines(), fmt="csv")  # type: ignore[arg-type]


# ============================================================
# load: tdbtimes format
# ============================================================

def test_tdbtimes_overlapping_lines_are_merged():
    t = load(_tdbtimes_lines([2000, 2001]), fmt="tdbtimes")
    # 13 + 13 principal terms sharing one solstice, 15 + 15 new moons sharing three
    assert len(t.solar_terms) == 25
    assert len(t.new_moons) == 27
    assert t.solar_terms[0].longitude == 270
    assert t.solar_terms[12].longitude == 270
    assert t.solar_terms[-1].longitude == 270


def test_tdbtimes_year_filter():
    cfg = EventTableConfig(min_year=2001)
    t = load(_tdbtimes_lines([2000, 2001]), fmt="tdbtimes", config=cfg)
    assert len(t.solar_terms) == 13
    assert len(t.new_moons) == 15


def test_tdbtimes_rejects_decreasing_annus():
    lines = _tdbtimes_lines([2000, 2001])
    lines[2] = "1999" + lines[2][4:]
    with pytest.raises(MalformedTable) as ei:
        load(lines, fmt="tdbtimes")
    assert ei.value.line_num == 3


def test_tdbtimes_rejects_short_line():
    lines = _tdbtimes_lines([2000])
    lines[1] = " ".join(lines[1].split()[:30])
    with pytest.raises(MalformedTable):
        load(lines, fmt="tdbtimes")


# ============================================================
# lookups
# ============================================================

def test_new_moon_lookups(table_1999):
    assert table_1999.new_moon_before(2451545).day == 2451521
    assert table_1999.new_moon_before(2451550).day == 2451521
    assert table_1999.new_moon_before(2451551).day == 2451551
    assert table_1999.new_moon_on_or_after(2451522).day == 2451551
    assert table_1999.new_moon_on_or_after(2451521).day == 2451521
    days = [e.day for e in table_1999.new_moons_between(2451521, 2451875)]
    assert len(days) == 12
    assert days[0] == 2451521
    assert days[-1] == 2451845


def test_solar_term_lookups(table_1999):
    assert table_1999.solar_term_near(WINTER_SOLSTICE, 2451700).day == 2451535
    assert table_1999.solar_term_near(WINTER_SOLSTICE, 2451800).day == 2451900
    assert table_1999.solar_term_after(WINTER_SOLSTICE, 2451535).day == 2451900
    assert table_1999.solar_term_on_or_before(WINTER_SOLSTICE, 2451535).day == 2451535
    assert table_1999.solar_term_on_or_before(WINTER_SOLSTICE, 2451534).day == 2451170

    ws = table_1999.solar_term_near(WINTER_SOLSTICE, 2451535)
    assert table_1999.next_solar_term(ws).day == 2451900
    assert table_1999.next_solar_term(ws, same_longitude=False).longitude == 300
    assert table_1999.previous_solar_term(ws).day == 2451170


def test_principal_terms_between(table_1999):
    terms = table_1999.principal_terms_between(2451521, 2451551)
    assert [t.longitude for t in terms] == [270]
    t = table_1999.principal_term_on_or_before(2451545)
    assert t.longitude == 270
    assert t.day == 2451535


def test_lookups_outside_coverage(table_1999):
    with pytest.raises(OutOfRange):
        table_1999.new_moon_before(2451000)
    with pytest.raises(OutOfRange):
        table_1999.new_moon_before(2452296)
    # last loaded solstice is 2001-12-22
    with pytest.raises(OutOfRange):
        table_1999.solar_term_after(WINTER_SOLSTICE, 2452270)
    # the nearest summer solstice to 2002-01 is not loaded
    with pytest.raises(OutOfRange):
        table_1999.solar_term_near(SUMMER_SOLSTICE, 2452290)
    ws = table_1999.solar_term_near(WINTER_SOLSTICE, 2451170)
    with pytest.raises(OutOfRange):
        table_1999.previous_solar_term(ws)


def test_out_of_range_is_a_lookup_error(table_1999):
    with pytest.raises(LookupError):
        table_1999.new_moon_on_or_after(2452400)


def test_direct_construction_is_validated():
    with pytest.raises(IncompleteTable):
        EventTable(new_moons=(), solar_terms=())


def test_zone_offset_changes_civil_days():
    lines = _fixture_lines()
    utc = load(lines, config=EventTableConfig(tz_offset_minutes=0))
    cst = load(lines)
    # new moon 1999-01-17 22:59 UTC+8 = 14:59 UTC: same day in both zones
    assert utc.new_moons[2].day == cst.new_moons[2].day
    # new moon 2000-01-07 01:59 UTC+8 = 2000-01-06 17:59 UTC
    i = [e.day for e in cst.new_moons].index(2451551)
    assert utc.new_moons[i].day == 2451550


def test_from_instants_matches_loaded_table(table_1999):
    terms = [(e.longitude, e.tdb) for e in table_1999.solar_terms]
    # a sectional term between the first two principal ones
    terms.insert(1, (285.0, (terms[0][1] + terms[1][1]) / 2))
    rebuilt = EventTable.from_instants([e.tdb for e in table_1999.new_moons], terms)
    assert [e.day for e in rebuilt.new_moons] == [e.day for e in table_1999.new_moons]
    assert [(e.longitude, e.day) for e in rebuilt.solar_terms] == [
        (e.longitude, e.day) for e in table_1999.solar_terms
    ]
    first, last = rebuilt.coverage
    assert rebuilt.covers(first) and rebuilt.covers(last)
    assert not rebuilt.covers(first - 1)
    assert not rebuilt.covers(last + 1)


# ============================================================
# default_table
# ============================================================

def test_default_table_is_loaded_once(monkeypatch):
    path = DATA / "events_2016_2018.txt"
    monkeypatch.setenv(ENV_TABLE_PATH, str(path))
    a = default_table()
    b = default_table()
    assert a is b
    assert default_table(path) is a


def test_default_table_missing(monkeypatch, tmp_path):
    monkeypatch.setenv(ENV_TABLE_PATH, str(tmp_path / "nope.txt"))
    with pytest.raises(FileNotFoundError):
        default_table()
