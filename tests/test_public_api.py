from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ccal.api.app import app
from ccal.api.public import get_annus, get_calendar_day, get_calendar_range, get_table
from ccal.core.config import CCalConfig, LuniSolarConfig
from ccal.core.errors import InconsistentYearStructure, InvalidDate, OutOfRange


@pytest.fixture()
def client(table_1999):
    app.dependency_overrides[get_table] = lambda: table_1999
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_calendar_day_function(table_1999):
    res = get_calendar_day("2000-01-01", table=table_1999)
    assert res["jdn"] == 2451545
    assert res["weekday"] == 6
    assert res["iso_weekday"] == 6
    assert res["sexagenary_day_name"] == "戊午"
    lunar = res["lunar"]
    assert (lunar["year"], lunar["month"], lunar["day"], lunar["is_leap"]) == (1999, 11, 25, False)
    assert lunar["month_name"] == "冬月"
    assert lunar["day_name"] == "廿五"
    assert lunar["year_sexagenary_name"] == "己卯"
    assert res["term"]["name"] == "冬至"
    assert res["term"]["days_since"] == 10


def test_calendar_day_julian_input(table_1999):
    # 1999-12-19 (Julian) = 2000-01-01 (Gregorian)
    res = get_calendar_day("1999-12-19", calendar="julian", table=table_1999)
    assert res["jdn"] == 2451545
    assert res["date"] == "1999-12-19"
    assert res["gregorian_date"] == "2000-01-01"


def test_calendar_function_errors(table_1999):
    with pytest.raises(InvalidDate):
        get_calendar_day("2001-02-29", table=table_1999)
    with pytest.raises(InvalidDate):
        get_calendar_day("2001/02/01", table=table_1999)
    with pytest.raises(OutOfRange):
        get_calendar_day("2002-01-01", table=table_1999)


def test_calendar_range_function(table_1999):
    res = get_calendar_range("2001-05-21", "2001-05-24", table=table_1999)
    labels = [d["lunar"]["label"] for d in res["days"]]
    assert labels == ["04/28", "04/29", "閏04/01", "閏04/02"]


def test_annus_function(table_1999):
    res = get_annus(2001, table=table_1999)
    assert res["month_count"] == 13
    assert res["leap_month"] == 4
    assert res["start_date"] == "2000-11-26"
    assert res["end_date"] == "2001-12-15"


def test_config_reaches_year_build(table_1999):
    # 2000-11-26 .. 2000-12-26 is a 30-day month
    short = CCalConfig(lunisolar=LuniSolarConfig(max_month_days=29))
    with pytest.raises(InconsistentYearStructure):
        get_annus(2001, table=table_1999, config=short)
    with pytest.raises(InconsistentYearStructure):
        get_calendar_day("2001-01-01", table=table_1999, config=short)
    assert get_annus(2001, table=table_1999, config=CCalConfig())["month_count"] == 13


def test_day_endpoint(client):
    r = client.get("/api/v1/day", params={"date": "2001-05-23"})
    assert r.status_code == 200
    body = r.json()
    assert body["lunar"]["month_name"] == "閏四月"
    assert body["lunar"]["day_name"] == "初一"
    assert body["lunar"]["is_leap"] is True


def test_day_endpoint_errors(client):
    assert client.get("/api/v1/day", params={"date": "2001-13-01"}).status_code == 422
    assert client.get("/api/v1/day", params={"date": "yesterday"}).status_code == 422
    assert client.get("/api/v1/day", params={"date": "2000-01-01", "calendar": "mayan"}).status_code == 422
    assert client.get("/api/v1/day").status_code == 422
    r = client.get("/api/v1/day", params={"date": "1990-01-01"})
    assert r.status_code == 404


def test_range_endpoint(client):
    r = client.get("/api/v1/range", params={"start": "2000-11-24", "end": "2000-11-27"})
    assert r.status_code == 200
    days = r.json()["days"]
    assert [d["date"] for d in days] == ["2000-11-24", "2000-11-25", "2000-11-26", "2000-11-27"]
    assert [d["lunar"]["day"] for d in days] == [29, 30, 1, 2]


def test_range_endpoint_limits(client):
    r = client.get("/api/v1/range", params={"start": "2000-01-10", "end": "2000-01-01"})
    assert r.status_code == 422
    r = client.get("/api/v1/range", params={"start": "2000-01-01", "end": "2000-01-10", "limit_days": 5})
    assert r.status_code == 422


def test_annus_endpoint(client):
    r = client.get("/api/v1/annus/2000")
    assert r.status_code == 200
    body = r.json()
    assert body["month_count"] == 12
    assert body["leap_month"] is None
    assert [m["month"] for m in body["months"]] == [11, 12, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10]

    assert client.get("/api/v1/annus/1990").status_code == 404


def test_missing_table_is_a_server_error(monkeypatch, tmp_path):
    monkeypatch.setenv("CCAL_TABLE_PATH", str(tmp_path / "missing.txt"))
    app.dependency_overrides.clear()
    r = TestClient(app).get("/api/v1/day", params={"date": "2000-01-01"})
    assert r.status_code == 500
