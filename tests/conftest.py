from __future__ import annotations

from pathlib import Path

import pytest

from ccal.core.ephemeris import EventTable, load

DATA = Path(__file__).resolve().parent / "data"


@pytest.fixture(scope="session")
def table_1999() -> EventTable:
    """1998-11 .. 2002-02: common years 1999 and 2000, leap year 2001 (閏四月)."""
    return load(DATA / "events_1998_2002.txt")


@pytest.fixture(scope="session")
def table_2017() -> EventTable:
    """2016-10 .. 2018-02: leap year 2017 (閏六月)."""
    return load(DATA / "events_2016_2018.txt")
