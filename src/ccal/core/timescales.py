# src/ccal/core/timescales.py
from __future__ import annotations

import math
from functools import lru_cache
from typing import List, Sequence

import numpy as np
from skyfield.api import load

from .config import CHINA_TZ_OFFSET_MINUTES

MINUTES_PER_DAY = 1440.0


@lru_cache(maxsize=1)
def _timescale():
    """
    Skyfield timescale with its built-in leap-second and delta-T tables.
    Loading is not free, so keep one for the whole process.
    """
    return load.timescale(builtin=True)


def tdb_to_ut1(tdb_jd: float) -> float:
    """
    TDB Julian Date -> UT1 Julian Date.

    UT1 stays within 0.9 s of UTC inside the leap-second era and is the only
    meaningful civil scale outside it.
    """
    t = _timescale().tdb_jd(float(tdb_jd))
    return float(t.ut1)


def tdb_to_ut1_many(tdb_jds: Sequence[float]) -> List[float]:
    if not tdb_jds:
        return []
    t = _timescale().tdb_jd(np.asarray(tdb_jds, dtype=float))
    return [float(x) for x in np.atleast_1d(t.ut1)]


def _civil_jdn_from_ut1(ut1_jd: float, tz_offset_minutes: int) -> int:
    # JD x.5 is midnight UT; shift into the zone and floor at local midnight
    return int(math.floor(ut1_jd + tz_offset_minutes / MINUTES_PER_DAY + 0.5))


def civil_jdn(tdb_jd: float, tz_offset_minutes: int = CHINA_TZ_OFFSET_MINUTES) -> int:
    """
    JDN of the civil day, in a zone tz_offset_minutes east of UTC,
    that contains the TDB instant.

    >>> civil_jdn(2451543.166666667)  # 1999-12-30 in UTC+8
    2451543
    """
    return _civil_jdn_from_ut1(tdb_to_ut1(tdb_jd), tz_offset_minutes)


def civil_jdn_many(
    tdb_jds: Sequence[float],
    tz_offset_minutes: int = CHINA_TZ_OFFSET_MINUTES,
) -> List[int]:
    return [_civil_jdn_from_ut1(u, tz_offset_minutes) for u in tdb_to_ut1_many(tdb_jds)]
