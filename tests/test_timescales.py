from __future__ import annotations

from ccal.core.timescales import civil_jdn, civil_jdn_many, tdb_to_ut1, tdb_to_ut1_many


def test_tdb_minus_ut1_is_delta_t_around_2000():
    tdb = 2451545.0
    diff_s = (tdb - tdb_to_ut1(tdb)) * 86400.0
    # delta T was about 64 s at J2000
    assert 60.0 < diff_s < 70.0


def test_civil_day_depends_on_zone():
    # 2000-01-01 19:12 UT = 2000-01-02 03:12 in UTC+8
    tdb = 2451545.3
    assert civil_jdn(tdb, 0) == 2451545
    assert civil_jdn(tdb, 480) == 2451546
    assert civil_jdn(tdb) == 2451546


def test_civil_day_same_in_both_zones_at_noon():
    assert civil_jdn(2451545.0, 0) == 2451545
    assert civil_jdn(2451545.0, 480) == 2451545


def test_vectorised_forms_match():
    xs = [2451520.4167, 2451534.7917, 2451545.3, 2458109.2083]
    assert civil_jdn_many(xs) == [civil_jdn(x) for x in xs]
    ut = tdb_to_ut1_many(xs)
    assert len(ut) == len(xs)
    for a, b in zip(ut, xs):
        assert abs(a - tdb_to_ut1(b)) < 1e-9
    assert civil_jdn_many([]) == []
