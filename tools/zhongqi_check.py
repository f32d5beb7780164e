from __future__ import annotations

"""
Zhongqi (中氣) check script: principal terms of the loaded table by civil day.

Uses:
- ccal.core.ephemeris.EventTable.principal_terms_between
- ccal.features.config.solar_term_info_from_deg
"""

import argparse

from ccal.core.julian import from_jdn
from ccal.features.config import solar_term_info_from_deg

from tools.common import add_common_args, dump_json, load_table, resolve_date_range


def main() -> None:
    parser = argparse.ArgumentParser(description="Zhongqi (中氣) check")
    add_common_args(parser)
    args = parser.parse_args()

    table = load_table(args)

    start, end = resolve_date_range(args)
    if start is None or end is None:
        start, end = table.coverage

    rows = []
    for e in table.principal_terms_between(start, end + 1):
        info = solar_term_info_from_deg(float(e.longitude))
        rows.append(
            {
                "name": info.name,
                "degree": int(info.deg),
                "tdb": e.tdb,
                "date": from_jdn(e.day).iso(),
            }
        )

    if args.json:
        first, last = table.coverage
        dump_json(
            {
                "coverage": {"start": from_jdn(first).iso(), "end": from_jdn(last).iso()},
                "new_moons": len(table.new_moons),
                "zhongqi": rows,
            }
        )
        return

    for r in rows:
        print(f"{r['date']}  {r['name']}  deg={r['degree']:03d}  tdb={r['tdb']:.5f}")


if __name__ == "__main__":
    main()
