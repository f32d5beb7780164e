from __future__ import annotations

"""
Lunisolar check script.

Uses:
- ccal.core.lunisolar.lunar_dates_between
- ccal.features.config.lunar_month_display_name / day_name
"""

import argparse

from ccal.core.julian import from_jdn
from ccal.core.lunisolar import lunar_dates_between
from ccal.features.config import day_name, lunar_month_display_name

from tools.common import add_common_args, dump_json, load_table, resolve_date_range


def _format_label(month: int, day: int, is_leap: bool) -> str:
    return f"{'閏' if is_leap else ''}{month:02d}/{day:02d}"


def main() -> None:
    parser = argparse.ArgumentParser(description="Lunisolar (農曆) check")
    add_common_args(parser)
    args = parser.parse_args()

    start, end = resolve_date_range(args)
    if start is None or end is None:
        parser.error("--date or --start/--end required")

    table = load_table(args)

    rows = []
    first = True
    for j, l in lunar_dates_between(start, end + 1, table):
        d = from_jdn(j).iso()
        month_name = lunar_month_display_name(int(l.month), bool(l.is_leap))
        label = _format_label(int(l.month), int(l.day), bool(l.is_leap))

        if args.json:
            rows.append(
                {
                    "date": d,
                    "jdn": j,
                    "year": int(l.year),
                    "month": int(l.month),
                    "day": int(l.day),
                    "leap": bool(l.is_leap),
                    "label": label,
                    "month_name": month_name,
                    "day_name": day_name(int(l.day)),
                }
            )
        else:
            sep = "\n" if (not first and int(l.day) == 1) else ""
            print(f"{sep}{d}  L={label}  year={int(l.year)} {month_name}{day_name(int(l.day))}")
        first = False

    if args.json:
        dump_json({"rows": rows})


if __name__ == "__main__":
    main()
