from __future__ import annotations

"""
Leap month check script.

Uses:
- ccal.core.solstice_anchor.solstice_window_for_year
- ccal.core.leap_month.lunar_spans_for_window / decide_leap_month / spans_with_zhongqi / assign_month_numbers
"""

import argparse

from ccal.core.errors import OutOfRange
from ccal.core.julian import from_jdn
from ccal.core.leap_month import (
    assign_month_numbers,
    decide_leap_month,
    lunar_spans_for_window,
    spans_with_zhongqi,
)
from ccal.core.solstice_anchor import solstice_window_for_year
from ccal.features.config import lunar_month_display_name

from tools.common import add_common_args, dump_json, load_table, resolve_date_range


def _years_from_args(args, start, end) -> list[int]:
    if args.year:
        return [int(args.year)]
    if start is not None and end is not None:
        return list(range(from_jdn(start).year, from_jdn(end).year + 1))
    return []


def main() -> None:
    parser = argparse.ArgumentParser(description="Leap month (閏月) check")
    add_common_args(parser)
    parser.add_argument("--year", type=int, help="Gregorian year of the closing winter solstice")
    args = parser.parse_args()

    start, end = resolve_date_range(args)
    years = _years_from_args(args, start, end)
    if not years:
        parser.error("--year or --date or --start/--end required")

    table = load_table(args)

    out_rows = []
    for year in years:
        try:
            w = solstice_window_for_year(year, table)
        except OutOfRange as e:
            if not args.json:
                print(f"{year}: out of table range ({e})")
            continue

        spans = lunar_spans_for_window(w, table)
        dec = decide_leap_month(spans, table)
        labels = assign_month_numbers(len(spans), leap_span_pos=dec.leap_span_pos)

        leap_info = None
        if dec.leap_span_pos is not None:
            leap_month_no = labels[dec.leap_span_pos].number
            leap_info = {
                "pos": int(dec.leap_span_pos),
                "month_no": int(leap_month_no),
                "month_name": lunar_month_display_name(int(leap_month_no), True),
                "start": from_jdn(spans[dec.leap_span_pos].start).iso(),
            }

        row = {
            "year": int(year),
            "span_count": int(len(spans)),
            "leap": leap_info,
            "no_zhongqi_positions": dec.no_zhongqi_positions,
        }

        if args.verbose:
            has_zh = spans_with_zhongqi(spans, table)
            row["span_ranges"] = [
                {
                    "pos": s.pos,
                    "start": from_jdn(s.start).iso(),
                    "end": from_jdn(s.end).iso(),
                    "has_zhongqi": has_zh[s.pos],
                }
                for s in spans
            ]

        out_rows.append(row)

        if not args.json:
            if leap_info is None:
                print(f"{year}: leap=none span_count={len(spans)}")
            else:
                print(
                    f"{year}: leap_pos={leap_info['pos']} month_no={leap_info['month_no']} "
                    f"month_name={leap_info['month_name']} start={leap_info['start']} span_count={len(spans)}"
                )
            if args.verbose:
                print(f"  no_zh={dec.no_zhongqi_positions}")

    if args.json:
        dump_json({"years": out_rows})


if __name__ == "__main__":
    main()
