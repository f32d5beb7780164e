from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional, Tuple

from ccal.core.ephemeris import ENV_TABLE_FORMAT, ENV_TABLE_PATH, EventTable, load
from ccal.core.julian import to_jdn

DEFAULT_TABLE = Path("data") / "events.txt"
DEFAULT_FORMAT = "events"


@dataclass(frozen=True)
class TableSource:
    path: Optional[Path]
    fmt: str
    skip_reason: Optional[str]


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--date", help="YYYY-MM-DD")
    parser.add_argument("--start", help="YYYY-MM-DD")
    parser.add_argument("--end", help="YYYY-MM-DD")
    parser.add_argument("--table", default="", help=f"event table file (default: ${ENV_TABLE_PATH} or data/events.txt)")
    parser.add_argument("--format", dest="fmt", default="", help="events | tdbtimes")
    parser.add_argument("--json", action="store_true")
    parser.add_argument("--verbose", action="store_true")


def parse_date(s: str) -> date:
    return date.fromisoformat(s)


def resolve_table(path_arg: str, fmt_arg: str) -> TableSource:
    fmt = (fmt_arg or "").strip() or os.environ.get(ENV_TABLE_FORMAT, "").strip() or DEFAULT_FORMAT

    path_raw = (path_arg or "").strip() or os.environ.get(ENV_TABLE_PATH, "").strip()
    if path_raw:
        p = Path(path_raw).expanduser()
        if p.exists():
            return TableSource(path=p, fmt=fmt, skip_reason=None)
        return TableSource(path=None, fmt=fmt, skip_reason=f"table not found: {p}")

    if DEFAULT_TABLE.exists():
        return TableSource(path=DEFAULT_TABLE, fmt=fmt, skip_reason=None)

    return TableSource(
        path=None,
        fmt=fmt,
        skip_reason=f"event table not found. set {ENV_TABLE_PATH} or provide --table, or place {DEFAULT_TABLE}.",
    )


def load_table(args: argparse.Namespace) -> EventTable:
    src = resolve_table(args.table, args.fmt)
    if src.skip_reason:
        skip(src.skip_reason)
    return load(src.path, fmt=src.fmt)  # type: ignore[arg-type]


def resolve_date_range(args: argparse.Namespace) -> Tuple[Optional[int], Optional[int]]:
    """(start_jdn, end_jdn) inclusive, or (None, None)."""
    if args.start and args.end:
        s, e = parse_date(args.start), parse_date(args.end)
    elif args.date:
        s = e = parse_date(args.date)
    else:
        return None, None
    return to_jdn(s.year, s.month, s.day), to_jdn(e.year, e.month, e.day)


def dump_json(obj: object) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def skip(msg: str) -> None:
    print(f"SKIP: {msg}")
    sys.exit(0)
