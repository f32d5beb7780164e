# src/ccal/core/ephemeris.py
from __future__ import annotations

"""
Astronomical event table: new moons and principal solar terms (中氣).

The table is built once from a precomputed data file and shared read-only
by every Annus construction. Event instants are TDB Julian Dates; every
event also carries the civil day (JDN) it falls on in the table's reference
zone, and all lookups are done on those days.

Two source formats are understood:

events
    one event per line, ``#`` comments allowed::

        new_moon    2451520.4167
        solar_term  270  2451534.7917

tdbtimes
    the per-annus layout of the upstream data set: a header line, then
    ``annus jd0 st[0..24] mp[0..14][0..3]`` where the 25 solar terms run
    every 15 degrees from the winter solstice to the next one and the 15x4
    moon phases start at the new moon before the solstice. All values
    after jd0 are offsets from jd0.
"""

import logging
import math
import os
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .config import EventTableConfig, TableFormat
from .errors import IncompleteTable, MalformedTable, OutOfRange
from .timescales import civil_jdn_many

log = logging.getLogger(__name__)

PRINCIPAL_TERM_COUNT = 12

# longitude index = longitude / 30
SUMMER_SOLSTICE = 3
WINTER_SOLSTICE = 9

# half a tropical year, in days
_HALF_YEAR_DAYS = 182.6

ENV_TABLE_PATH = "CCAL_TABLE_PATH"
ENV_TABLE_FORMAT = "CCAL_TABLE_FORMAT"
DEFAULT_TABLE_NAME = "events.txt"

TDBTIMES_SOLAR_TERMS = 25
TDBTIMES_MONTHS = 15
TDBTIMES_PHASES = 4

Source = Union[str, Path, Iterable[str]]


# ============================================================
# Data models
# ============================================================

@dataclass(frozen=True, order=True)
class EventTime:
    """
    One astronomical event.

    tdb:
      instant as TDB Julian Date (ordering key)
    day:
      JDN of the civil day containing the instant in the table's zone
    longitude:
      solar ecliptic longitude in degrees (0, 30, ..., 330) for solar terms,
      None for new moons
    """
    tdb: float
    day: int = field(compare=False)
    longitude: Optional[int] = field(default=None, compare=False)

    @property
    def longitude_index(self) -> Optional[int]:
        if self.longitude is None:
            return None
        return self.longitude // 30


def _require_index(longitude_index: int) -> int:
    i = int(longitude_index)
    if not (0 <= i < PRINCIPAL_TERM_COUNT):
        raise ValueError(f"longitude_index must be in 0..11 (got {longitude_index})")
    return i


@dataclass(frozen=True)
class EventTable:
    """
    Immutable, validated event sequences.

    Construction validates monotonicity and coverage, so every bisect below
    can trust the order of the sequences.
    """
    new_moons: Tuple[EventTime, ...]
    solar_terms: Tuple[EventTime, ...]
    tz_offset_minutes: int = 480
    config: EventTableConfig = field(default_factory=EventTableConfig, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "new_moons", tuple(self.new_moons))
        object.__setattr__(self, "solar_terms", tuple(self.solar_terms))
        _validate(self.new_moons, self.solar_terms, self.config)

        # bisect keys
        object.__setattr__(self, "_nm_days", [e.day for e in self.new_moons])
        object.__setattr__(self, "_st_days", [e.day for e in self.solar_terms])
        object.__setattr__(self, "_first_term_index", self.solar_terms[0].longitude_index)

    @classmethod
    def from_instants(
        cls,
        new_moons: Sequence[float],
        solar_terms: Sequence[Tuple[float, float]],
        *,
        config: EventTableConfig = EventTableConfig(),
    ) -> "EventTable":
        """
        Build from raw TDB instants.

        solar_terms is a sequence of (longitude_deg, tdb). Terms that are not
        principal (longitude not a multiple of 30) are dropped.
        """
        for i, t in enumerate(new_moons):
            if not math.isfinite(float(t)):
                raise MalformedTable(f"new moon #{i} is not a finite instant: {t}")

        principal: List[Tuple[int, float]] = []
        for i, (deg, t) in enumerate(solar_terms):
            if not (math.isfinite(float(deg)) and math.isfinite(float(t))):
                raise MalformedTable(f"solar term #{i} is not finite: longitude={deg} tdb={t}")
            lon = float(deg) % 360
            if lon % 30 == 0:
                principal.append((int(lon), float(t)))

        tz = int(config.tz_offset_minutes)
        nm_tdb = [float(t) for t in new_moons]
        nm_days = civil_jdn_many(nm_tdb, tz)
        st_days = civil_jdn_many([t for _, t in principal], tz)

        return cls(
            new_moons=tuple(EventTime(tdb=t, day=d) for t, d in zip(nm_tdb, nm_days)),
            solar_terms=tuple(
                EventTime(tdb=t, day=d, longitude=lon) for (lon, t), d in zip(principal, st_days)
            ),
            tz_offset_minutes=tz,
            config=config,
        )

    # ---- coverage ----

    @property
    def coverage(self) -> Tuple[int, int]:
        """(first_day, last_day), inclusive, where both sequences are present."""
        first = max(self.new_moons[0].day, self.solar_terms[0].day)
        last = min(self.new_moons[-1].day, self.solar_terms[-1].day)
        return first, last

    def covers(self, jdn: int) -> bool:
        first, last = self.coverage
        return first <= int(jdn) <= last

    def _check(self, jdn: int) -> int:
        j = int(jdn)
        if not self.covers(j):
            first, last = self.coverage
            raise OutOfRange(f"jdn={j} outside event table coverage [{first}, {last}]")
        return j

    # ---- new moons ----

    def new_moon_before(self, jdn: int) -> EventTime:
        """Latest new moon whose civil day is at or before jdn."""
        j = self._check(jdn)
        i = bisect_right(self._nm_days, j) - 1
        if i < 0:
            raise OutOfRange(f"no new moon at or before jdn={j}")
        return self.new_moons[i]

    def new_moon_on_or_after(self, jdn: int) -> EventTime:
        j = self._check(jdn)
        i = bisect_left(self._nm_days, j)
        if i >= len(self.new_moons):
            raise OutOfRange(f"no new moon on or after jdn={j}")
        return self.new_moons[i]

    def new_moons_between(self, start_day: int, end_day: int) -> List[EventTime]:
        """New moons with start_day <= day < end_day."""
        if end_day <= start_day:
            return []
        self._check(start_day)
        self._check(end_day - 1)
        i = bisect_left(self._nm_days, int(start_day))
        k = bisect_left(self._nm_days, int(end_day))
        return list(self.new_moons[i:k])

    # ---- principal solar terms ----

    def _term_offset(self, longitude_index: int) -> int:
        # positions holding one longitude form a progression with step 12
        return (_require_index(longitude_index) - self._first_term_index) % PRINCIPAL_TERM_COUNT

    def solar_term_near(self, longitude_index: int, jdn: int) -> EventTime:
        """
        Principal term of longitude 30*longitude_index whose civil day is
        nearest to jdn.
        """
        j = self._check(jdn)
        off = self._term_offset(longitude_index)
        n = len(self.solar_terms)

        i = bisect_left(self._st_days, j)
        k_after = i + (off - i) % PRINCIPAL_TERM_COUNT
        k_before = k_after - PRINCIPAL_TERM_COUNT

        after = self.solar_terms[k_after] if k_after < n else None
        before = self.solar_terms[k_before] if k_before >= 0 else None

        if after is not None and before is not None:
            return before if (j - before.day) <= (after.day - j) else after

        # only one side loaded: the unloaded one might be nearer
        picked = after if after is not None else before
        if picked is None or abs(picked.day - j) > _HALF_YEAR_DAYS:
            raise OutOfRange(
                f"no loaded term of longitude {30 * int(longitude_index)} is known to be nearest jdn={j}"
            )
        return picked

    def solar_term_after(self, longitude_index: int, jdn: int) -> EventTime:
        """First principal term of the given longitude whose civil day is after jdn."""
        j = self._check(jdn)
        off = self._term_offset(longitude_index)
        i = bisect_right(self._st_days, j)
        k = i + (off - i) % PRINCIPAL_TERM_COUNT
        if k >= len(self.solar_terms):
            raise OutOfRange(f"no term of longitude {30 * int(longitude_index)} after jdn={j}")
        return self.solar_terms[k]

    def solar_term_on_or_before(self, longitude_index: int, jdn: int) -> EventTime:
        j = self._check(jdn)
        off = self._term_offset(longitude_index)
        i = bisect_right(self._st_days, j) - 1
        k = i - (i - off) % PRINCIPAL_TERM_COUNT
        if k < 0:
            raise OutOfRange(f"no term of longitude {30 * int(longitude_index)} at or before jdn={j}")
        return self.solar_terms[k]

    def _term_position(self, event: EventTime) -> int:
        i = bisect_left(self.solar_terms, event)
        if i >= len(self.solar_terms) or self.solar_terms[i].tdb != event.tdb:
            raise ValueError(f"event is not a solar term of this table: {event!r}")
        return i

    def next_solar_term(self, event: EventTime, *, same_longitude: bool = True) -> EventTime:
        step = PRINCIPAL_TERM_COUNT if same_longitude else 1
        k = self._term_position(event) + step
        if k >= len(self.solar_terms):
            raise OutOfRange(f"no solar term after tdb={event.tdb} in table")
        return self.solar_terms[k]

    def previous_solar_term(self, event: EventTime, *, same_longitude: bool = True) -> EventTime:
        step = PRINCIPAL_TERM_COUNT if same_longitude else 1
        k = self._term_position(event) - step
        if k < 0:
            raise OutOfRange(f"no solar term before tdb={event.tdb} in table")
        return self.solar_terms[k]

    def principal_terms_between(self, start_day: int, end_day: int) -> List[EventTime]:
        """Principal terms with start_day <= day < end_day."""
        if end_day <= start_day:
            return []
        self._check(start_day)
        self._check(end_day - 1)
        i = bisect_left(self._st_days, int(start_day))
        k = bisect_left(self._st_days, int(end_day))
        return list(self.solar_terms[i:k])

    def principal_term_on_or_before(self, jdn: int) -> EventTime:
        """The principal term in force on jdn (any longitude)."""
        j = self._check(jdn)
        i = bisect_right(self._st_days, j) - 1
        if i < 0:
            raise OutOfRange(f"no principal term at or before jdn={j}")
        return self.solar_terms[i]


# ============================================================
# Validation
# ============================================================

def _validate(
    new_moons: Sequence[EventTime],
    solar_terms: Sequence[EventTime],
    config: EventTableConfig,
) -> None:
    if len(new_moons) < config.min_new_moons:
        raise IncompleteTable(f"too few new moons: {len(new_moons)} < {config.min_new_moons}")
    if len(solar_terms) < config.min_principal_terms:
        raise IncompleteTable(
            f"too few principal terms: {len(solar_terms)} < {config.min_principal_terms}"
        )

    for i, e in enumerate(solar_terms):
        if e.longitude is None or e.longitude % 30 != 0 or not (0 <= e.longitude < 360):
            raise MalformedTable(f"solar term #{i} is not a principal term: longitude={e.longitude}")

    for i in range(1, len(new_moons)):
        a, b = new_moons[i - 1], new_moons[i]
        if not (a.tdb < b.tdb):
            raise MalformedTable(f"new moons not strictly increasing at #{i}: {a.tdb} -> {b.tdb}")
        if b.tdb - a.tdb > config.max_new_moon_gap_days:
            raise IncompleteTable(f"gap of {b.tdb - a.tdb:.2f} days between new moons #{i - 1} and #{i}")

    for i in range(1, len(solar_terms)):
        a, b = solar_terms[i - 1], solar_terms[i]
        if not (a.tdb < b.tdb):
            raise MalformedTable(f"solar terms not strictly increasing at #{i}: {a.tdb} -> {b.tdb}")
        if b.longitude != (a.longitude + 30) % 360:
            raise IncompleteTable(
                f"principal term missing between longitude {a.longitude} and {b.longitude} (#{i})"
            )
        if b.tdb - a.tdb > config.max_term_gap_days:
            raise IncompleteTable(f"gap of {b.tdb - a.tdb:.2f} days between solar terms #{i - 1} and #{i}")


# ============================================================
# Parsing
# ============================================================

def _read_lines(source: Source) -> List[str]:
    if isinstance(source, (str, Path)):
        p = Path(source).expanduser()
        try:
            return p.read_text(encoding="utf-8").splitlines()
        except UnicodeDecodeError as e:
            raise MalformedTable(f"{p} is not UTF-8 text: {e.reason} at byte {e.start}") from e
    return [str(line).rstrip("\r\n") for line in source]


def _parse_float(s: str, line_num: int, field_num: int) -> float:
    try:
        v = float(s)
    except ValueError as e:
        raise MalformedTable(f"invalid number {s!r}", line_num=line_num, field_num=field_num) from e
    if not math.isfinite(v):
        raise MalformedTable(f"non-finite number {s!r}", line_num=line_num, field_num=field_num)
    return v


def _parse_events(lines: List[str]) -> Tuple[List[float], List[Tuple[float, float]]]:
    new_moons: List[float] = []
    solar_terms: List[Tuple[float, float]] = []

    for line_num, raw in enumerate(lines, start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        fields = line.split()
        kind = fields[0].lower()

        if kind == "new_moon":
            if len(fields) != 2:
                raise MalformedTable("new_moon expects 1 value", line_num=line_num)
            t = _parse_float(fields[1], line_num, 2)
            if new_moons and not (new_moons[-1] < t):
                raise MalformedTable("new moons not strictly increasing", line_num=line_num, field_num=2)
            new_moons.append(t)

        elif kind == "solar_term":
            if len(fields) != 3:
                raise MalformedTable("solar_term expects longitude and instant", line_num=line_num)
            deg = _parse_float(fields[1], line_num, 2)
            t = _parse_float(fields[2], line_num, 3)
            if solar_terms and not (solar_terms[-1][1] < t):
                raise MalformedTable("solar terms not strictly increasing", line_num=line_num, field_num=3)
            solar_terms.append((deg, t))

        else:
            raise MalformedTable(f"unknown event kind {fields[0]!r}", line_num=line_num, field_num=1)

    return new_moons, solar_terms


def _merge_close(
    events: List[Tuple[float, Optional[int]]],
    merge_days: float,
) -> List[Tuple[float, Optional[int]]]:
    events.sort(key=lambda x: x[0])
    merged: List[Tuple[float, Optional[int]]] = []
    for t, lon in events:
        if merged and (t - merged[-1][0]) <= merge_days:
            if lon != merged[-1][1]:
                raise MalformedTable(
                    f"conflicting events at tdb={t}: longitude {merged[-1][1]} vs {lon}"
                )
            continue
        merged.append((t, lon))
    return merged


def _parse_tdbtimes(
    lines: List[str],
    config: EventTableConfig,
) -> Tuple[List[float], List[Tuple[float, float]]]:
    nm_raw: List[Tuple[float, Optional[int]]] = []
    st_raw: List[Tuple[float, Optional[int]]] = []
    last_annus: Optional[int] = None

    n_fields = 2 + TDBTIMES_SOLAR_TERMS + TDBTIMES_MONTHS * TDBTIMES_PHASES

    # first line is a header
    for line_num, raw in enumerate(lines[1:], start=2):
        fields = raw.split()
        if not fields:
            continue
        try:
            annus = int(fields[0])
        except ValueError as e:
            raise MalformedTable(f"invalid annus {fields[0]!r}", line_num=line_num, field_num=1) from e

        if last_annus is not None and annus <= last_annus:
            raise MalformedTable(f"annus not increasing: {last_annus} -> {annus}", line_num=line_num, field_num=1)
        last_annus = annus

        if config.min_year is not None and annus < config.min_year:
            continue
        if config.max_year is not None and annus > config.max_year:
            continue

        if len(fields) < n_fields:
            raise MalformedTable(
                f"expected {n_fields} fields, got {len(fields)}", line_num=line_num, field_num=len(fields) + 1
            )

        jd0 = _parse_float(fields[1], line_num, 2)

        prev: Optional[float] = None
        for k in range(TDBTIMES_SOLAR_TERMS):
            field_num = 3 + k
            t = jd0 + _parse_float(fields[field_num - 1], line_num, field_num)
            if prev is not None and not (prev < t):
                raise MalformedTable("solar terms not increasing", line_num=line_num, field_num=field_num)
            prev = t
            if k % 2 == 0:
                st_raw.append((t, (270 + 15 * k) % 360))

        prev = None
        for m in range(TDBTIMES_MONTHS):
            field_num = 3 + TDBTIMES_SOLAR_TERMS + m * TDBTIMES_PHASES
            t = jd0 + _parse_float(fields[field_num - 1], line_num, field_num)
            if prev is not None and not (prev < t):
                raise MalformedTable("new moons not increasing", line_num=line_num, field_num=field_num)
            prev = t
            nm_raw.append((t, None))

    merge_days = float(config.merge_seconds) / 86400.0
    new_moons = [t for t, _ in _merge_close(nm_raw, merge_days)]
    solar_terms = [(float(lon), t) for t, lon in _merge_close(st_raw, merge_days)]
    return new_moons, solar_terms


def load(
    source: Source,
    *,
    fmt: TableFormat = "events",
    config: EventTableConfig = EventTableConfig(),
) -> EventTable:
    """
    Load and validate an event table.

    source is a path or an iterable of text lines.

    Raises
    ------
    MalformedTable
        unparsable record or non-monotonic events
    IncompleteTable
        missing terms / new moons or too short a run
    """
    lines = _read_lines(source)

    if fmt == "events":
        new_moons, solar_terms = _parse_events(lines)
    elif fmt == "tdbtimes":
        new_moons, solar_terms = _parse_tdbtimes(lines, config)
    else:
        raise ValueError(f"unknown table format {fmt!r} (expected 'events' or 'tdbtimes')")

    table = EventTable.from_instants(new_moons, solar_terms, config=config)

    first, last = table.coverage
    log.info(
        "event table loaded: fmt=%s new_moons=%d principal_terms=%d coverage_jdn=%d..%d",
        fmt,
        len(table.new_moons),
        len(table.solar_terms),
        first,
        last,
    )
    return table


# ============================================================
# Process-wide table
# ============================================================

def _project_data_dir() -> Path:
    return Path(__file__).resolve().parents[3] / "data"


def _resolve_table_path(path: Optional[Union[str, Path]]) -> Path:
    """
    Resolution priority:
      1) explicit path
      2) CCAL_TABLE_PATH
      3) <project>/data/events.txt
    """
    if path is not None:
        return Path(path).expanduser()
    env = os.environ.get(ENV_TABLE_PATH, "").strip()
    if env:
        return Path(env).expanduser()
    return _project_data_dir() / DEFAULT_TABLE_NAME


@lru_cache(maxsize=4)
def _load_cached(path: str, fmt: str, config: EventTableConfig) -> EventTable:
    return load(Path(path), fmt=fmt, config=config)  # type: ignore[arg-type]


def default_table(
    path: Optional[Union[str, Path]] = None,
    fmt: Optional[TableFormat] = None,
    *,
    config: EventTableConfig = EventTableConfig(),
) -> EventTable:
    """
    The shared event table, loaded on first use and reused afterwards.
    """
    p = _resolve_table_path(path)
    if not p.exists():
        raise FileNotFoundError(
            f"Event table not found: {p}\n"
            f"Set {ENV_TABLE_PATH} to a data file, or place {DEFAULT_TABLE_NAME} under {_project_data_dir()}."
        )
    f = fmt or (os.environ.get(ENV_TABLE_FORMAT, "").strip() or "events")
    return _load_cached(str(p), f, config)
