# src/ccal/core/config.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Literal, Optional

TableFormat = Literal["events", "tdbtimes"]

# Chinese civil time (UTC+8) decides which day an event falls on.
CHINA_TZ_OFFSET_MINUTES = 480


@dataclass(frozen=True)
class EventTableConfig:
    """
    Event table loading / validation.
    All gap thresholds are in days, merge threshold in seconds.
    """
    tz_offset_minutes: int = CHINA_TZ_OFFSET_MINUTES

    # tdbtimes lines overlap; the same instant written twice is merged
    merge_seconds: float = 60.0

    # a synodic month never exceeds ~29.9 days, a principal term gap ~31.5
    max_new_moon_gap_days: float = 31.0
    max_term_gap_days: float = 32.0

    # at least one full solstice-to-solstice run
    min_principal_terms: int = 13
    min_new_moons: int = 13

    # restrict annus lines read from a tdbtimes file
    min_year: Optional[int] = None
    max_year: Optional[int] = None


@dataclass(frozen=True)
class LuniSolarConfig:
    """
    Annus reconstruction.
    """
    # winter-solstice month number
    anchor_month_no: int = 11

    min_month_days: int = 29
    max_month_days: int = 30


@dataclass(frozen=True)
class CCalConfig:
    table: EventTableConfig = field(default_factory=EventTableConfig)
    lunisolar: LuniSolarConfig = field(default_factory=LuniSolarConfig)
