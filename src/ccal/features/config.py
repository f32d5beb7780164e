# src/ccal/features/config.py
from __future__ import annotations

"""
Feature-level constants: display names for the Chinese calendar.

- 二十四節氣: 0..345 deg (15-deg step) => name / kind(節氣|中氣) / n(0..23)
- 月名 / 日名 / 干支

Design goals:
- Accept float degree inputs robustly (e.g., 284.999999, 285.0) and normalize safely.
- Keep mapping stable and test-friendly (n parity => kind).
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from ccal.core.month_naming import Month

# ============================================================
# 二十四節氣 (24 solar terms)
#   n = (deg_norm / 15) % 24
#   kind:
#     n even  -> 中氣 (principal term)
#     n odd   -> 節氣 (sectional term)
# ============================================================

SOLAR_TERMS24: List[Tuple[int, str]] = [
    (0,   "春分"),
    (15,  "清明"),
    (30,  "穀雨"),
    (45,  "立夏"),
    (60,  "小滿"),
    (75,  "芒種"),
    (90,  "夏至"),
    (105, "小暑"),
    (120, "大暑"),
    (135, "立秋"),
    (150, "處暑"),
    (165, "白露"),
    (180, "秋分"),
    (195, "寒露"),
    (210, "霜降"),
    (225, "立冬"),
    (240, "小雪"),
    (255, "大雪"),
    (270, "冬至"),
    (285, "小寒"),
    (300, "大寒"),
    (315, "立春"),
    (330, "雨水"),
    (345, "驚蟄"),
]

SOLAR_TERM_NAME_BY_DEG: Dict[int, str] = {deg: name for deg, name in SOLAR_TERMS24}

KIND_PRINCIPAL = "中氣"
KIND_SECTIONAL = "節氣"

# 漢數字; index 0 is 十 so that day names can use d % 10
NUM_CHINESE: List[str] = ["十", "一", "二", "三", "四", "五", "六", "七", "八", "九"]

MONTH_NAME_BY_NUMBER: Dict[int, str] = {
    1:  "正月",
    2:  "二月",
    3:  "三月",
    4:  "四月",
    5:  "五月",
    6:  "六月",
    7:  "七月",
    8:  "八月",
    9:  "九月",
    10: "十月",
    11: "冬月",
    12: "臘月",
}

HEAVENLY_STEMS = "甲乙丙丁戊己庚辛壬癸"
EARTHLY_BRANCHES = "子丑寅卯辰巳午未申酉戌亥"


def normalize_term_deg(deg: float) -> int:
    """
    Normalize arbitrary degree value into one of:
      0, 15, 30, ..., 345 (int)
    """
    d = float(deg) % 360.0
    # nearest 15-deg bin
    k = int(round(d / 15.0)) % 24
    return k * 15


def term_kind_from_deg(deg: float) -> str:
    n = normalize_term_deg(deg) // 15
    return KIND_PRINCIPAL if n % 2 == 0 else KIND_SECTIONAL


def solar_term_name(deg: float) -> str:
    """Name of the solar term at a longitude (float OK)."""
    return SOLAR_TERM_NAME_BY_DEG[normalize_term_deg(deg)]


def principal_term_name(longitude: int) -> str:
    """
    Name of a principal term (中氣). longitude must be a multiple of 30.
    """
    lon = int(longitude)
    if lon % 30 != 0 or not (0 <= lon < 360):
        raise ValueError(f"not a principal term longitude: {longitude}")
    return SOLAR_TERM_NAME_BY_DEG[lon]


def solar_term_name_from_number(term: int) -> str:
    """
    Traditional numbering: 1 = 立春 .. 24 = 大寒.
    """
    t = int(term)
    if not (1 <= t <= 24):
        raise ValueError(f"solar term number out of range: {term}")
    return SOLAR_TERM_NAME_BY_DEG[(300 + 15 * t) % 360]


def month_name(month: Month) -> str:
    """冬月 for Common(11), 閏正月 for Leap(1)."""
    base = MONTH_NAME_BY_NUMBER[month.number]
    return f"閏{base}" if month.is_leap else base


def lunar_month_display_name(month_no: int, is_leap: bool) -> str:
    m = int(month_no)
    if m not in MONTH_NAME_BY_NUMBER:
        raise ValueError(f"invalid lunar month_no: {month_no}")
    base = MONTH_NAME_BY_NUMBER[m]
    return f"閏{base}" if is_leap else base


def day_name(day: int) -> str:
    """初一 .. 初十, 十一 .. 十九, 二十, 廿一 .. 廿九, 三十."""
    d = int(day)
    if 1 <= d <= 10:
        prefix = "初"
    elif 11 <= d <= 19:
        prefix = "十"
    elif d == 20:
        prefix = "二"
    elif 21 <= d <= 29:
        prefix = "廿"
    elif d == 30:
        prefix = "三"
    else:
        raise ValueError(f"lunar day out of range: {day}")
    return prefix + NUM_CHINESE[d % 10]


def sexagenary_name(n: int) -> str:
    """1 = 甲子 .. 60 = 癸亥."""
    i = int(n)
    if not (1 <= i <= 60):
        raise ValueError(f"sexagenary number out of range: {n}")
    return HEAVENLY_STEMS[(i - 1) % 10] + EARTHLY_BRANCHES[(i - 1) % 12]


@dataclass(frozen=True)
class SolarTermInfo:
    """
    Structured info for a solar-term degree.
    """
    n: int
    deg: int
    kind: str
    name: str


def solar_term_info_from_deg(deg: float) -> SolarTermInfo:
    deg_norm = normalize_term_deg(deg)
    n = int((deg_norm // 15) % 24)
    return SolarTermInfo(n=n, deg=deg_norm, kind=term_kind_from_deg(deg_norm), name=SOLAR_TERM_NAME_BY_DEG[deg_norm])
