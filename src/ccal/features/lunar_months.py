# src/ccal/features/lunar_months.py
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from ccal.core.julian import from_jdn
from ccal.core.lunisolar import Annus
from ccal.features.config import month_name, principal_term_name

@dataclass(frozen=True)
class FeatureLunarMonth:
    pos: int
    month_no: int
    is_leap: bool
    month_name: str
    start_date: str
    end_date: str
    length: int
    zhongqi_deg: Optional[int]
    zhongqi_name: Optional[str]
    zhongqi_date: Optional[str]

    @property
    def label(self) -> str:
        return self.month_name

def enrich_months(annus: Annus) -> List[FeatureLunarMonth]:
    out: List[FeatureLunarMonth] = []
    for m in annus.months:
        zq = m.zhongqi
        out.append(
            FeatureLunarMonth(
                pos=m.pos,
                month_no=m.month.number,
                is_leap=m.is_leap,
                month_name=month_name(m.month),
                start_date=from_jdn(m.start).iso(),
                end_date=from_jdn(m.end).iso(),
                length=m.length,
                zhongqi_deg=zq.longitude if zq is not None else None,
                zhongqi_name=principal_term_name(zq.longitude) if zq is not None else None,
                zhongqi_date=from_jdn(zq.day).iso() if zq is not None else None,
            )
        )
    return out
