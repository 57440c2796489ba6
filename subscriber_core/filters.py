from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

ALL = "all"

FEE_RANGES = ("all", "low", "medium", "high")

# Lower bound inclusive, upper bound exclusive.
LOW_FEE_LIMIT = 600.0
HIGH_FEE_LIMIT = 900.0


@dataclass(frozen=True)
class SubscriberFilters:
    search_term: str = ""
    area: str = ALL
    fee_range: str = ALL


def fee_bracket(fee: float) -> str:
    if fee < LOW_FEE_LIMIT:
        return "low"
    if fee < HIGH_FEE_LIMIT:
        return "medium"
    return "high"


def normalize_filters(raw: Optional[dict]) -> SubscriberFilters:
    raw = raw or {}
    search_term = str(raw.get("search_term") or "").strip()

    area = raw.get("area")
    area = ALL if area is None or not str(area).strip() else str(area)

    fee_range = str(raw.get("fee_range") or ALL).strip().lower()
    if fee_range not in FEE_RANGES:
        fee_range = ALL

    return SubscriberFilters(search_term=search_term, area=area, fee_range=fee_range)
