from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Sequence

import pandas as pd

from subscriber_core.charts import revenue_by_area_chart, to_vega_spec
from subscriber_core.data import format_currency, records_to_frame, round_2
from subscriber_core.filters import ALL, SubscriberFilters, fee_bracket
from subscriber_core.models import STATUS_ACTIVE, STATUSES, Subscriber

SEARCH_COLUMNS = ["name", "phone", "address", "area", "subscriber_code"]


@dataclass(frozen=True)
class SubscriberStats:
    total: int
    active: int
    total_revenue: float

    @property
    def total_revenue_display(self) -> str:
        return f"{self.total_revenue:.2f}"


def filter_mask(df: pd.DataFrame, filters: SubscriberFilters) -> pd.Series:
    """Search AND area AND fee-bracket predicate over a subscriber frame."""
    mask = pd.Series(True, index=df.index)
    if df.empty:
        return mask

    if filters.search_term:
        q = filters.search_term.lower()
        search = pd.Series(False, index=df.index)
        for col in SEARCH_COLUMNS:
            search |= df[col].astype(str).str.lower().str.contains(q, regex=False, na=False)
        mask &= search

    if filters.area != ALL:
        mask &= df["area"] == filters.area

    if filters.fee_range != ALL:
        mask &= df["monthly_fee"].map(fee_bracket) == filters.fee_range
    return mask


def filter_subscribers(records: Sequence[Subscriber], filters: SubscriberFilters) -> List[Subscriber]:
    records = list(records)
    if not records:
        return []
    mask = filter_mask(records_to_frame(records), filters)
    return [r for r, keep in zip(records, mask.tolist()) if keep]


def compute_stats(records: Sequence[Subscriber]) -> SubscriberStats:
    active = [r for r in records if r.status == STATUS_ACTIVE]
    revenue = 0.0
    for r in active:
        revenue += float(r.monthly_fee or 0)
    return SubscriberStats(total=len(records), active=len(active), total_revenue=revenue)


def area_options(records: Sequence[Subscriber]) -> List[str]:
    areas = pd.unique(pd.Series([r.area for r in records], dtype=object))
    return [ALL] + [a for a in areas if a != ALL]


def status_counts(records: Sequence[Subscriber]) -> Dict[str, int]:
    counts = {s: 0 for s in STATUSES}
    for r in records:
        counts[r.status] = counts.get(r.status, 0) + 1
    return counts


def revenue_by_area(records: Sequence[Subscriber]) -> pd.DataFrame:
    df = records_to_frame(records)
    df = df[df["status"] == STATUS_ACTIVE]
    if df.empty:
        return pd.DataFrame(columns=["area", "subscribers", "revenue"])
    return (
        df.groupby("area", sort=False)
        .agg(subscribers=("id", "count"), revenue=("monthly_fee", "sum"))
        .reset_index()
        .sort_values("revenue", ascending=False)
        .reset_index(drop=True)
    )


def compute_dashboard(filters: SubscriberFilters, records: Sequence[Subscriber], *, currency_symbol: str = "₹") -> Dict[str, Any]:
    records = list(records)
    stats = compute_stats(records)
    filtered = filter_subscribers(records, filters)

    by_area = revenue_by_area(records)
    chart = revenue_by_area_chart(by_area, currency_symbol)

    return {
        "filters": asdict(filters),
        "stats": {
            "total": stats.total,
            "active": stats.active,
            "total_revenue": round_2(stats.total_revenue),
            "total_revenue_display": format_currency(stats.total_revenue, currency_symbol),
        },
        "status_counts": status_counts(records),
        "areas": area_options(records),
        "filtered_count": len(filtered),
        "subscribers": [r.to_dict() for r in filtered],
        "revenue_by_area": by_area.to_dict(orient="records"),
        "charts": {"revenue_by_area": to_vega_spec(chart) if chart is not None else None},
    }
