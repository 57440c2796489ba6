from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def revenue_by_area_chart(revenue: pd.DataFrame, currency_symbol: str = "₹") -> Optional[alt.Chart]:
    """Horizontal bar per area of active monthly revenue; None when there is nothing to plot."""
    if revenue.empty or not {"area", "revenue"}.issubset(revenue.columns):
        return None
    return (
        alt.Chart(revenue)
        .mark_bar()
        .encode(
            x=alt.X("revenue:Q", title=f"Monthly Revenue ({currency_symbol})"),
            y=alt.Y("area:N", title="Area", sort="-x"),
            tooltip=[
                alt.Tooltip("area:N", title="Area"),
                alt.Tooltip("subscribers:Q", title="Active"),
                alt.Tooltip("revenue:Q", title="Revenue", format=",.2f"),
            ],
        )
    )
