from __future__ import annotations

import math
from datetime import date, datetime
from typing import Iterable, List, Optional

import pandas as pd

from subscriber_core.models import AUDIT_FIELDS, EDITABLE_FIELDS, Subscriber

FRAME_COLUMNS = ["id"] + EDITABLE_FIELDS + AUDIT_FIELDS

# Static reference artifact offered for download next to the import button.
TEMPLATE_CSV = (
    "Subscriber_Id,Name,Mobile,Area,Address,Monthly Fee,Connection Date,Status\n"
    'SUB-001,Ravi Kumar,9876543210,Kaloor,"12 Market Road, Kaloor",450,2024-01-15,active\n'
)


def is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if value is pd.NA or value is pd.NaT:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def clean_text(value: object) -> Optional[str]:
    """Trimmed string, or None for None, NaN and whitespace-only text.

    Spreadsheet NA markers are turned into NaN by pandas when the file is read;
    text that merely spells one ("None", "Nan") is kept as typed.
    """
    if is_blank(value):
        return None
    return str(value).strip()


def coerce_fee(value: object) -> Optional[float]:
    """Parse a monthly fee; None when it is not a finite number."""
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return None
    try:
        fee = float(str(value).strip().replace(",", "")) if isinstance(value, str) else float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(fee) or math.isinf(fee):
        return None
    return fee


def coerce_date(value: object) -> Optional[str]:
    """Normalize a calendar date (date, datetime, Timestamp or text) to YYYY-MM-DD."""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    ts = pd.to_datetime(str(value).strip(), errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date().isoformat()


def records_to_frame(records: Iterable[Subscriber]) -> pd.DataFrame:
    df = pd.DataFrame([r.to_dict() for r in records], columns=FRAME_COLUMNS)
    for col in ["name", "phone", "area", "address", "service_provider", "subscriber_code", "status"]:
        df[col] = df[col].fillna("").astype(str)
    df["monthly_fee"] = pd.to_numeric(df["monthly_fee"], errors="coerce").fillna(0.0).astype(float)
    return df


def round_2(value: object) -> float:
    return round(float(value or 0), 2)


def format_currency(value: object, symbol: str = "₹", decimals: int = 2) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"{symbol}{float(value):,.{decimals}f}"


def format_currency_columns(df: pd.DataFrame, cols: Iterable[str], symbol: str = "₹", decimals: int = 2) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_currency(v, symbol, decimals) if pd.notna(v) else "")
    return formatted


def table_frame(records: List[Subscriber]) -> pd.DataFrame:
    """Columns shown in the subscriber table and the CSV export, in display order."""
    df = records_to_frame(records)
    cols = ["subscriber_code", "name", "phone", "area", "address", "service_provider", "monthly_fee", "connection_date", "status"]
    return df[cols].rename(
        columns={
            "subscriber_code": "Code",
            "name": "Name",
            "phone": "Phone",
            "area": "Area",
            "address": "Address",
            "service_provider": "Provider",
            "monthly_fee": "Fee",
            "connection_date": "Connection Date",
            "status": "Status",
        }
    )


def export_csv(records: List[Subscriber]) -> bytes:
    return table_frame(records).to_csv(index=False).encode("utf-8")
