from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from subscriber_core.data import clean_text, coerce_date, coerce_fee
from subscriber_core.errors import BulkImportError
from subscriber_core.models import STATUS_ACTIVE, STATUSES
from subscriber_core.validation import import_subscriber_code, is_valid_phone, normalize_phone

logger = logging.getLogger(__name__)

# Accepted header spellings per canonical field, first match wins (case-insensitive).
COLUMN_ALIASES: Dict[str, List[str]] = {
    "subscriber_code": ["Subscriber_Id", "Subscriber Id", "Subscriber Code", "subscriber_code", "Code"],
    "name": ["Name", "Subscriber Name", "Customer Name"],
    "phone": ["Mobile", "Phone", "Mobile Number", "Phone Number", "Contact"],
    "area": ["Area", "Locality", "Zone"],
    "address": ["Address"],
    "service_provider": ["Service Provider", "service_provider", "Provider", "Service"],
    "monthly_fee": ["Monthly Fee", "monthly_fee", "Fee", "Amount"],
    "connection_date": ["Connection Date", "connection_date", "Date"],
    "status": ["Status"],
}

REQUIRED_IMPORT_FIELDS = ["name", "phone", "area", "service_provider"]

EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}

Source = Union[str, Path, bytes, BinaryIO]


@dataclass(frozen=True)
class SkippedRow:
    row_number: int
    reason: str


@dataclass
class ImportBatch:
    records: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[SkippedRow] = field(default_factory=list)


def _header_key(header: object) -> str:
    return str(header).strip().lower()


def resolve_columns(headers: Iterable[object]) -> Dict[str, object]:
    """Map each canonical field to the first matching header present in the file."""
    by_key: Dict[str, object] = {}
    for h in headers:
        by_key.setdefault(_header_key(h), h)
    resolved: Dict[str, object] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            header = by_key.get(_header_key(alias))
            if header is not None:
                resolved[canonical] = header
                break
    return resolved


def read_import_file(
    source: Source,
    filename: Optional[str] = None,
    allowed_extensions: Optional[Iterable[str]] = None,
) -> List[Dict[str, Any]]:
    """Read the first sheet (or a CSV) into header -> cell rows, cells as text.

    ``allowed_extensions`` narrows the accepted file types further; it cannot add
    a type there is no reader for.
    """
    name = filename or (str(source) if isinstance(source, (str, Path)) else "")
    ext = Path(name).suffix.lower()
    if allowed_extensions is not None:
        allowed = [e.lower() for e in allowed_extensions]
        if ext not in allowed:
            raise BulkImportError(f"File type '{ext or name}' is not allowed. Accepted: {', '.join(allowed)}")
    data = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        if ext == ".csv":
            df = pd.read_csv(data, dtype=str, encoding="utf-8-sig")
        elif ext in EXCEL_EXTENSIONS:
            df = pd.read_excel(data, dtype=str, engine="openpyxl")
        else:
            raise BulkImportError(f"Unsupported file type '{ext or name}'. Upload an Excel or CSV file.")
    except BulkImportError:
        raise
    except Exception as exc:
        logger.warning("Could not read import file %s: %s", name, exc)
        raise BulkImportError(f"Could not read {name or 'the uploaded file'}: {exc}") from exc
    df = df.dropna(how="all")
    return df.to_dict(orient="records")


def _decode_row(row: Mapping[str, Any], columns: Dict[str, object], row_index: int, default_provider: Optional[str]) -> Dict[str, Any]:
    def cell(canonical: str) -> Any:
        header = columns.get(canonical)
        return row.get(header) if header is not None else None

    fee = coerce_fee(cell("monthly_fee"))
    if fee is None or fee < 0:
        fee = 0.0

    status = (clean_text(cell("status")) or "").lower()
    if status not in STATUSES:
        status = STATUS_ACTIVE

    return {
        "subscriber_code": clean_text(cell("subscriber_code")) or import_subscriber_code(row_index),
        "name": clean_text(cell("name")),
        "phone": normalize_phone(cell("phone")),
        "area": clean_text(cell("area")),
        "address": clean_text(cell("address")) or "",
        "service_provider": clean_text(cell("service_provider")) or (clean_text(default_provider) if default_provider else None),
        "monthly_fee": fee,
        "connection_date": coerce_date(cell("connection_date")),
        "status": status,
    }


def decode_rows(
    rows: Iterable[Mapping[str, Any]],
    *,
    default_provider: Optional[str] = None,
    providers: Optional[Sequence[str]] = None,
) -> ImportBatch:
    """Turn raw spreadsheet rows into insertable records, dropping invalid rows.

    A row is dropped when any of name, phone, area or service provider is empty,
    when the phone is not 10 digits, or (given ``providers``) when the provider is
    not a known one. Dropped rows are logged and listed in
    ``ImportBatch.skipped``; they never abort the import.
    """
    rows = list(rows)
    batch = ImportBatch()
    if not rows:
        return batch
    headers: List[object] = []
    for r in rows:
        for h in r.keys():
            if h not in headers:
                headers.append(h)
    columns = resolve_columns(headers)
    allowed = {p.lower(): p for p in providers} if providers else None

    for idx, row in enumerate(rows, start=1):
        record = _decode_row(row, columns, idx, default_provider)
        missing = [f for f in REQUIRED_IMPORT_FIELDS if not record.get(f)]
        if missing:
            reason = "missing " + ", ".join(missing)
        elif not is_valid_phone(record["phone"]):
            reason = f"invalid mobile number {record['phone']!r}"
        elif allowed is not None and record["service_provider"].lower() not in allowed:
            reason = f"unknown service provider {record['service_provider']!r}"
        else:
            if allowed is not None:
                record["service_provider"] = allowed[record["service_provider"].lower()]
            batch.records.append(record)
            continue
        logger.info("Skipping import row %d: %s", idx, reason)
        batch.skipped.append(SkippedRow(row_number=idx, reason=reason))
    return batch
