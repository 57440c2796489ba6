from __future__ import annotations

import re
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

from subscriber_core.data import clean_text, coerce_date, coerce_fee, is_blank
from subscriber_core.errors import (
    InvalidFieldError,
    InvalidPhoneError,
    InvalidProviderError,
    MissingFieldsError,
)
from subscriber_core.models import STATUS_ACTIVE, STATUSES
from subscriber_core.result import Result

PHONE_RE = re.compile(r"[0-9]{10}")

DEFAULT_PROVIDERS = ("Asianet", "KCCL", "BSNL", "KFoN")

CODE_PREFIX = "SUB"


def is_valid_phone(phone: object) -> bool:
    return isinstance(phone, str) and PHONE_RE.fullmatch(phone) is not None


def normalize_phone(value: object) -> Optional[str]:
    """Phone as text; spreadsheet numerics like 9876543210.0 lose the trailing .0."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    s = clean_text(value)
    if s is not None and s.endswith(".0") and s[:-2].isdigit():
        s = s[:-2]
    return s


def required_fields(*, require_address: bool = True, require_connection_date: bool = True) -> List[str]:
    fields = ["name", "phone", "area"]
    if require_address:
        fields.append("address")
    fields.append("monthly_fee")
    if require_connection_date:
        fields.append("connection_date")
    return fields


def validate_subscriber(
    form: Mapping[str, Any],
    *,
    providers: Sequence[str] = DEFAULT_PROVIDERS,
    require_address: bool = True,
    require_connection_date: bool = True,
) -> Result[Dict[str, Any]]:
    """Validate a submitted form and return the normalized partial record.

    Checks run in order and the first failure wins: missing required fields,
    phone shape, provider selection, then fee/date/status values. No store is
    contacted here.
    """
    missing = [
        f
        for f in required_fields(require_address=require_address, require_connection_date=require_connection_date)
        if is_blank(form.get(f))
    ]
    if missing:
        return Result.failure(MissingFieldsError(missing))

    phone = str(form.get("phone"))
    if not is_valid_phone(phone):
        return Result.failure(InvalidPhoneError(phone))

    provider = clean_text(form.get("service_provider")) or ""
    if not provider or provider not in providers:
        return Result.failure(InvalidProviderError(provider))

    fee = coerce_fee(form.get("monthly_fee"))
    if fee is None or fee < 0:
        return Result.failure(InvalidFieldError("monthly_fee", "Monthly fee must be a non-negative number"))

    connection_date = None
    if not is_blank(form.get("connection_date")):
        connection_date = coerce_date(form.get("connection_date"))
        if connection_date is None:
            return Result.failure(InvalidFieldError("connection_date", "Connection date is not a valid date"))

    status = (clean_text(form.get("status")) or STATUS_ACTIVE).lower()
    if status not in STATUSES:
        return Result.failure(InvalidFieldError("status", f"Status must be one of: {', '.join(STATUSES)}"))

    return Result.success(
        {
            "subscriber_code": clean_text(form.get("subscriber_code")),
            "name": str(form.get("name")).strip(),
            "phone": phone,
            "area": str(form.get("area")).strip(),
            "address": clean_text(form.get("address")) or "",
            "service_provider": provider,
            "monthly_fee": fee,
            "connection_date": connection_date,
            "status": status,
        }
    )


def generate_subscriber_code(day: date, created_today: int) -> str:
    """SUB-<YYYYMMDD>-<NNN>, where NNN is the number of records created that day plus one.

    Two inserts racing on the same day can read the same count and produce the
    same code; the store does not reject duplicates.
    """
    return f"{CODE_PREFIX}-{day.strftime('%Y%m%d')}-{created_today + 1:03d}"


def import_subscriber_code(row_index: int) -> str:
    return f"{CODE_PREFIX}-IMPORT-{row_index:03d}"
