from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

STATUS_ACTIVE = "active"
STATUSES = ("active", "inactive", "suspended")

# Columns a user may supply through the form or an import file.
EDITABLE_FIELDS = [
    "subscriber_code",
    "name",
    "phone",
    "area",
    "address",
    "service_provider",
    "monthly_fee",
    "connection_date",
    "status",
]

AUDIT_FIELDS = ["created_at", "created_by", "last_edited_by", "last_edited_at"]


@dataclass(frozen=True)
class Subscriber:
    id: str
    name: str
    phone: str
    area: str
    address: str = ""
    service_provider: str = ""
    monthly_fee: float = 0.0
    connection_date: Optional[str] = None
    status: str = STATUS_ACTIVE
    subscriber_code: Optional[str] = None
    created_at: Optional[str] = None
    created_by: Optional[str] = None
    last_edited_by: Optional[str] = None
    last_edited_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Subscriber":
        """Build a record from a store row, ignoring columns the model does not know."""
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in row.items() if k in known}
        data["id"] = str(data.get("id", ""))
        for key in ("name", "phone", "area", "address", "service_provider"):
            data[key] = "" if data.get(key) is None else str(data[key])
        try:
            data["monthly_fee"] = float(data.get("monthly_fee") or 0)
        except (TypeError, ValueError):
            data["monthly_fee"] = 0.0
        data["status"] = data.get("status") or STATUS_ACTIVE
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def form_values(self) -> Dict[str, Any]:
        """Editable fields only, as pre-filled into the edit form."""
        data = self.to_dict()
        return {k: data[k] for k in EDITABLE_FIELDS}
