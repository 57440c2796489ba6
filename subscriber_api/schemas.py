from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field


class SubscriberFiltersModel(BaseModel):
    search_term: str = ""
    area: str = "all"
    fee_range: str = "all"


class SubscriberFormModel(BaseModel):
    """Raw form values; validation happens in the core so the API and the UI agree."""

    subscriber_code: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    area: Optional[str] = None
    address: Optional[str] = None
    service_provider: Optional[str] = None
    monthly_fee: Optional[Union[float, str]] = None
    connection_date: Optional[str] = None
    status: Optional[str] = "active"


class SubscriberModel(BaseModel):
    id: str
    subscriber_code: Optional[str] = None
    name: str
    phone: str
    area: str
    address: str = ""
    service_provider: str = ""
    monthly_fee: float = 0.0
    connection_date: Optional[str] = None
    status: str = "active"
    created_at: Optional[str] = None
    created_by: Optional[str] = None
    last_edited_by: Optional[str] = None
    last_edited_at: Optional[str] = None


class SkippedRowModel(BaseModel):
    row_number: int
    reason: str


class ImportSummaryModel(BaseModel):
    imported: int
    skipped: List[SkippedRowModel] = Field(default_factory=list)


class MetaListResponse(BaseModel):
    values: List[str]
