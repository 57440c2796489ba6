"""
Foreground flow behind both the API and the Streamlit page.

Every public method returns a :class:`Result` so callers branch on the tagged
error instead of catching exceptions. Mutations never update the in-memory list
themselves; callers refresh the full list afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Mapping, Optional

from subscriber_core.config import Settings
from subscriber_core.errors import BulkImportError, StoreError, SubscriberError
from subscriber_core.importer import SkippedRow, Source, decode_rows, read_import_file
from subscriber_core.models import Subscriber
from subscriber_core.result import Result
from subscriber_core.store import SubscriberStore, utc_now
from subscriber_core.validation import generate_subscriber_code, validate_subscriber

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportSummary:
    imported: int
    skipped: List[SkippedRow] = field(default_factory=list)


class SubscriberService:
    def __init__(self, store: SubscriberStore, settings: Settings, today: Optional[Callable[[], date]] = None) -> None:
        self.store = store
        self.settings = settings
        self.today = today or (lambda: utc_now().date())

    def refresh(self) -> Result[List[Subscriber]]:
        try:
            return Result.success(self.store.list())
        except StoreError as exc:
            logger.warning("Loading subscribers failed: %s", exc)
            return Result.failure(exc)

    def next_subscriber_code(self, day: Optional[date] = None) -> Result[str]:
        day = day or self.today()
        try:
            return Result.success(generate_subscriber_code(day, self.store.count_since(day)))
        except StoreError as exc:
            return Result.failure(exc)

    def save(self, form: Mapping[str, Any], editing_id: Optional[str] = None) -> Result[Subscriber]:
        validated = validate_subscriber(
            form,
            providers=self.settings.SERVICE_PROVIDERS,
            require_address=self.settings.REQUIRE_ADDRESS,
            require_connection_date=self.settings.REQUIRE_CONNECTION_DATE,
        )
        if not validated.ok:
            return Result.failure(validated.error)  # type: ignore[arg-type]
        partial = dict(validated.value or {})

        try:
            if editing_id:
                if not partial.get("subscriber_code"):
                    partial.pop("subscriber_code", None)
                return Result.success(self.store.update(editing_id, partial))
            if not partial.get("subscriber_code"):
                partial["subscriber_code"] = self.next_subscriber_code().unwrap()
            return Result.success(self.store.insert(partial))
        except StoreError as exc:
            logger.warning("Saving subscriber failed: %s", exc)
            return Result.failure(exc)

    def delete(self, subscriber_id: str, *, confirmed: bool) -> Result[bool]:
        if not confirmed:
            return Result.success(False)
        try:
            self.store.delete(subscriber_id)
        except StoreError as exc:
            logger.warning("Deleting subscriber %s failed: %s", subscriber_id, exc)
            return Result.failure(exc)
        return Result.success(True)

    def import_file(self, source: Source, filename: Optional[str] = None, default_provider: Optional[str] = None) -> Result[ImportSummary]:
        try:
            rows = read_import_file(source, filename, allowed_extensions=self.settings.ALLOWED_IMPORT_EXTENSIONS)
            batch = decode_rows(
                rows,
                default_provider=default_provider or self.settings.IMPORT_DEFAULT_PROVIDER or None,
                providers=self.settings.SERVICE_PROVIDERS,
            )
            if not batch.records:
                raise BulkImportError(f"No valid rows found in {filename or 'the uploaded file'}")
            created = self.store.insert_many(batch.records)
        except SubscriberError as exc:
            logger.warning("Import failed: %s", exc)
            return Result.failure(exc)
        logger.info("Imported %d subscriber(s), skipped %d row(s)", len(created), len(batch.skipped))
        return Result.success(ImportSummary(imported=len(created), skipped=batch.skipped))
