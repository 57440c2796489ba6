"""
Record store adapters for the ``subscribers`` table.

Two interchangeable backends implement :class:`SubscriberStore`:

* :class:`LocalJsonStore` keeps the table as one JSON blob under a key in a
  local file (the same shape a browser key-value store would hold).
* :class:`RemoteTableStore` talks to a hosted table over a PostgREST-style REST
  API (e.g. Supabase) using ``requests``.

Both coerce ``monthly_fee`` to a number and stamp audit metadata on every
write. Every failure is raised as :class:`StoreError` with a human-readable
message; there is no retry.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import requests

from subscriber_core.config import Settings
from subscriber_core.errors import StoreError
from subscriber_core.models import EDITABLE_FIELDS, Subscriber

logger = logging.getLogger(__name__)

# Never written by callers on update.
IMMUTABLE_FIELDS = {"id", "created_at", "created_by"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class SubscriberStore(ABC):
    """Contract shared by every backend."""

    def __init__(self, editor: str = "admin", clock: Callable[[], datetime] = utc_now) -> None:
        self.editor = editor
        self.clock = clock

    @abstractmethod
    def list(self) -> List[Subscriber]:
        """All records, newest ``created_at`` first."""

    @abstractmethod
    def insert_many(self, partials: Iterable[Mapping[str, Any]]) -> List[Subscriber]:
        ...

    @abstractmethod
    def update(self, subscriber_id: str, partial: Mapping[str, Any]) -> Subscriber:
        ...

    @abstractmethod
    def delete(self, subscriber_id: str) -> None:
        ...

    @abstractmethod
    def count_since(self, day: date) -> int:
        """Number of records created on or after the start of ``day`` (UTC)."""

    def insert(self, partial: Mapping[str, Any]) -> Subscriber:
        return self.insert_many([partial])[0]

    # -------- write preparation --------

    def _coerce_fee(self, row: Dict[str, Any]) -> None:
        if "monthly_fee" not in row:
            return
        try:
            row["monthly_fee"] = float(row["monthly_fee"])
        except (TypeError, ValueError):
            raise StoreError(f"Monthly fee is not a number: {row['monthly_fee']!r}")

    def _prepare_insert(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        row = {k: v for k, v in partial.items() if k in EDITABLE_FIELDS}
        self._coerce_fee(row)
        now = self.clock().isoformat()
        row["created_by"] = self.editor
        row["last_edited_by"] = self.editor
        row["last_edited_at"] = now
        return row

    def _prepare_update(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        row = {k: v for k, v in partial.items() if k in EDITABLE_FIELDS and k not in IMMUTABLE_FIELDS}
        self._coerce_fee(row)
        row["last_edited_by"] = self.editor
        row["last_edited_at"] = self.clock().isoformat()
        return row


class LocalJsonStore(SubscriberStore):
    """Subscriber table persisted as ``{key: [rows...]}`` in a local JSON file."""

    def __init__(self, path: str | Path, key: str = "subscribers", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.path = Path(path)
        self.key = key
        self._lock = threading.Lock()

    def _read_blob(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                blob = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read {self.path}: {exc}") from exc
        if not isinstance(blob, dict) or not isinstance(blob.get(self.key, []), list):
            raise StoreError(f"{self.path} does not contain a '{self.key}' table")
        return blob

    def _write_blob(self, blob: Dict[str, Any]) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(blob, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreError(f"Could not write {self.path}: {exc}") from exc

    def _rows(self, blob: Dict[str, Any]) -> List[Dict[str, Any]]:
        return blob.setdefault(self.key, [])

    def list(self) -> List[Subscriber]:
        with self._lock:
            rows = list(self._rows(self._read_blob()))
        # Reverse first so rows sharing a timestamp keep newest-insert-first.
        rows = sorted(reversed(rows), key=lambda r: r.get("created_at") or "", reverse=True)
        return [Subscriber.from_row(r) for r in rows]

    def insert_many(self, partials: Iterable[Mapping[str, Any]]) -> List[Subscriber]:
        prepared = [self._prepare_insert(p) for p in partials]
        with self._lock:
            blob = self._read_blob()
            rows = self._rows(blob)
            created = []
            for row in prepared:
                row["id"] = uuid.uuid4().hex
                row["created_at"] = self.clock().isoformat()
                rows.append(row)
                created.append(row)
            self._write_blob(blob)
        logger.info("Inserted %d subscriber(s) into %s", len(created), self.path)
        return [Subscriber.from_row(r) for r in created]

    def update(self, subscriber_id: str, partial: Mapping[str, Any]) -> Subscriber:
        changes = self._prepare_update(partial)
        with self._lock:
            blob = self._read_blob()
            for row in self._rows(blob):
                if str(row.get("id")) == str(subscriber_id):
                    row.update(changes)
                    self._write_blob(blob)
                    logger.info("Updated subscriber %s", subscriber_id)
                    return Subscriber.from_row(row)
        raise StoreError(f"Subscriber {subscriber_id} not found")

    def delete(self, subscriber_id: str) -> None:
        with self._lock:
            blob = self._read_blob()
            rows = self._rows(blob)
            kept = [r for r in rows if str(r.get("id")) != str(subscriber_id)]
            if len(kept) == len(rows):
                raise StoreError(f"Subscriber {subscriber_id} not found")
            blob[self.key] = kept
            self._write_blob(blob)
        logger.info("Deleted subscriber %s", subscriber_id)

    def count_since(self, day: date) -> int:
        since = start_of_day(day)
        with self._lock:
            rows = list(self._rows(self._read_blob()))
        count = 0
        for row in rows:
            try:
                created = datetime.fromisoformat(str(row.get("created_at")))
            except ValueError:
                continue
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            if created >= since:
                count += 1
        return count


class RemoteTableStore(SubscriberStore):
    """Hosted ``subscribers`` table behind a PostgREST-style REST endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        table: str = "subscribers",
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = 30.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        if not base_url:
            raise StoreError("Remote store URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})

    @property
    def table_url(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _request(
        self,
        method: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> requests.Response:
        headers = {"Prefer": prefer} if prefer else {}
        try:
            resp = self.session.request(method, self.table_url, params=params, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, self.table_url, exc)
            raise StoreError(f"Could not reach the subscriber store: {exc}") from exc
        if resp.status_code >= 400:
            raise StoreError(self._error_message(resp))
        return resp

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error_description") or body.get("error")
            if message:
                return str(message)
        return f"Store request failed with HTTP {resp.status_code}: {resp.text[:200]}"

    @staticmethod
    def _rows(resp: requests.Response) -> List[Dict[str, Any]]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise StoreError(f"Store returned invalid JSON: {exc}") from exc
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise StoreError("Store returned an unexpected payload")
        return data

    def list(self) -> List[Subscriber]:
        resp = self._request("GET", params={"select": "*", "order": "created_at.desc"})
        return [Subscriber.from_row(r) for r in self._rows(resp)]

    def insert_many(self, partials: Iterable[Mapping[str, Any]]) -> List[Subscriber]:
        payload = [self._prepare_insert(p) for p in partials]
        if not payload:
            return []
        resp = self._request("POST", payload=payload, prefer="return=representation")
        created = [Subscriber.from_row(r) for r in self._rows(resp)]
        logger.info("Inserted %d subscriber(s) into %s", len(created), self.table)
        return created

    def update(self, subscriber_id: str, partial: Mapping[str, Any]) -> Subscriber:
        resp = self._request(
            "PATCH",
            params={"id": f"eq.{subscriber_id}"},
            payload=self._prepare_update(partial),
            prefer="return=representation",
        )
        rows = self._rows(resp)
        if not rows:
            raise StoreError(f"Subscriber {subscriber_id} not found")
        logger.info("Updated subscriber %s", subscriber_id)
        return Subscriber.from_row(rows[0])

    def delete(self, subscriber_id: str) -> None:
        resp = self._request("DELETE", params={"id": f"eq.{subscriber_id}"}, prefer="return=representation")
        if not self._rows(resp):
            raise StoreError(f"Subscriber {subscriber_id} not found")
        logger.info("Deleted subscriber %s", subscriber_id)

    def count_since(self, day: date) -> int:
        resp = self._request(
            "GET",
            params={"select": "id", "created_at": f"gte.{start_of_day(day).isoformat()}"},
            prefer="count=exact",
        )
        content_range = resp.headers.get("Content-Range", "")
        total = content_range.rsplit("/", 1)[-1] if "/" in content_range else ""
        if total.isdigit():
            return int(total)
        return len(self._rows(resp))


def create_store(settings: Settings) -> SubscriberStore:
    if settings.STORE_BACKEND == "remote":
        return RemoteTableStore(
            base_url=settings.REMOTE_URL,
            api_key=settings.REMOTE_API_KEY,
            table=settings.REMOTE_TABLE,
            timeout=settings.REMOTE_TIMEOUT_SECONDS,
            editor=settings.EDITOR_NAME,
        )
    return LocalJsonStore(settings.LOCAL_STORE_PATH, key=settings.LOCAL_STORE_KEY, editor=settings.EDITOR_NAME)
