from __future__ import annotations

import logging
import math
from dataclasses import asdict
from functools import lru_cache

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, File, Form, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from subscriber_api.schemas import (
    ImportSummaryModel,
    MetaListResponse,
    SubscriberFiltersModel,
    SubscriberFormModel,
    SubscriberModel,
)
from subscriber_core.config import get_settings
from subscriber_core.data import TEMPLATE_CSV, export_csv
from subscriber_core.errors import BulkImportError, MissingFieldsError, StoreError, SubscriberError, ValidationError
from subscriber_core.filters import normalize_filters
from subscriber_core.logging_config import setup_logging
from subscriber_core.metrics import area_options, compute_dashboard, filter_subscribers
from subscriber_core.service import SubscriberService
from subscriber_core.store import create_store

settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

app = FastAPI(title=f"{settings.APP_TITLE} API", version=settings.APP_VERSION)
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache()
def get_service() -> SubscriberService:
    return SubscriberService(create_store(settings), settings)


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: SubscriberError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        status_code = 422
    elif isinstance(exc, BulkImportError):
        status_code = 400
    elif isinstance(exc, StoreError):
        status_code = 502
    else:
        status_code = 500
    content = {"error": exc.message, "type": type(exc).__name__}
    if isinstance(exc, MissingFieldsError):
        content["fields"] = exc.fields
    return JSONResponse(status_code=status_code, content=content)


def _unexpected(name: str, exc: Exception) -> JSONResponse:
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/areas", response_model=MetaListResponse)
def meta_areas(service: SubscriberService = Depends(get_service)):
    try:
        result = service.refresh()
        if not result.ok:
            return _error(result.error)
        return _json({"values": area_options(result.value)})
    except Exception as exc:
        return _unexpected("meta_areas", exc)


@app.get("/meta/providers", response_model=MetaListResponse)
def meta_providers():
    return _json({"values": list(settings.SERVICE_PROVIDERS)})


@app.get("/subscribers")
def list_subscribers(
    search_term: str = Query(default=""),
    area: str = Query(default="all"),
    fee_range: str = Query(default="all"),
    service: SubscriberService = Depends(get_service),
):
    try:
        result = service.refresh()
        if not result.ok:
            return _error(result.error)
        f = normalize_filters({"search_term": search_term, "area": area, "fee_range": fee_range})
        return _json([r.to_dict() for r in filter_subscribers(result.value, f)])
    except Exception as exc:
        return _unexpected("list_subscribers", exc)


@app.post("/dashboard")
def dashboard(filters: SubscriberFiltersModel, service: SubscriberService = Depends(get_service)):
    try:
        result = service.refresh()
        if not result.ok:
            return _error(result.error)
        f = normalize_filters(filters.model_dump())
        return _json(compute_dashboard(f, result.value, currency_symbol=settings.CURRENCY_SYMBOL))
    except Exception as exc:
        return _unexpected("dashboard", exc)


@app.post("/subscribers", response_model=SubscriberModel, status_code=201)
def create_subscriber(form: SubscriberFormModel, service: SubscriberService = Depends(get_service)):
    try:
        result = service.save(form.model_dump())
        if not result.ok:
            return _error(result.error)
        return _json(result.value.to_dict(), status_code=201)
    except Exception as exc:
        return _unexpected("create_subscriber", exc)


@app.put("/subscribers/{subscriber_id}", response_model=SubscriberModel)
def update_subscriber(subscriber_id: str, form: SubscriberFormModel, service: SubscriberService = Depends(get_service)):
    try:
        result = service.save(form.model_dump(), editing_id=subscriber_id)
        if not result.ok:
            return _error(result.error)
        return _json(result.value.to_dict())
    except Exception as exc:
        return _unexpected("update_subscriber", exc)


@app.delete("/subscribers/{subscriber_id}")
def delete_subscriber(
    subscriber_id: str,
    confirm: bool = Query(default=False),
    service: SubscriberService = Depends(get_service),
):
    if not confirm:
        return JSONResponse(
            status_code=400,
            content={"error": "Deletion must be confirmed with confirm=true", "type": "ConfirmationRequired"},
        )
    try:
        result = service.delete(subscriber_id, confirmed=True)
        if not result.ok:
            return _error(result.error)
        return _json({"deleted": subscriber_id})
    except Exception as exc:
        return _unexpected("delete_subscriber", exc)


@app.post("/import", response_model=ImportSummaryModel)
def import_subscribers(
    file: UploadFile = File(...),
    default_provider: str = Form(default=""),
    service: SubscriberService = Depends(get_service),
):
    try:
        content = file.file.read()
        if len(content) > settings.MAX_IMPORT_FILE_SIZE_MB * 1024 * 1024:
            return _error(BulkImportError(f"File exceeds the {settings.MAX_IMPORT_FILE_SIZE_MB} MB limit"))
        result = service.import_file(content, file.filename, default_provider=default_provider or None)
        if not result.ok:
            return _error(result.error)
        return _json(asdict(result.value))
    except Exception as exc:
        return _unexpected("import_subscribers", exc)


@app.get("/template")
def template():
    return Response(
        content=TEMPLATE_CSV.encode("utf-8"),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=subscriber_template.csv"},
    )


@app.post("/export")
def export(filters: SubscriberFiltersModel, service: SubscriberService = Depends(get_service)):
    try:
        result = service.refresh()
        if not result.ok:
            return _error(result.error)
        f = normalize_filters(filters.model_dump())
        return Response(
            content=export_csv(filter_subscribers(result.value, f)),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=subscribers.csv"},
        )
    except Exception as exc:
        return _unexpected("export", exc)
