"""
Tests for the FastAPI endpoints.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from subscriber_api.main import app, get_service
from subscriber_core.errors import StoreError
from subscriber_core.service import SubscriberService

from conftest import TODAY


class OfflineStore:
    def list(self):
        raise StoreError("Could not reach the subscriber store: timed out")


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def form():
    return {
        "name": "Anil",
        "phone": "9876543210",
        "area": "Kaloor",
        "address": "12 Market Road",
        "service_provider": "Asianet",
        "monthly_fee": 450,
        "connection_date": "2024-01-15",
        "status": "active",
    }


class TestSubscribers:
    def test_create_returns_created_record(self, client, form):
        resp = client.post("/subscribers", json=form)

        assert resp.status_code == 201
        body = resp.json()
        assert body["id"]
        assert body["subscriber_code"] == "SUB-20261018-001"
        assert body["monthly_fee"] == 450.0
        assert body["created_by"] == "tester"

    def test_missing_fields_are_reported(self, client, form):
        form["area"] = ""
        form["address"] = None

        resp = client.post("/subscribers", json=form)

        assert resp.status_code == 422
        body = resp.json()
        assert body["type"] == "MissingFieldsError"
        assert body["fields"] == ["area", "address"]

    def test_bad_phone(self, client, form):
        form["phone"] = "12345"

        resp = client.post("/subscribers", json=form)

        assert resp.status_code == 422
        assert resp.json()["error"] == "Mobile number must be exactly 10 digits"

    def test_update_and_filtered_list(self, client, form):
        created = client.post("/subscribers", json=form).json()
        client.post("/subscribers", json=dict(form, name="Bina", area="Vyttila", monthly_fee=950))

        resp = client.put(f"/subscribers/{created['id']}", json=dict(form, status="suspended"))

        assert resp.status_code == 200
        assert resp.json()["status"] == "suspended"
        listed = client.get("/subscribers", params={"fee_range": "high"}).json()
        assert [r["name"] for r in listed] == ["Bina"]
        assert client.get("/meta/areas").json() == {"values": ["all", "Vyttila", "Kaloor"]}

    def test_delete_requires_confirmation(self, client, form):
        created = client.post("/subscribers", json=form).json()

        resp = client.delete(f"/subscribers/{created['id']}")

        assert resp.status_code == 400
        assert resp.json()["type"] == "ConfirmationRequired"
        assert len(client.get("/subscribers").json()) == 1

        resp = client.delete(f"/subscribers/{created['id']}", params={"confirm": "true"})

        assert resp.status_code == 200
        assert client.get("/subscribers").json() == []

    def test_delete_unknown_id_is_bad_gateway(self, client):
        resp = client.delete("/subscribers/missing", params={"confirm": "true"})

        assert resp.status_code == 502
        assert resp.json()["type"] == "StoreError"


class TestDashboard:
    def test_stats_and_filters(self, client, form):
        client.post("/subscribers", json=dict(form, name="A", monthly_fee=500))
        client.post("/subscribers", json=dict(form, name="B", monthly_fee=700))
        client.post("/subscribers", json=dict(form, name="C", monthly_fee=1000, status="inactive"))

        resp = client.post("/dashboard", json={"fee_range": "high"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["stats"]["total"] == 3
        assert body["stats"]["active"] == 2
        assert body["stats"]["total_revenue"] == 1200.0
        assert body["filtered_count"] == 1
        assert body["subscribers"][0]["name"] == "C"

    def test_store_failure_maps_to_502(self, settings):
        app.dependency_overrides[get_service] = lambda: SubscriberService(OfflineStore(), settings, today=lambda: TODAY)
        try:
            resp = TestClient(app).post("/dashboard", json={})
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 502
        assert "timed out" in resp.json()["error"]


class TestImportExport:
    def test_template_download(self, client):
        resp = client.get("/template")

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.text.splitlines()[0] == "Subscriber_Id,Name,Mobile,Area,Address,Monthly Fee,Connection Date,Status"

    def test_import_csv(self, client):
        content = b"Name,Mobile,Area,Service Provider\nAnil,9876543210,Kaloor,BSNL\nBina,98,Kaloor,BSNL\n"

        resp = client.post("/import", files={"file": ("subs.csv", content, "text/csv")})

        assert resp.status_code == 200
        body = resp.json()
        assert body["imported"] == 1
        assert body["skipped"][0]["row_number"] == 2

    def test_import_template_with_default_provider(self, client):
        template = client.get("/template").content

        resp = client.post(
            "/import",
            files={"file": ("template.csv", template, "text/csv")},
            data={"default_provider": "Asianet"},
        )

        assert resp.status_code == 200
        assert resp.json()["imported"] == 1

    def test_import_with_no_valid_rows(self, client):
        resp = client.post("/import", files={"file": ("subs.csv", b"Name,Mobile\nAnil,1\n", "text/csv")})

        assert resp.status_code == 400
        assert resp.json()["type"] == "BulkImportError"

    def test_export_filtered_csv(self, client, form):
        client.post("/subscribers", json=dict(form, name="Anil"))
        client.post("/subscribers", json=dict(form, name="Bina", area="Vyttila"))

        resp = client.post("/export", json={"area": "Vyttila"})

        assert resp.status_code == 200
        lines = resp.text.strip().splitlines()
        assert len(lines) == 2
        assert "Bina" in lines[1]

    def test_import_runs_off_the_event_loop(self, service, settings):
        seen = {}

        class LoopAwareService(SubscriberService):
            def import_file(self, *args, **kwargs):
                try:
                    asyncio.get_running_loop()
                    seen["on_loop"] = True
                except RuntimeError:
                    seen["on_loop"] = False
                return super().import_file(*args, **kwargs)

        loop_aware = LoopAwareService(service.store, settings, today=lambda: TODAY)
        app.dependency_overrides[get_service] = lambda: loop_aware
        try:
            content = b"Name,Mobile,Area,Service Provider\nAnil,9876543210,Kaloor,BSNL\n"
            resp = TestClient(app).post("/import", files={"file": ("subs.csv", content, "text/csv")})
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 200
        assert seen == {"on_loop": False}

    def test_import_honours_allowed_extensions(self, store, settings):
        narrowed = settings.model_copy(update={"ALLOWED_IMPORT_EXTENSIONS": [".xlsx"]})
        app.dependency_overrides[get_service] = lambda: SubscriberService(store, narrowed, today=lambda: TODAY)
        try:
            content = b"Name,Mobile,Area,Service Provider\nAnil,9876543210,Kaloor,BSNL\n"
            resp = TestClient(app).post("/import", files={"file": ("subs.csv", content, "text/csv")})
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 400
        assert "not allowed" in resp.json()["error"]

    def test_export_failure_is_reported_as_json(self, client, monkeypatch):
        def broken(_records):
            raise RuntimeError("disk full")

        monkeypatch.setattr("subscriber_api.main.export_csv", broken)

        resp = client.post("/export", json={})

        assert resp.status_code == 500
        assert resp.json() == {"error": "disk full", "type": "RuntimeError"}
