"""
Pytest configuration and fixtures for subscriber tests.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from subscriber_core.config import Settings
from subscriber_core.models import Subscriber
from subscriber_core.service import SubscriberService
from subscriber_core.store import LocalJsonStore

TODAY = date(2026, 10, 18)


class TickingClock:
    """Returns a strictly increasing UTC timestamp on each call."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def settings(tmp_path):
    return Settings(
        STORE_BACKEND="local",
        LOCAL_STORE_PATH=str(tmp_path / "subscribers.json"),
        EDITOR_NAME="tester",
        IMPORT_DEFAULT_PROVIDER="",
    )


@pytest.fixture
def clock():
    return TickingClock(datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path, clock):
    return LocalJsonStore(tmp_path / "subscribers.json", editor="tester", clock=clock)


@pytest.fixture
def service(store, settings):
    return SubscriberService(store, settings, today=lambda: TODAY)


@pytest.fixture
def valid_form():
    return {
        "name": "  Anil Menon ",
        "phone": "9876543210",
        "area": "Kaloor",
        "address": "12 Market Road",
        "service_provider": "Asianet",
        "monthly_fee": "450",
        "connection_date": "2024-01-15",
        "status": "active",
    }


def make_subscriber(id, name, fee, status="active", area="Kaloor", **kwargs):
    data = {
        "id": id,
        "name": name,
        "phone": kwargs.pop("phone", "9000000000"),
        "area": area,
        "address": kwargs.pop("address", "Main Road"),
        "service_provider": kwargs.pop("service_provider", "KCCL"),
        "monthly_fee": fee,
        "status": status,
    }
    data.update(kwargs)
    return Subscriber(**data)


@pytest.fixture
def scenario_records():
    return [
        make_subscriber("a", "A", 500.0),
        make_subscriber("b", "B", 700.0),
        make_subscriber("c", "C", 1000.0, status="inactive"),
    ]
