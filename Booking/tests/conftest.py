"""Shared fixtures for Booking tests."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from Booking.ledger import BookingLedger
from Booking.models import Order
from infra.json_store import JsonFileStore


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

SAMPLE_BOOKING: dict[str, Any] = {
    "hotel": "H1",
    "roomType": "Deluxe",
    "price": 199,
    "checkin": "2025-01-01",
    "checkout": "2025-01-02",
    "payment": "wechat",
}


class RecordingNotifier:
    """Collects notified orders instead of calling Telegram."""

    def __init__(self, fail: bool = False) -> None:
        self.orders: list[Order] = []
        self.fail = fail

    def notify_new_order(self, order: Order) -> None:
        self.orders.append(order)
        if self.fail:
            raise ConnectionError("telegram unreachable")


@pytest.fixture
def booking() -> dict[str, Any]:
    """Return a valid booking payload."""
    return json.loads(json.dumps(SAMPLE_BOOKING))


@pytest.fixture
def orders_file(tmp_path: Path) -> Path:
    return tmp_path / "data" / "hotel_orders.json"


@pytest.fixture
def store(orders_file: Path) -> JsonFileStore:
    """File store with a generous lock budget for threaded tests."""
    return JsonFileStore(orders_file, attempts=2000, retry_interval=0.005)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> RecordingNotifier:
    return RecordingNotifier(fail=True)


@pytest.fixture
def ledger(store: JsonFileStore, notifier: RecordingNotifier) -> BookingLedger:
    return BookingLedger(store, notifier=notifier)


@pytest.fixture
def stored_orders(orders_file: Path) -> Callable[[], list[dict[str, Any]]]:
    """Return a reader for the persisted orders array on disk."""

    def _read() -> list[dict[str, Any]]:
        return json.loads(orders_file.read_text(encoding="utf-8"))

    return _read
