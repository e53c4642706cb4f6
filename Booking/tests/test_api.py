"""Tests for the framework-agnostic request handlers in Booking.api."""
from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from Booking.api import (
    extract_idempotency_key,
    handle_book,
    handle_list_orders,
    handle_set_status,
)
from Booking.ledger import BookingLedger
from infra.exceptions import LockTimeout
from infra.json_store import JsonFileStore


class TestIdempotencyKey:
    def test_header_wins(self) -> None:
        key = extract_idempotency_key(
            {"X-Idempotency-Key": " hdr "}, {"clientRequestId": "body"}
        )
        assert key == "hdr"

    def test_body_fallback(self) -> None:
        assert extract_idempotency_key({}, {"clientRequestId": "body"}) == "body"

    def test_blank_header_falls_back(self) -> None:
        key = extract_idempotency_key(
            {"x-idempotency-key": "  "}, {"clientRequestId": "body"}
        )
        assert key == "body"

    def test_none(self) -> None:
        assert extract_idempotency_key(None, None) == ""


class TestHandleBook:
    def test_created_then_duplicated(
        self, ledger: BookingLedger, booking: dict[str, Any]
    ) -> None:
        headers = {"x-idempotency-key": "k1"}
        status, body = handle_book(ledger, headers, booking)
        assert status == 200
        assert body["ok"] is True
        assert body["duplicated"] is False
        order_id = body["orderId"]

        status, body = handle_book(ledger, headers, booking)
        assert status == 200
        assert body == {"ok": True, "duplicated": True, "orderId": order_id}

    def test_body_key_used(
        self, ledger: BookingLedger, booking: dict[str, Any]
    ) -> None:
        booking["clientRequestId"] = "req-9"
        _, first = handle_book(ledger, {}, booking)
        _, second = handle_book(ledger, {}, booking)
        assert second["duplicated"] is True
        assert second["orderId"] == first["orderId"]

    def test_missing_field_is_400(
        self, ledger: BookingLedger, booking: dict[str, Any]
    ) -> None:
        del booking["payment"]
        status, body = handle_book(ledger, {}, booking)
        assert status == 400
        assert body == {"ok": False, "error": "missing:payment"}

    def test_bad_price_is_400(
        self, ledger: BookingLedger, booking: dict[str, Any]
    ) -> None:
        booking["price"] = "free"
        assert handle_book(ledger, {}, booking) == (
            400,
            {"ok": False, "error": "invalid:price"},
        )

    def test_guest_field_of_wrong_type_is_400_without_locking(
        self, booking: dict[str, Any]
    ) -> None:
        store = MagicMock()
        booking["tgUser"] = {"id": 7, "username": "bob"}

        status, body = handle_book(BookingLedger(store), {}, booking)

        assert status == 400
        assert body == {"ok": False, "error": "invalid:tgUser"}
        store.with_lock.assert_not_called()

    def test_lock_timeout_is_503(
        self, orders_file: Path, booking: dict[str, Any]
    ) -> None:
        orders_file.parent.mkdir(parents=True)
        (orders_file.parent / "hotel_orders.json.lock").write_text("", encoding="utf-8")
        ledger = BookingLedger(JsonFileStore(orders_file, attempts=2, retry_interval=0.001))

        status, body = handle_book(ledger, {}, booking)
        assert status == 503
        assert body == {"ok": False, "error": "lock_timeout"}

    def test_unexpected_error_is_500(self, booking: dict[str, Any]) -> None:
        ledger = MagicMock(spec=BookingLedger)
        ledger.submit_booking.side_effect = RuntimeError("boom")
        status, body = handle_book(ledger, {}, booking)
        assert status == 500
        assert body == {"ok": False, "error": "internal_error"}


class TestHandleListOrders:
    def test_lists_with_filters(
        self, ledger: BookingLedger, booking: dict[str, Any]
    ) -> None:
        first = ledger.submit_booking(booking).order_id
        ledger.submit_booking(dict(booking, hotel="Seaside"))
        ledger.set_order_status(first, "approved")

        status, body = handle_list_orders(ledger, {"status": "approved"})
        assert status == 200
        assert [o["id"] for o in body["list"]] == [first]

        _, body = handle_list_orders(ledger, {"q": "seaside", "limit": "10"})
        assert [o["hotel"] for o in body["list"]] == ["Seaside"]

    def test_empty(self, ledger: BookingLedger) -> None:
        assert handle_list_orders(ledger, None) == (200, {"ok": True, "list": []})

    def test_bad_status_filter_is_400(self, ledger: BookingLedger) -> None:
        status, body = handle_list_orders(ledger, {"status": "archived"})
        assert status == 400
        assert body["error"] == "invalid:status"

    def test_records_use_stored_field_names(
        self, ledger: BookingLedger, booking: dict[str, Any]
    ) -> None:
        ledger.submit_booking(booking, "k1")
        _, body = handle_list_orders(ledger, {})
        [record] = body["list"]
        assert {"roomType", "idempotencyKey", "createdAt", "tgUser"} <= set(record)


class TestHandleSetStatus:
    def test_approve_and_repeat(
        self, ledger: BookingLedger, booking: dict[str, Any]
    ) -> None:
        order_id = ledger.submit_booking(booking).order_id

        status, body = handle_set_status(ledger, order_id, {"status": "approved"})
        assert status == 200
        assert body["duplicated"] is False
        assert body["order"]["status"] == "approved"

        _, body = handle_set_status(ledger, order_id, {"status": "approved"})
        assert body["duplicated"] is True

    @pytest.mark.parametrize(
        ("order_id", "payload", "expected"),
        [
            ("nope", {"status": "approved"}, (404, "order_not_found")),
            ("nope", {"status": "maybe"}, (400, "invalid:status")),
            ("nope", None, (400, "invalid:status")),
            ("", {"status": "approved"}, (400, "missing:id")),
        ],
    )
    def test_errors(
        self,
        ledger: BookingLedger,
        order_id: str,
        payload: Any,
        expected: tuple[int, str],
    ) -> None:
        status, body = handle_set_status(ledger, order_id, payload)
        assert (status, body["error"]) == expected
        assert body["ok"] is False

    def test_terminal_conflict_is_409(
        self, ledger: BookingLedger, booking: dict[str, Any]
    ) -> None:
        order_id = ledger.submit_booking(booking).order_id
        handle_set_status(ledger, order_id, {"status": "rejected"})
        status, body = handle_set_status(ledger, order_id, {"status": "approved"})
        assert status == 409
        assert body["error"] == "invalid_transition"

    def test_malformed_stored_order_is_409(
        self, ledger: BookingLedger, orders_file: Path
    ) -> None:
        orders_file.parent.mkdir(parents=True)
        orders_file.write_text(
            '[{"id": "HOTEL_1_abc", "status": "pending", "hotel": "H1"}]',
            encoding="utf-8",
        )
        status, body = handle_set_status(ledger, "HOTEL_1_abc", {"status": "approved"})
        assert status == 409
        assert body == {"ok": False, "error": "order_malformed"}

    def test_lock_timeout_is_503(self) -> None:
        ledger = MagicMock(spec=BookingLedger)
        ledger.set_order_status.side_effect = LockTimeout("orders", 3)
        status, body = handle_set_status(ledger, "HOTEL_1", {"status": "approved"})
        assert (status, body["error"]) == (503, "lock_timeout")
