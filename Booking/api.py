"""Request handlers binding HTTP requests to the booking ledger.

Handlers are framework-agnostic: they take plain header / query / body
mappings and return ``(http_status, json_body)``. Admin authentication is
the router's job and is assumed to have passed for the admin handlers.

    POST  /api/hotel/book               -> handle_book
    GET   /api/hotel/orders             -> handle_list_orders   (admin)
    PATCH /api/hotel/orders/:id/status  -> handle_set_status    (admin)
"""
from __future__ import annotations

from typing import Any, Callable, Mapping

from Booking.exceptions import BookingError
from Booking.ledger import DEFAULT_LIST_LIMIT, BookingLedger
from infra.exceptions import LockTimeout
from infra.logger import get_logger

IDEMPOTENCY_HEADER = "x-idempotency-key"
IDEMPOTENCY_BODY_FIELD = "clientRequestId"

Response = tuple[int, dict[str, Any]]

_log = get_logger("booking.api")


def extract_idempotency_key(
    headers: Mapping[str, str] | None, body: Mapping[str, Any] | None
) -> str:
    """Header ``x-idempotency-key`` wins over body ``clientRequestId``."""
    for name, value in (headers or {}).items():
        if name.lower() == IDEMPOTENCY_HEADER and str(value or "").strip():
            return str(value).strip()
    return str((body or {}).get(IDEMPOTENCY_BODY_FIELD) or "").strip()


def handle_book(
    ledger: BookingLedger,
    headers: Mapping[str, str] | None,
    body: Mapping[str, Any] | None,
) -> Response:
    """Submit a booking. 200 with ``orderId``/``duplicated``."""
    payload = dict(body or {})
    key = extract_idempotency_key(headers, payload)

    def run() -> Response:
        result = ledger.submit_booking(payload, key)
        return 200, {
            "ok": True,
            "duplicated": result.duplicated,
            "orderId": result.order_id,
        }

    return _guard("book", run)


def handle_list_orders(
    ledger: BookingLedger, query: Mapping[str, Any] | None
) -> Response:
    """List orders; query keys ``status``, ``q`` and ``limit``."""
    params = query or {}

    def run() -> Response:
        orders = ledger.list_orders(
            status=params.get("status"),
            search=params.get("q"),
            limit=params.get("limit", DEFAULT_LIST_LIMIT),
        )
        return 200, {"ok": True, "list": [o.to_record() for o in orders]}

    return _guard("list orders", run)


def handle_set_status(
    ledger: BookingLedger,
    order_id: str,
    body: Mapping[str, Any] | None,
) -> Response:
    """Change an order's status; body ``{"status": ...}``."""
    status = (body or {}).get("status")

    def run() -> Response:
        result = ledger.set_order_status(order_id, status)
        return 200, {
            "ok": True,
            "order": result.order.to_record(),
            "duplicated": result.duplicated,
        }

    return _guard("set status", run)


def _guard(action: str, run: Callable[[], Response]) -> Response:
    """Map ledger exceptions to status codes and error bodies."""
    try:
        return run()
    except BookingError as exc:
        return exc.http_status, {"ok": False, "error": exc.code}
    except LockTimeout as exc:
        _log.warning("%s: %s", action, exc)
        return 503, {"ok": False, "error": "lock_timeout"}
    except Exception:
        _log.exception("%s failed", action)
        return 500, {"ok": False, "error": "internal_error"}
