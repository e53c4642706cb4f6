"""Idempotent booking ledger over a locked JSON document.

Orders are stored as one JSON array. Every read-modify-write runs inside
the store's ``with_lock`` so concurrent submissions cannot overwrite each
other. Listing reads without the lock (a stale read is acceptable).

Order states:
    pending -> approved
            -> rejected

Re-applying the status an order already has is reported as
``duplicated=True`` instead of an error.
"""
from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from pydantic import ValidationError as ModelValidationError

from Booking.config import BookingConfig
from Booking.exceptions import (
    InvalidTransitionError,
    MalformedOrderError,
    OrderNotFoundError,
    ValidationError,
)
from Booking.models import Order, OrderStatus, StatusChangeResult, SubmitResult
from Booking.schema_validator import validate_booking
from infra import DocumentStore
from infra.exceptions import StoreError
from infra.logger import get_logger
from infra.store_factory import get_document_store

DEFAULT_LIST_LIMIT = 200
MAX_LIST_LIMIT = 500

# Fields matched by the free-text search in list_orders.
SEARCH_FIELDS: tuple[str, ...] = (
    "id",
    "hotel",
    "roomType",
    "payment",
    "tgUser",
    "tgId",
    "checkin",
    "checkout",
)

_VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.APPROVED, OrderStatus.REJECTED}),
    OrderStatus.APPROVED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

# Keys the ledger owns; client payloads cannot set them.
_ENVELOPE_KEYS = frozenset(
    {"id", "status", "idempotencyKey", "createdAt", "updatedAt"}
)


class OrderNotifier(Protocol):
    """Receives brand-new orders (never duplicates)."""

    def notify_new_order(self, order: Order) -> Any:
        ...


def normalize_status(value: Any) -> OrderStatus:
    """Map a loosely formatted status (" Approved ") to an OrderStatus.

    Raises ValidationError for anything outside pending/approved/rejected.
    """
    text = str(value if value is not None else "").strip().lower()
    try:
        return OrderStatus(text)
    except ValueError:
        raise ValidationError("status", "invalid:status") from None


def clamp_limit(value: Any) -> int:
    """Parse a listing limit: invalid or non-positive -> default, capped at max."""
    try:
        n = int(str(value).strip())
    except ValueError:
        return DEFAULT_LIST_LIMIT
    if n <= 0:
        return DEFAULT_LIST_LIMIT
    return min(n, MAX_LIST_LIMIT)


def make_order_id() -> str:
    """Return a new order id: ``HOTEL_<epoch ms>_<6 hex chars>``."""
    return f"HOTEL_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BookingLedger:
    """Accept bookings, deduplicate retries and apply admin decisions."""

    def __init__(
        self,
        store: DocumentStore,
        notifier: OrderNotifier | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._log = get_logger("booking.ledger")

    @classmethod
    def from_config(
        cls,
        config: BookingConfig,
        notifier: OrderNotifier | None = None,
    ) -> BookingLedger:
        """Build a ledger on the store selected by the environment."""
        store = get_document_store(
            config.orders_file,
            attempts=config.lock_attempts,
            retry_interval=config.lock_retry_interval,
        )
        return cls(store, notifier=notifier)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit_booking(
        self,
        payload: Mapping[str, Any],
        idempotency_key: str | None = "",
    ) -> SubmitResult:
        """Record a booking, or return the order already stored for the key.

        An empty key never matches, so every keyless call creates an order.

        Raises:
            ValidationError: A required field is missing or the price is
                not a positive number. Raised before locking.
            LockTimeout: The orders lock could not be obtained.
        """
        booking = self._prepare_booking(payload)
        key = str(idempotency_key or "").strip()

        result = self._store.with_lock(lambda: self._submit_locked(booking, key))

        if not result.duplicated and result.order is not None:
            self._notify(result.order)
        return result

    def list_orders(
        self,
        status: Any = None,
        search: str | None = None,
        limit: Any = DEFAULT_LIST_LIMIT,
    ) -> list[Order]:
        """Return orders newest first, optionally filtered.

        Args:
            status: Only orders in this status (loosely formatted).
            search: Case-insensitive substring over SEARCH_FIELDS.
            limit: Maximum number of orders (see clamp_limit).
        """
        target = None
        if status is not None and str(status).strip():
            target = normalize_status(status)
        needle = (search or "").strip().lower()
        cap = clamp_limit(limit)

        orders: list[Order] = []
        for record in self._load_records():
            if not isinstance(record, dict):
                continue
            if target is not None and _record_status(record) is not target:
                continue
            if needle and needle not in _search_text(record):
                continue
            order = self._to_order(record)
            if order is not None:
                orders.append(order)

        orders.sort(key=lambda o: _created_ts(o.created_at), reverse=True)
        return orders[:cap]

    def get_order(self, order_id: str) -> Order:
        """Return one order (unlocked read).

        Raises:
            OrderNotFoundError: If no order has this id.
        """
        oid = str(order_id or "").strip()
        for record in self._load_records():
            if isinstance(record, dict) and str(record.get("id", "")) == oid:
                order = self._to_order(record)
                if order is not None:
                    return order
        raise OrderNotFoundError(oid)

    def set_order_status(
        self,
        order_id: str,
        status: Any,
        extra: Mapping[str, Any] | None = None,
    ) -> StatusChangeResult:
        """Move an order to *status*.

        Setting the status the order already has is a no-op reported with
        ``duplicated=True``; ``updatedAt`` and *extra* are left untouched.

        Raises:
            ValidationError: Empty id or unknown status (before locking).
            OrderNotFoundError: If no order has this id.
            InvalidTransitionError: The order is already approved/rejected
                and *status* differs.
            MalformedOrderError: The stored record fails validation.
            LockTimeout: The orders lock could not be obtained.
        """
        oid = str(order_id or "").strip()
        if not oid:
            raise ValidationError("id", "missing:id")
        target = normalize_status(status)
        fields = {k: v for k, v in (extra or {}).items() if k not in _ENVELOPE_KEYS}

        return self._store.with_lock(
            lambda: self._set_status_locked(oid, target, fields)
        )

    # ------------------------------------------------------------------
    # Critical sections (called with the lock held)
    # ------------------------------------------------------------------

    def _submit_locked(self, booking: dict[str, Any], key: str) -> SubmitResult:
        records = self._load_records()

        if key:
            for record in records:
                if isinstance(record, dict) and str(record.get("idempotencyKey", "")) == key:
                    order_id = str(record.get("id", ""))
                    self._log.info(
                        "Duplicate submission for key %s -> %s", key, order_id,
                        extra={"order_id": order_id},
                    )
                    return SubmitResult(
                        order_id=order_id,
                        duplicated=True,
                        order=self._to_order(record),
                    )

        taken = {str(r.get("id", "")) for r in records if isinstance(r, dict)}
        order_id = make_order_id()
        while order_id in taken:
            order_id = make_order_id()

        now = _utcnow_iso()
        order = Order.model_validate(
            {
                **booking,
                "id": order_id,
                "status": OrderStatus.PENDING,
                "idempotencyKey": key,
                "createdAt": now,
                "updatedAt": now,
            }
        )
        records.append(order.to_record())
        self._store.save(records)
        self._log.info(
            "Order created: %s (hotel=%s, room=%s)",
            order.id,
            order.hotel,
            order.room_type,
            extra={"order_id": order.id},
        )
        return SubmitResult(order_id=order.id, duplicated=False, order=order)

    def _set_status_locked(
        self,
        order_id: str,
        target: OrderStatus,
        extra: dict[str, Any],
    ) -> StatusChangeResult:
        records = self._load_records()
        idx = next(
            (
                i
                for i, r in enumerate(records)
                if isinstance(r, dict) and str(r.get("id", "")) == order_id
            ),
            None,
        )
        if idx is None:
            raise OrderNotFoundError(order_id)

        current = records[idx]
        previous = _record_status(current)
        if previous is target:
            return StatusChangeResult(
                order=_stored_order(order_id, current), duplicated=True
            )
        # Records with an unrecognised status may be moved anywhere.
        if previous is not None and target not in _VALID_TRANSITIONS[previous]:
            raise InvalidTransitionError(order_id, previous.value, target.value)

        updated = {
            **current,
            **extra,
            "status": target.value,
            "updatedAt": _utcnow_iso(),
        }
        order = _stored_order(order_id, updated)
        records[idx] = order.to_record()
        self._store.save(records)
        self._log.info(
            "Order %s: %s -> %s",
            order_id,
            previous.value if previous else current.get("status"),
            target.value,
            extra={"order_id": order_id},
        )
        return StatusChangeResult(order=order, duplicated=False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _prepare_booking(payload: Mapping[str, Any]) -> dict[str, Any]:
        """Normalise a client payload and validate it.

        ``roomName`` is accepted in place of ``roomType``; ``tgUser`` and
        ``tgId`` default to ``Guest``/``Unknown``. Other client fields are
        kept as-is, except the keys the ledger owns.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("payload", "invalid:payload")
        body = {k: v for k, v in payload.items() if k not in _ENVELOPE_KEYS}
        body["roomType"] = body.get("roomType") or body.get("roomName") or ""
        body["tgUser"] = body.get("tgUser") or "Guest"
        body["tgId"] = body.get("tgId") or "Unknown"

        price = validate_booking(body)

        for name in ("hotel", "roomType", "checkin", "checkout", "payment"):
            body[name] = str(body[name]).strip()
        body["price"] = price
        return body

    def _load_records(self) -> list[Any]:
        data = self._store.load(default=[])
        if not isinstance(data, list):
            raise StoreError("Orders document is not a JSON array")
        return data

    def _to_order(self, record: dict[str, Any]) -> Order | None:
        try:
            return Order.from_record(record)
        except ModelValidationError as exc:
            self._log.warning(
                "Skipping malformed order %s: %s",
                record.get("id", "?"),
                exc.error_count(),
                extra={"order_id": record.get("id")},
            )
            return None

    def _notify(self, order: Order) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify_new_order(order)
        except Exception as exc:  # noqa: BLE001
            self._log.warning(
                "Notification for %s failed: %s",
                order.id,
                exc,
                extra={"order_id": order.id},
            )


def _stored_order(order_id: str, record: dict[str, Any]) -> Order:
    try:
        return Order.from_record(record)
    except ModelValidationError as exc:
        raise MalformedOrderError(order_id, exc.error_count()) from exc


def _record_status(record: Mapping[str, Any]) -> OrderStatus | None:
    try:
        return normalize_status(record.get("status"))
    except ValidationError:
        return None


def _search_text(record: Mapping[str, Any]) -> str:
    return " ".join(
        str(record.get(name) or "").lower() for name in SEARCH_FIELDS
    )


def _created_ts(value: str) -> float:
    """Epoch seconds of an ISO timestamp; unparseable values sort last."""
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.timestamp()
