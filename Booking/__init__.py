"""Booking: idempotent hotel booking ledger."""

from __future__ import annotations

from .exceptions import (
    BookingError,
    InvalidTransitionError,
    NotificationFailure,
    OrderNotFoundError,
    ValidationError,
)
from .ledger import BookingLedger, normalize_status
from .models import Order, OrderStatus, StatusChangeResult, SubmitResult

__all__ = [
    "BookingError",
    "BookingLedger",
    "InvalidTransitionError",
    "NotificationFailure",
    "Order",
    "OrderNotFoundError",
    "OrderStatus",
    "StatusChangeResult",
    "SubmitResult",
    "ValidationError",
    "normalize_status",
]
