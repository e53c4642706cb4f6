"""Custom exceptions for the booking ledger."""

from __future__ import annotations


class BookingError(Exception):
    """Base exception for all booking errors.

    ``code`` is the machine-readable error string returned to HTTP
    clients; ``http_status`` is the status the request handlers map it to.
    """

    code: str = "booking_error"
    http_status: int = 500


class ValidationError(BookingError):
    """Raised when a booking or status request is malformed or incomplete.

    Never retried. Detected before the orders lock is touched.
    """

    http_status = 400

    def __init__(self, field: str, code: str) -> None:
        self.field = field
        self.code = code
        super().__init__(f"Invalid booking input ({code})")


class OrderNotFoundError(BookingError):
    """Raised when a referenced order id does not exist."""

    code = "order_not_found"
    http_status = 404

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class InvalidTransitionError(BookingError):
    """Raised when an approved/rejected order is moved to another status."""

    code = "invalid_transition"
    http_status = 409

    def __init__(self, order_id: str, current: str, target: str) -> None:
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition {order_id} from {current} to {target}"
        )


class MalformedOrderError(BookingError):
    """Raised when a stored order record no longer has a valid shape.

    Such records are skipped by listings and cannot change status until
    they are repaired in the orders file.
    """

    code = "order_malformed"
    http_status = 409

    def __init__(self, order_id: str, error_count: int) -> None:
        self.order_id = order_id
        self.error_count = error_count
        super().__init__(
            f"Order {order_id} is malformed ({error_count} invalid fields)"
        )


class NotificationFailure(BookingError):
    """Raised by the notifier when the messaging API call fails.

    Logged only: a booking is never failed or rolled back because of it.
    """

    code = "notification_failed"
    http_status = 502
