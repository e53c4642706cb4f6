"""JSON Schema validation for booking submissions.

Uses jsonschema Draft 7 to check that every required field is present
and not blank. The first offending field, in ``REQUIRED_FIELDS`` order,
is reported as a ``ValidationError`` carrying a ``missing:<field>`` code.
The optional guest fields must be text or numbers (``invalid:<field>``)
and the price is then parsed separately (``invalid:price``).
"""
from __future__ import annotations

import math
from typing import Any

from jsonschema import Draft7Validator

from Booking.exceptions import ValidationError

REQUIRED_FIELDS: tuple[str, ...] = (
    "hotel",
    "roomType",
    "price",
    "checkin",
    "checkout",
    "payment",
)

OPTIONAL_FIELDS: tuple[str, ...] = ("tgUser", "tgId")

# Strings must contain a non-whitespace character; numbers pass as-is.
_PRESENT: dict[str, Any] = {"type": ["string", "number"], "pattern": r"\S"}

BOOKING_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "BookingRequest",
    "type": "object",
    "required": list(REQUIRED_FIELDS),
    "properties": {
        **{name: _PRESENT for name in REQUIRED_FIELDS},
        **{name: {"type": ["string", "number"]} for name in OPTIONAL_FIELDS},
    },
}

_booking_validator = Draft7Validator(BOOKING_SCHEMA)


def validate_booking(data: Any) -> float:
    """Validate a booking payload and return its parsed price.

    Raises ValidationError naming the first missing or blank field, a
    guest field of the wrong type, or ``price`` when it is not a finite
    positive number.
    """
    if not isinstance(data, dict):
        raise ValidationError("payload", "invalid:payload")

    bad: set[str] = set()
    for err in _booking_validator.iter_errors(data):
        if err.validator == "required":
            bad.update(name for name in REQUIRED_FIELDS if name not in data)
        elif err.absolute_path:
            bad.add(str(err.absolute_path[0]))

    for name in REQUIRED_FIELDS:
        if name in bad:
            raise ValidationError(name, f"missing:{name}")
    for name in OPTIONAL_FIELDS:
        if name in bad:
            raise ValidationError(name, f"invalid:{name}")

    return parse_price(data["price"])


def parse_price(value: Any) -> float:
    """Parse a price given as a number or numeric string."""
    if isinstance(value, bool):
        raise ValidationError("price", "invalid:price")
    try:
        price = float(str(value).strip())
    except ValueError:
        raise ValidationError("price", "invalid:price") from None
    if not math.isfinite(price) or price <= 0:
        raise ValidationError("price", "invalid:price")
    return price
