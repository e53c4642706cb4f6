"""Pydantic models for the booking ledger."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    """Lifecycle of a booking: pending -> approved | rejected."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Order(BaseModel):
    """A persisted booking record.

    Field names follow the stored JSON (camelCase aliases). Client fields
    beyond the required ones are kept as extras and written back flat,
    so older and newer front-ends can attach data the ledger does not
    interpret.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    id: str = Field(min_length=1)
    idempotency_key: str = Field(default="", alias="idempotencyKey")
    status: OrderStatus = OrderStatus.PENDING
    hotel: str
    room_type: str = Field(alias="roomType")
    price: float
    checkin: str
    checkout: str
    payment: str
    tg_user: str = Field(default="Guest", alias="tgUser")
    tg_id: str = Field(default="Unknown", alias="tgId")
    created_at: str = Field(alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    @field_validator("status", mode="before")
    @classmethod
    def _normalise_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def extensions(self) -> dict[str, Any]:
        """Opaque client fields not modelled above."""
        return dict(self.model_extra or {})

    def to_record(self) -> dict[str, Any]:
        """Serialise to the flat JSON shape stored in the orders file."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Order:
        return cls.model_validate(record)


class SubmitResult(BaseModel):
    """Result of a booking submission."""

    order_id: str
    duplicated: bool
    order: Order | None = None


class StatusChangeResult(BaseModel):
    """Result of a status transition."""

    order: Order
    duplicated: bool
