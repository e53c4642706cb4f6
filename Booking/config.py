"""Configuration for the booking ledger.

Paths are relative to the working directory unless overridden. Override via
environment variables:
    BOOKING_DATA_DIR        - directory holding hotel_orders.json (default: ./data)
    BOOKING_LOCK_ATTEMPTS   - lock acquisition attempts (default: 120)
    BOOKING_LOCK_RETRY_MS   - pause between attempts in ms (default: 10)
    TG_BOT_TOKEN            - Telegram bot token for new-order notices
    TG_ADMIN_ID             - Telegram chat id receiving the notices
    BOOKING_NOTIFY_TIMEOUT  - Telegram API timeout in seconds (default: 10)

Storage backend selection (REDIS_ENABLED / REDIS_URL) is read by
infra.store_factory.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


def _default_data_dir() -> Path:
    return Path.cwd() / "data"


@dataclass(frozen=True)
class BookingConfig:
    """Immutable configuration for the booking ledger."""

    data_dir: Path = field(default_factory=_default_data_dir)
    orders_file_name: str = "hotel_orders.json"

    # Lock settings: 120 x 10ms gives a budget of about 1.2s.
    lock_attempts: int = 120
    lock_retry_ms: int = 10

    # Notifications
    tg_bot_token: str = ""
    tg_admin_id: str = ""
    notify_timeout_seconds: float = 10.0

    @property
    def orders_file(self) -> Path:
        """<data_dir>/hotel_orders.json, the order ledger."""
        return self.data_dir / self.orders_file_name

    @property
    def lock_retry_interval(self) -> float:
        """Pause between lock attempts, in seconds."""
        return self.lock_retry_ms / 1000

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.tg_bot_token and self.tg_admin_id)

    @classmethod
    def from_env(cls) -> BookingConfig:
        """Build config from environment variables with sensible defaults."""
        kwargs: dict[str, Any] = {}
        if v := os.environ.get("BOOKING_DATA_DIR"):
            kwargs["data_dir"] = Path(v)
        if v := os.environ.get("BOOKING_LOCK_ATTEMPTS"):
            kwargs["lock_attempts"] = int(v)
        if v := os.environ.get("BOOKING_LOCK_RETRY_MS"):
            kwargs["lock_retry_ms"] = int(v)
        if v := os.environ.get("TG_BOT_TOKEN", "").strip():
            kwargs["tg_bot_token"] = v
        if v := os.environ.get("TG_ADMIN_ID", "").strip():
            kwargs["tg_admin_id"] = v
        if v := os.environ.get("BOOKING_NOTIFY_TIMEOUT"):
            kwargs["notify_timeout_seconds"] = float(v)
        return cls(**kwargs)
