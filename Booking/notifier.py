"""Telegram notices for new bookings.

Each new order is posted to the admin chat with two inline buttons whose
callback data (``hotel_approve_<id>`` / ``hotel_reject_<id>``) is routed
back through :mod:`Booking.callbacks`.

Sends run on a small thread pool so the booking request never waits for
Telegram; a failed send is logged and otherwise ignored.
"""
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

import httpx

from Booking.config import BookingConfig
from Booking.exceptions import NotificationFailure
from Booking.models import Order
from infra.logger import get_logger

TELEGRAM_API_BASE = "https://api.telegram.org"
APPROVE_PREFIX = "hotel_approve_"
REJECT_PREFIX = "hotel_reject_"


def format_order_message(order: Order) -> str:
    """Plain-text summary of *order* for the admin chat."""
    return "\n".join(
        [
            "[New hotel booking]",
            f"Guest: @{order.tg_user} ({order.tg_id})",
            f"Hotel: {order.hotel}",
            f"Room: {order.room_type}",
            f"Price: {order.price:g}/night",
            f"Payment: {order.payment}",
            f"Check-in: {order.checkin}",
            f"Check-out: {order.checkout}",
            f"Order: {order.id}",
        ]
    )


def order_keyboard(order_id: str) -> dict[str, Any]:
    """Inline keyboard with the approve / reject buttons."""
    return {
        "inline_keyboard": [
            [
                {"text": "Approve", "callback_data": f"{APPROVE_PREFIX}{order_id}"},
                {"text": "Reject", "callback_data": f"{REJECT_PREFIX}{order_id}"},
            ]
        ]
    }


class TelegramNotifier:
    """Bot API client for order notices and callback feedback.

    Parameters
    ----------
    bot_token / chat_id:
        Credentials and target chat. If either is empty the notifier is
        disabled and every call is a no-op.
    timeout:
        Per-request timeout in seconds.
    client:
        Optional pre-built ``httpx.Client`` (tests inject a mock transport).
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        max_workers: int = 2,
    ) -> None:
        self._token = bot_token
        self._chat_id = chat_id
        self._client = client or httpx.Client(timeout=timeout)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tg-notify"
        )
        self._log = get_logger("booking.notifier")

    @classmethod
    def from_config(cls, config: BookingConfig) -> TelegramNotifier:
        return cls(
            config.tg_bot_token,
            config.tg_admin_id,
            timeout=config.notify_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self._token and self._chat_id)

    # -- OrderNotifier interface -----------------------------------------------

    def notify_new_order(self, order: Order) -> Future[dict[str, Any]] | None:
        """Schedule the new-order notice and return immediately."""
        if not self.enabled:
            return None
        future = self._executor.submit(self.send_new_order, order)
        future.add_done_callback(self._log_failure(order.id))
        return future

    # -- Bot API calls -------------------------------------------------------

    def send_new_order(self, order: Order) -> dict[str, Any]:
        """POST sendMessage for *order* (blocking)."""
        return self._call(
            "sendMessage",
            {
                "chat_id": self._chat_id,
                "text": format_order_message(order),
                "reply_markup": order_keyboard(order.id),
            },
        )

    def answer_callback(self, callback_query_id: str, text: str) -> dict[str, Any]:
        """Show a short toast to the admin who pressed a button."""
        return self._call(
            "answerCallbackQuery",
            {"callback_query_id": callback_query_id, "text": text, "show_alert": False},
        )

    def clear_buttons(self, chat_id: Any, message_id: Any) -> dict[str, Any]:
        """Remove the inline keyboard from a handled notice."""
        return self._call(
            "editMessageReplyMarkup",
            {
                "chat_id": chat_id,
                "message_id": message_id,
                "reply_markup": {"inline_keyboard": []},
            },
        )

    def close(self) -> None:
        """Wait for pending notices, then release the HTTP client."""
        self._executor.shutdown(wait=True)
        self._client.close()

    # -- Internals ------------------------------------------------------------

    def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.enabled:
            return {}
        url = f"{TELEGRAM_API_BASE}/bot{self._token}/{method}"
        try:
            resp = self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise NotificationFailure(f"{method} failed: {exc}") from exc
        if not resp.is_success:
            raise NotificationFailure(
                f"tg_api_error {resp.status_code}: {resp.text[:200]}"
            )
        try:
            data: dict[str, Any] = resp.json()
        except ValueError:
            return {}
        return data

    def _log_failure(self, order_id: str) -> Callable[[Future[Any]], None]:
        def _done(future: Future[Any]) -> None:
            exc = future.exception()
            if exc is not None:
                self._log.warning(
                    "Telegram notice for %s failed: %s", order_id, exc
                )

        return _done
