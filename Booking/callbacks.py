"""Dispatch of Telegram button presses to order status changes."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from Booking.exceptions import BookingError, NotificationFailure
from Booking.ledger import BookingLedger
from Booking.models import OrderStatus
from Booking.notifier import APPROVE_PREFIX, REJECT_PREFIX, TelegramNotifier
from infra.logger import get_logger

_log = get_logger("booking.callbacks")


def parse_callback_data(data: str) -> tuple[str, OrderStatus] | None:
    """Decode ``hotel_approve_<id>`` / ``hotel_reject_<id>``.

    Returns (order_id, target status), or None for foreign callback data.
    """
    if data.startswith(APPROVE_PREFIX):
        order_id, status = data[len(APPROVE_PREFIX):], OrderStatus.APPROVED
    elif data.startswith(REJECT_PREFIX):
        order_id, status = data[len(REJECT_PREFIX):], OrderStatus.REJECTED
    else:
        return None
    order_id = order_id.strip()
    if not order_id:
        return None
    return order_id, status


def handle_telegram_update(
    ledger: BookingLedger,
    update: dict[str, Any] | None,
    notifier: TelegramNotifier | None = None,
) -> dict[str, Any]:
    """Apply an approve/reject button press carried by a bot update.

    Updates without booking callback data are ignored. Lock timeouts
    propagate so the webhook answers with an error and Telegram redelivers
    the update; re-applying a decision is harmless.
    """
    callback = (update or {}).get("callback_query")
    if not isinstance(callback, dict) or not callback.get("data"):
        return {"ok": True, "ignored": True}

    parsed = parse_callback_data(str(callback["data"]))
    if parsed is None:
        return {"ok": True, "ignored": True}
    order_id, status = parsed

    sender = callback.get("from") or {}
    decided_by = str(sender.get("username") or sender.get("id") or "")

    try:
        result = ledger.set_order_status(
            order_id,
            status,
            extra={
                "decidedBy": decided_by,
                "decidedAt": datetime.now(timezone.utc).isoformat(),
            },
        )
        outcome: dict[str, Any] = {
            "ok": True,
            "duplicated": result.duplicated,
            "order": result.order.to_record(),
        }
        feedback = f"Order updated: {status.value}"
    except BookingError as exc:
        _log.warning("Callback for %s rejected: %s", order_id, exc)
        outcome = {"ok": False, "error": exc.code}
        feedback = "Order not found / update failed"

    if notifier is not None:
        _acknowledge(notifier, callback, feedback)
    return outcome


def _acknowledge(
    notifier: TelegramNotifier, callback: dict[str, Any], text: str
) -> None:
    """Answer the button press and strip the buttons (best effort)."""
    try:
        notifier.answer_callback(str(callback.get("id", "")), text)
    except NotificationFailure as exc:
        _log.warning("answerCallbackQuery failed: %s", exc)

    message = callback.get("message") or {}
    chat_id = (message.get("chat") or {}).get("id")
    message_id = message.get("message_id")
    if chat_id and message_id:
        try:
            notifier.clear_buttons(chat_id, message_id)
        except NotificationFailure as exc:
            _log.warning("editMessageReplyMarkup failed: %s", exc)
