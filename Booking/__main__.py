"""Entry point for operating the booking ledger from a shell.

Usage:
    python -m Booking list --status pending --q deluxe --limit 20
    python -m Booking set-status HOTEL_1735689600000_a1b2c3 approved
    python -m Booking submit booking.json --key k1
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from Booking.config import BookingConfig
from Booking.exceptions import BookingError
from Booking.ledger import DEFAULT_LIST_LIMIT, BookingLedger
from Booking.notifier import TelegramNotifier
from infra.exceptions import StoreError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Hotel booking order ledger")
    sub = parser.add_subparsers(dest="command")

    p_list = sub.add_parser("list", help="List orders, newest first")
    p_list.add_argument("--status", default=None, help="pending/approved/rejected")
    p_list.add_argument("--q", default=None, help="Free-text search")
    p_list.add_argument("--limit", type=int, default=DEFAULT_LIST_LIMIT)

    p_status = sub.add_parser("set-status", help="Approve or reject an order")
    p_status.add_argument("order_id")
    p_status.add_argument("status")

    p_submit = sub.add_parser("submit", help="Submit a booking from a JSON file")
    p_submit.add_argument("file", type=Path)
    p_submit.add_argument("--key", default="", help="Idempotency key")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    config = BookingConfig.from_env()
    notifier = TelegramNotifier.from_config(config)
    ledger = BookingLedger.from_config(config, notifier=notifier)

    try:
        if args.command == "list":
            orders = ledger.list_orders(
                status=args.status, search=args.q, limit=args.limit
            )
            output = [o.to_record() for o in orders]
        elif args.command == "set-status":
            result = ledger.set_order_status(args.order_id, args.status)
            output = {
                "order": result.order.to_record(),
                "duplicated": result.duplicated,
            }
        else:
            payload = json.loads(args.file.read_text(encoding="utf-8"))
            submitted = ledger.submit_booking(payload, args.key)
            output = {
                "orderId": submitted.order_id,
                "duplicated": submitted.duplicated,
            }
    except BookingError as exc:
        print(json.dumps({"ok": False, "error": exc.code}), file=sys.stderr)
        return 2
    except StoreError as exc:
        print(json.dumps({"ok": False, "error": str(exc)}), file=sys.stderr)
        return 3
    finally:
        notifier.close()

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
