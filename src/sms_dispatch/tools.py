from __future__ import annotations

import argparse
import csv
from collections.abc import Iterable

from .db import OutboundMessage, SessionLocal, init_db
from .history import recent_messages


def _format_str(value: str | None) -> str:
    """Normalise None/whitespace for display."""
    if value is None:
        return ""
    return value.strip()


def iter_recent_messages(limit: int) -> Iterable[OutboundMessage]:
    """Yield recent outbound log rows ordered by newest first."""
    db = SessionLocal()
    try:
        rows = recent_messages(db, limit)
        # detach results from session before closing
        yield from rows
    finally:
        db.close()


def print_recent_messages(limit: int) -> None:
    """Print recent outbound messages in a human-readable form."""
    for row in iter_recent_messages(limit):
        status = "sent" if row.success else ("skipped" if not row.attempted else "failed")
        print("-" * 80)
        print(
            f"#{row.id} | batch={row.batch_id} | {status} | "
            f"from={row.sender} | at={row.created_at}"
        )
        print(f"TO:  {row.phone_number} ({row.e164 or '-'})")
        if row.success:
            print(f"SID: {_format_str(row.message_id)}")
        else:
            print(f"ERR: [{row.error_code or '-'}] {_format_str(row.error_message)}")
        print()


def export_recent_messages_csv(limit: int, csv_path: str) -> int:
    """Export recent outbound log rows to a CSV file and return how many were written."""
    count = 0
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(
            [
                "id",
                "created_at",
                "batch_id",
                "phone_number",
                "e164",
                "sender",
                "success",
                "attempted",
                "message_id",
                "error_code",
                "error_message",
            ]
        )
        for row in iter_recent_messages(limit):
            writer.writerow(
                [
                    row.id,
                    row.created_at.isoformat() if row.created_at else "",
                    row.batch_id,
                    row.phone_number,
                    row.e164 or "",
                    row.sender,
                    row.success,
                    row.attempted,
                    row.message_id or "",
                    row.error_code or "",
                    _format_str(row.error_message),
                ]
            )
            count += 1
    return count


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Inspect recent outbound messages stored in the sms-dispatch database."
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of most recent messages to show/export (default: 20).",
    )
    parser.add_argument(
        "--csv",
        type=str,
        default="",
        help="Optional path to export messages as CSV. If omitted, only prints to stdout.",
    )
    args = parser.parse_args(argv)

    init_db()
    if args.csv:
        count = export_recent_messages_csv(limit=args.limit, csv_path=args.csv)
        print(f"Exported {count} messages to {args.csv}")
    else:
        print_recent_messages(limit=args.limit)


if __name__ == "__main__":
    main()
