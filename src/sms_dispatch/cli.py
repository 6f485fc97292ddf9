from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timedelta

from .config import get_settings
from .errors import DispatchError
from .logging import configure_logging
from .models import BatchResult, DeliveryOptions
from .service import SmsService
from .twilio_client import TwilioTransport


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sms-dispatch",
        description="Send one SMS to many numbers through Twilio, or only validate the numbers.",
    )
    parser.add_argument("message", type=str, help="Message body.")
    parser.add_argument("numbers", nargs="+", help="Recipient phone numbers.")
    sender = parser.add_mutually_exclusive_group()
    sender.add_argument("--from", dest="from_", default=None, help="Originating number (E.164).")
    sender.add_argument("--service-id", default=None, help="Twilio messaging service SID.")
    parser.add_argument(
        "--region",
        default=None,
        help="ISO country code for numbers without a + prefix (default: SMS_DEFAULT_REGION or US).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only normalize and validate; nothing is sent.",
    )
    parser.add_argument("--send-at", type=datetime.fromisoformat, default=None, help="ISO 8601 time.")
    parser.add_argument("--media-url", action="append", default=None, help="Repeatable.")
    parser.add_argument("--status-callback", default=None)
    parser.add_argument("--validity-seconds", type=int, default=None)
    return parser


def options_from_args(args: argparse.Namespace) -> DeliveryOptions | None:
    if not any(
        value is not None
        for value in (args.send_at, args.media_url, args.status_callback, args.validity_seconds)
    ):
        return None
    return DeliveryOptions(
        scheduled_send_time=args.send_at,
        media_urls=tuple(args.media_url) if args.media_url else None,
        status_callback_url=args.status_callback,
        validity_period=(
            timedelta(seconds=args.validity_seconds) if args.validity_seconds is not None else None
        ),
    )


def print_result(result: BatchResult) -> None:
    for outcome in result.results:
        if outcome.success:
            detail = outcome.message_id or "valid"
            number = outcome.normalized.e164 if outcome.normalized else ""
            print(f"OK    {outcome.phone_number} -> {number}  {detail}")
        else:
            print(f"FAIL  {outcome.phone_number}  {outcome.error_message}")
    summary = f"sent={result.sent} failed={result.failed}"
    if result.cancelled:
        summary += " (cancelled)"
    print(summary)


async def run(args: argparse.Namespace) -> BatchResult:
    settings = get_settings()
    from_ = args.from_
    service_id = args.service_id
    if from_ is None and service_id is None:
        # Same precedence as the service contract: a messaging service wins.
        service_id = settings.twilio_messaging_service_sid
        if service_id is None:
            from_ = settings.twilio_from_number

    transport = None if args.validate_only else TwilioTransport()
    service = SmsService(transport, settings)
    return await service.send_bulk(
        args.message,
        args.numbers,
        from_=from_,
        service_id=service_id,
        country_code=args.region,
        validate_only=args.validate_only,
        options=options_from_args(args),
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    try:
        result = asyncio.run(run(args))
    except DispatchError as exc:
        print(f"error: {exc.detail}", file=sys.stderr)
        return 2

    print_result(result)
    return 0 if result.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
