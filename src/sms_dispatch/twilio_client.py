from __future__ import annotations

import asyncio
from datetime import UTC
from typing import Any

import structlog
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from .config import get_settings
from .errors import ConfigurationError
from .models import DeliveryOptions, OriginatingNumber, ServiceId, TransportError
from .phone import PhoneNumber

logger = structlog.get_logger(__name__)


def get_twilio_client() -> Client:
    settings = get_settings()

    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        raise ConfigurationError(
            "Twilio credentials are not configured (TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN)"
        )

    return Client(settings.twilio_account_sid, settings.twilio_auth_token)


def build_message_params(
    sender: OriginatingNumber | ServiceId,
    to: PhoneNumber,
    body: str,
    options: DeliveryOptions | None,
) -> dict[str, Any]:
    """Translate a dispatch request into keyword arguments for messages.create()."""
    params: dict[str, Any] = {"to": to.e164, "body": body}

    if isinstance(sender, ServiceId):
        params["messaging_service_sid"] = sender.service_id
    else:
        params["from_"] = sender.number.e164

    if options is None:
        return params

    if options.scheduled_send_time is not None:
        send_at = options.scheduled_send_time
        if send_at.tzinfo is None:
            send_at = send_at.replace(tzinfo=UTC)
        params["send_at"] = send_at
        params["schedule_type"] = "fixed"
    if options.media_urls:
        params["media_url"] = list(options.media_urls)
    if options.status_callback_url is not None:
        params["status_callback"] = options.status_callback_url
    if options.validity_period is not None:
        params["validity_period"] = int(options.validity_period.total_seconds())

    return params


class TwilioTransport:
    """
    Transport backed by the Twilio Messages API.

    The Twilio REST client is blocking, so every call runs in a worker
    thread. A single Client is shared across those threads.
    """

    def __init__(self, client: Client | None = None) -> None:
        self._client = client or get_twilio_client()

    async def send(
        self,
        sender: OriginatingNumber | ServiceId,
        to: PhoneNumber,
        body: str,
        options: DeliveryOptions | None,
    ) -> str | TransportError:
        params = build_message_params(sender, to, body, options)
        try:
            message = await asyncio.to_thread(self._client.messages.create, **params)
        except TwilioRestException as exc:
            logger.info("twilio.send_failed", status=exc.status, code=exc.code)
            return TransportError(
                message=exc.msg or f"Twilio error {exc.code}",
                code=str(exc.code) if exc.code is not None else str(exc.status),
            )
        return str(message.sid)
