from __future__ import annotations

import asyncio
from collections.abc import Iterable

from .config import Settings, get_settings
from .engine import DispatchEngine
from .errors import MissingSender
from .models import BatchResult, DeliveryOptions, RecipientOutcome, sender_from_params
from .transport import Transport


class SmsService:
    """
    Caller-facing SMS operations.

    send_from / send_via_service are one-recipient dispatches whose single
    outcome is returned directly; send_bulk returns the whole BatchResult.
    """

    def __init__(self, transport: Transport | None, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.engine = DispatchEngine(transport, max_concurrency=self.settings.max_concurrency)

    async def send_from(
        self,
        from_: str,
        to: str,
        message: str,
        options: DeliveryOptions | None = None,
        *,
        region: str | None = None,
        cancel: asyncio.Event | None = None,
        batch_id: str | None = None,
    ) -> RecipientOutcome:
        if not from_ or not from_.strip():
            raise MissingSender("A from phone number is required")
        return await self._send_one(
            to,
            message,
            from_=from_,
            service_id=None,
            options=options,
            region=region,
            cancel=cancel,
            batch_id=batch_id,
        )

    async def send_via_service(
        self,
        service_id: str,
        to: str,
        message: str,
        options: DeliveryOptions | None = None,
        *,
        region: str | None = None,
        cancel: asyncio.Event | None = None,
        batch_id: str | None = None,
    ) -> RecipientOutcome:
        if not service_id or not service_id.strip():
            raise MissingSender("A messaging service id is required")
        return await self._send_one(
            to,
            message,
            from_=None,
            service_id=service_id,
            options=options,
            region=region,
            cancel=cancel,
            batch_id=batch_id,
        )

    async def send_bulk(
        self,
        message: str,
        phone_numbers: Iterable[str],
        *,
        from_: str | None = None,
        service_id: str | None = None,
        country_code: str | None = None,
        validate_only: bool = False,
        options: DeliveryOptions | None = None,
        cancel: asyncio.Event | None = None,
    ) -> BatchResult:
        region = country_code or self.settings.default_region
        return await self.engine.dispatch_params(
            message,
            list(phone_numbers),
            from_=from_,
            service_id=service_id,
            region_hint=region,
            validate_only=validate_only,
            options=options,
            cancel=cancel,
        )

    async def _send_one(
        self,
        to: str,
        message: str,
        *,
        from_: str | None,
        service_id: str | None,
        options: DeliveryOptions | None,
        region: str | None,
        cancel: asyncio.Event | None,
        batch_id: str | None,
    ) -> RecipientOutcome:
        region = region or self.settings.default_region
        sender = sender_from_params(from_, service_id, region)
        result = await self.engine.dispatch(
            message,
            [to],
            sender,
            region_hint=region,
            options=options,
            cancel=cancel,
            batch_id=batch_id,
        )
        return result.results[0]
