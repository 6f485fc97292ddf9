"""
Bulk dispatch orchestration.

One dispatch call: check preconditions, validate delivery options once,
normalize every recipient, then fan the send out to the transport with
bounded concurrency. Per-recipient failures (bad number, provider error)
become failed outcomes; they never abort the rest of the batch.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from typing import Final

import structlog

from . import options as options_module
from .errors import ConfigurationError, EmptyMessage, MissingSender, NoRecipients
from .models import (
    BatchResult,
    DeliveryOptions,
    OriginatingNumber,
    RecipientOutcome,
    ServiceId,
    TransportError,
    sender_from_params,
)
from .phone import DEFAULT_REGION, NormalizationError, PhoneNumber, normalize
from .transport import Transport

DEFAULT_MAX_CONCURRENCY: Final[int] = 10
CANCELLED_REASON: Final[str] = "Cancelled before send"
TRANSPORT_CANCELLED_REASON: Final[str] = "Send cancelled by transport"

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def aggregate(
    outcomes: Iterable[RecipientOutcome],
    *,
    cancelled: bool = False,
    batch_id: str | None = None,
) -> BatchResult:
    """Collect ordered outcomes into a BatchResult (counts are derived)."""
    return BatchResult.from_outcomes(outcomes, cancelled=cancelled, batch_id=batch_id)


class DispatchEngine:
    def __init__(
        self,
        transport: Transport | None,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._transport = transport
        self._max_concurrency = max_concurrency
        self._clock = clock

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    async def dispatch(
        self,
        message: str,
        recipients: Sequence[str],
        sender: OriginatingNumber | ServiceId,
        *,
        region_hint: str = DEFAULT_REGION,
        validate_only: bool = False,
        options: DeliveryOptions | None = None,
        cancel: asyncio.Event | None = None,
        batch_id: str | None = None,
    ) -> BatchResult:
        """
        Send `message` to every recipient and return one outcome per input.

        Raises InvocationError / OptionsError before any work is done when
        the call itself is malformed. Everything after that is reported in
        the returned BatchResult.
        """
        if not message or not message.strip():
            raise EmptyMessage()
        recipients = list(recipients)
        if not recipients:
            raise NoRecipients()
        if not isinstance(sender, (OriginatingNumber, ServiceId)):
            raise MissingSender()
        transport = self._transport
        if transport is None and not validate_only:
            raise ConfigurationError("No transport configured; only validate_only dispatches are possible")

        if options is not None:
            options_module.validate_options(options, self._clock())

        batch_id = batch_id or uuid.uuid4().hex
        log = logger.bind(batch_id=batch_id, sender_kind=sender.kind)

        normalized: list[PhoneNumber | NormalizationError] = [
            normalize(raw, region_hint) for raw in recipients
        ]
        slots: list[RecipientOutcome | None] = [None] * len(recipients)
        pending: list[tuple[int, PhoneNumber]] = []
        for index, (raw, parsed) in enumerate(zip(recipients, normalized, strict=True)):
            if isinstance(parsed, NormalizationError):
                slots[index] = RecipientOutcome.rejected(raw, parsed)
            elif validate_only:
                slots[index] = RecipientOutcome.validated(raw, parsed)
            else:
                pending.append((index, parsed))

        log.info(
            "dispatch.start",
            recipients=len(recipients),
            invalid=sum(isinstance(parsed, NormalizationError) for parsed in normalized),
            validate_only=validate_only,
        )

        if validate_only or transport is None:
            result = aggregate(_filled(slots), batch_id=batch_id)
            log.info("dispatch.validated", sent=result.sent, failed=result.failed)
            return result

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def send_one(index: int, number: PhoneNumber) -> None:
            raw = recipients[index]
            async with semaphore:
                if cancel is not None and cancel.is_set():
                    slots[index] = RecipientOutcome.skipped(raw, number, CANCELLED_REASON)
                    return
                slots[index] = await _send(transport, log, index, raw, number, message, sender, options)

        await asyncio.gather(*(send_one(index, number) for index, number in pending))

        cancelled = cancel is not None and cancel.is_set()
        result = aggregate(_filled(slots), cancelled=cancelled, batch_id=batch_id)
        log.info(
            "dispatch.finished",
            sent=result.sent,
            failed=result.failed,
            cancelled=cancelled,
        )
        return result

    async def dispatch_params(
        self,
        message: str,
        recipients: Sequence[str],
        *,
        from_: str | None = None,
        service_id: str | None = None,
        region_hint: str = DEFAULT_REGION,
        validate_only: bool = False,
        options: DeliveryOptions | None = None,
        cancel: asyncio.Event | None = None,
        batch_id: str | None = None,
    ) -> BatchResult:
        """dispatch() with the sender given as optional from/service id strings."""
        sender = sender_from_params(from_, service_id, region_hint)
        return await self.dispatch(
            message,
            recipients,
            sender,
            region_hint=region_hint,
            validate_only=validate_only,
            options=options,
            cancel=cancel,
            batch_id=batch_id,
        )


async def _send(
    transport: Transport,
    log: structlog.typing.FilteringBoundLogger,
    index: int,
    raw: str,
    number: PhoneNumber,
    message: str,
    sender: OriginatingNumber | ServiceId,
    options: DeliveryOptions | None,
) -> RecipientOutcome:
    try:
        sent = await transport.send(sender, number, message, options)
    except asyncio.CancelledError:
        task = asyncio.current_task()
        if task is not None and task.cancelling():
            # The dispatch itself is being cancelled.
            raise
        log.warning("dispatch.transport_cancelled", index=index)
        sent = TransportError(message=TRANSPORT_CANCELLED_REASON, code="transport_cancelled")
    except Exception as exc:
        # Raised errors are recorded exactly like returned TransportErrors.
        log.warning("dispatch.transport_raised", index=index, error=type(exc).__name__)
        sent = TransportError(message=str(exc) or type(exc).__name__, code="transport_exception")

    if not isinstance(sent, (str, TransportError)) or sent == "":
        log.warning("dispatch.unusable_transport_result", index=index, result=repr(sent))
        sent = TransportError(
            message="Transport returned no message id", code="invalid_transport_result"
        )

    if isinstance(sent, TransportError):
        log.info("dispatch.recipient_failed", index=index, code=sent.code)
        return RecipientOutcome.transport_failed(raw, number, sent)

    log.debug("dispatch.recipient_sent", index=index, message_id=sent)
    return RecipientOutcome.delivered(raw, number, sent)


def _filled(slots: list[RecipientOutcome | None]) -> list[RecipientOutcome]:
    missing = [index for index, slot in enumerate(slots) if slot is None]
    if missing:
        raise RuntimeError(f"dispatch left result slots empty: {missing}")
    return [slot for slot in slots if slot is not None]
