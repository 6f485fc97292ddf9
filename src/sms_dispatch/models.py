from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .errors import AmbiguousSender, InvalidSender, MissingSender
from .phone import DEFAULT_REGION, NormalizationError, PhoneNumber, normalize

# --- Sender identity ---


class OriginatingNumber(BaseModel):
    """Send from one specific phone number."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["number"] = "number"
    number: PhoneNumber


class ServiceId(BaseModel):
    """Send through a provider-managed messaging service (pool of numbers)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["service"] = "service"
    service_id: str = Field(..., min_length=1)

    @field_validator("service_id")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("service id must not be blank")
        return value


SenderIdentity = Annotated[OriginatingNumber | ServiceId, Field(discriminator="kind")]


def sender_from_params(
    from_: str | None,
    service_id: str | None,
    region: str = DEFAULT_REGION,
) -> OriginatingNumber | ServiceId:
    """
    Build a SenderIdentity from the two optional caller parameters.

    Exactly one of them must be given. Blank strings count as not given.
    """
    has_from = bool(from_ and from_.strip())
    has_service = bool(service_id and service_id.strip())

    if has_from and has_service:
        raise AmbiguousSender()
    if not has_from and not has_service:
        raise MissingSender()

    if has_service:
        return ServiceId(service_id=service_id)  # type: ignore[arg-type]

    parsed = normalize(from_, region)  # type: ignore[arg-type]
    if isinstance(parsed, NormalizationError):
        raise InvalidSender(f"Sender phone number is not valid: {parsed.message}")
    return OriginatingNumber(number=parsed)


def describe_sender(sender: OriginatingNumber | ServiceId) -> str:
    if isinstance(sender, OriginatingNumber):
        return sender.number.e164
    return sender.service_id


# --- Delivery options ---


class DeliveryOptions(BaseModel):
    """
    Per-batch delivery settings, applied to every recipient.

    Construction only checks types; policy bounds are enforced by
    options.validate_options() so that callers get a typed OptionsError.
    """

    model_config = ConfigDict(frozen=True)

    scheduled_send_time: datetime | None = None
    media_urls: tuple[str, ...] | None = None
    status_callback_url: str | None = None
    validity_period: timedelta | None = None


# --- Results ---


class TransportError(BaseModel):
    """A failed provider call, returned as a value by transports."""

    model_config = ConfigDict(frozen=True)

    message: str
    code: str | None = None


class RecipientOutcome(BaseModel):
    """The result for one recipient of one dispatch call."""

    model_config = ConfigDict(frozen=True)

    phone_number: str
    normalized: PhoneNumber | None = None
    success: bool
    message_id: str | None = None
    error_message: str | None = None
    error_code: str | None = None
    # False when no transport call was made (dry run, bad number, cancellation).
    attempted: bool = True

    @model_validator(mode="after")
    def _check_consistency(self) -> RecipientOutcome:
        if self.success:
            if self.error_message is not None or self.error_code is not None:
                raise ValueError("successful outcome cannot carry an error")
        else:
            if self.message_id is not None:
                raise ValueError("failed outcome cannot carry a message id")
            if not self.error_message:
                raise ValueError("failed outcome needs an error message")
        return self

    @classmethod
    def delivered(cls, raw: str, number: PhoneNumber, message_id: str) -> RecipientOutcome:
        return cls(phone_number=raw, normalized=number, success=True, message_id=message_id)

    @classmethod
    def validated(cls, raw: str, number: PhoneNumber) -> RecipientOutcome:
        return cls(phone_number=raw, normalized=number, success=True, attempted=False)

    @classmethod
    def rejected(cls, raw: str, error: NormalizationError) -> RecipientOutcome:
        return cls(
            phone_number=raw,
            success=False,
            error_message=error.message,
            error_code=error.reason,
            attempted=False,
        )

    @classmethod
    def transport_failed(
        cls, raw: str, number: PhoneNumber, error: TransportError
    ) -> RecipientOutcome:
        return cls(
            phone_number=raw,
            normalized=number,
            success=False,
            # Providers sometimes fail without any text.
            error_message=error.message or error.code or "Transport error",
            error_code=error.code,
        )

    @classmethod
    def skipped(cls, raw: str, number: PhoneNumber, reason: str) -> RecipientOutcome:
        return cls(
            phone_number=raw,
            normalized=number,
            success=False,
            error_message=reason,
            error_code="not_attempted",
            attempted=False,
        )


class BatchResult(BaseModel):
    """
    Outcomes of a dispatch call, in the same order as the input recipients.

    `sent` and `failed` are always derived from `results`.
    """

    model_config = ConfigDict(frozen=True)

    results: tuple[RecipientOutcome, ...] = ()
    cancelled: bool = False
    # Same id the engine logs under; record_batch stores it.
    batch_id: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.success)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Iterable[RecipientOutcome],
        *,
        cancelled: bool = False,
        batch_id: str | None = None,
    ) -> BatchResult:
        return cls(results=tuple(outcomes), cancelled=cancelled, batch_id=batch_id)
