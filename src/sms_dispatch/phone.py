from __future__ import annotations

import re
from typing import Final, Literal

import phonenumbers
from phonenumbers import NumberParseException, ValidationResult
from pydantic import BaseModel, ConfigDict, field_validator

NormalizationReason = Literal[
    "empty",
    "too_short",
    "too_long",
    "invalid_characters",
    "unknown_region",
]

DEFAULT_REGION: Final[str] = "US"

E164_RE = re.compile(r"^\+\d{8,15}$")
# Digits plus the usual human formatting; letters (vanity numbers) are rejected.
ALLOWED_CHARS_RE = re.compile(r"^\+?[\d\s\-().\/]+$")

_MESSAGES: Final[dict[str, str]] = {
    "empty": "Phone number is empty",
    "too_short": "Phone number is too short",
    "too_long": "Phone number is too long",
    "invalid_characters": "Phone number contains invalid characters",
    "unknown_region": "Phone number region or country code is not recognised",
}


class PhoneNumber(BaseModel):
    """A canonical, dial-able E.164 number."""

    model_config = ConfigDict(frozen=True)

    e164: str
    region: str = DEFAULT_REGION

    @field_validator("e164")
    @classmethod
    def _check_e164(cls, value: str) -> str:
        if not E164_RE.match(value):
            raise ValueError(f"not an E.164 number: {value!r}")
        return value

    def __str__(self) -> str:
        return self.e164


class NormalizationError(BaseModel):
    """Why a raw recipient string could not be turned into a PhoneNumber."""

    model_config = ConfigDict(frozen=True)

    raw: str
    reason: NormalizationReason

    @property
    def message(self) -> str:
        return _MESSAGES[self.reason]


def _reason_for_parse_error(exc: NumberParseException) -> NormalizationReason:
    if exc.error_type == NumberParseException.INVALID_COUNTRY_CODE:
        return "unknown_region"
    if exc.error_type == NumberParseException.TOO_LONG:
        return "too_long"
    if exc.error_type in (
        NumberParseException.TOO_SHORT_NSN,
        NumberParseException.TOO_SHORT_AFTER_IDD,
    ):
        return "too_short"
    return "invalid_characters"


def _reason_for_possibility(result: int) -> NormalizationReason | None:
    if result == ValidationResult.IS_POSSIBLE:
        return None
    if result == ValidationResult.INVALID_COUNTRY_CODE:
        return "unknown_region"
    if result == ValidationResult.TOO_LONG:
        return "too_long"
    # TOO_SHORT, INVALID_LENGTH and IS_POSSIBLE_LOCAL_ONLY: missing the area code
    # or subscriber digits, so not dial-able in international form.
    return "too_short"


def normalize(raw: str, region_hint: str = DEFAULT_REGION) -> PhoneNumber | NormalizationError:
    """
    Parse `raw` into a canonical E.164 PhoneNumber.

    Numbers starting with "+" are read as international; anything else is
    read as a national number of `region_hint` (ISO 3166-1 alpha-2).

    Bad input is returned as a NormalizationError value, never raised.
    Checks are offline only: the number must have a plausible length for its
    numbering plan, but no carrier lookup is done.
    """
    text = (raw or "").strip()
    if not text:
        return NormalizationError(raw=raw or "", reason="empty")

    if not ALLOWED_CHARS_RE.match(text) or not any(ch.isdigit() for ch in text):
        return NormalizationError(raw=raw, reason="invalid_characters")

    region = (region_hint or "").strip().upper()
    international = text.startswith("+")
    if not international and region not in phonenumbers.SUPPORTED_REGIONS:
        return NormalizationError(raw=raw, reason="unknown_region")

    try:
        parsed = phonenumbers.parse(text, None if international else region)
    except NumberParseException as exc:
        return NormalizationError(raw=raw, reason=_reason_for_parse_error(exc))

    reason = _reason_for_possibility(phonenumbers.is_possible_number_with_reason(parsed))
    if reason is not None:
        return NormalizationError(raw=raw, reason=reason)

    e164 = phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    digits = len(e164) - 1
    if digits < 8:
        return NormalizationError(raw=raw, reason="too_short")
    if digits > 15:
        return NormalizationError(raw=raw, reason="too_long")

    return PhoneNumber(e164=e164, region=region or DEFAULT_REGION)
