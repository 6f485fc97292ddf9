from __future__ import annotations

from typing import ClassVar


class DispatchError(Exception):
    """
    Base class for call-level failures.

    These abort the whole dispatch before anything is sent. Per-recipient
    problems are never raised; they are reported inside RecipientOutcome.
    """

    code: ClassVar[str] = "dispatch_error"
    default_detail: ClassVar[str] = "Dispatch failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ConfigurationError(DispatchError):
    code = "configuration_error"
    default_detail = "SMS service is not properly configured"


# --- Invocation errors (bad call arguments) ---


class InvocationError(DispatchError):
    code = "invocation_error"
    default_detail = "Invalid dispatch arguments"


class EmptyMessage(InvocationError):
    code = "empty_message"
    default_detail = "Message body must not be empty"


class NoRecipients(InvocationError):
    code = "no_recipients"
    default_detail = "At least one phone number is required"


class AmbiguousSender(InvocationError):
    code = "ambiguous_sender"
    default_detail = "Provide either a from number or a service id, not both"


class MissingSender(InvocationError):
    code = "missing_sender"
    default_detail = "Either a from number or a service id is required"


class InvalidSender(InvocationError):
    code = "invalid_sender"
    default_detail = "Sender phone number is not valid"


# --- Delivery option errors ---


class OptionsError(DispatchError):
    code = "invalid_options"
    default_detail = "Invalid delivery options"


class ScheduleTooSoon(OptionsError):
    code = "schedule_too_soon"
    default_detail = "Scheduled send time must be at least 5 minutes in the future"


class TooManyMedia(OptionsError):
    code = "too_many_media"
    default_detail = "At most 10 media URLs are allowed"


class InsecureOrInvalidMediaUrl(OptionsError):
    code = "insecure_or_invalid_media_url"
    default_detail = "Media URLs must be absolute https URLs"


class InsecureCallbackUrl(OptionsError):
    code = "insecure_callback_url"
    default_detail = "Status callback URL must be an absolute https URL"


class ValidityOutOfRange(OptionsError):
    code = "validity_out_of_range"
    default_detail = "Validity period must be between 10 seconds and 10 hours"
