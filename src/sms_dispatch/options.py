from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Final
from urllib.parse import urlsplit

from .errors import (
    InsecureCallbackUrl,
    InsecureOrInvalidMediaUrl,
    ScheduleTooSoon,
    TooManyMedia,
    ValidityOutOfRange,
)
from .models import DeliveryOptions

MIN_SCHEDULE_LEAD: Final[timedelta] = timedelta(minutes=5)
MAX_MEDIA_URLS: Final[int] = 10
MIN_VALIDITY: Final[timedelta] = timedelta(seconds=10)
MAX_VALIDITY: Final[timedelta] = timedelta(hours=10)
SECURE_SCHEMES: Final[frozenset[str]] = frozenset({"https"})


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_secure_absolute_url(url: str) -> bool:
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme.lower() in SECURE_SCHEMES and bool(parts.hostname)


def validate_options(options: DeliveryOptions, now: datetime) -> None:
    """
    Check delivery options against provider-independent bounds.

    Rules are checked in a fixed order and the first failure is raised:
    schedule lead time, media count, media URLs, callback URL, validity.
    Pure: no I/O, `now` is supplied by the caller.
    """
    if options.scheduled_send_time is not None:
        if _as_utc(options.scheduled_send_time) < _as_utc(now) + MIN_SCHEDULE_LEAD:
            raise ScheduleTooSoon()

    if options.media_urls is not None:
        if len(options.media_urls) > MAX_MEDIA_URLS:
            raise TooManyMedia(
                f"At most {MAX_MEDIA_URLS} media URLs are allowed, got {len(options.media_urls)}"
            )
        for url in options.media_urls:
            if not is_secure_absolute_url(url):
                raise InsecureOrInvalidMediaUrl(f"Media URL must be an absolute https URL: {url}")

    if options.status_callback_url is not None:
        if not is_secure_absolute_url(options.status_callback_url):
            raise InsecureCallbackUrl()

    if options.validity_period is not None:
        if not MIN_VALIDITY <= options.validity_period <= MAX_VALIDITY:
            raise ValidityOutOfRange()
