from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

# The outbound log engine is created at import time, so point it at a scratch
# sqlite file before any sms_dispatch module is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="sms_dispatch_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'outbound.db'}"

from sms_dispatch.config import get_settings  # noqa: E402
from sms_dispatch.models import (  # noqa: E402
    DeliveryOptions,
    OriginatingNumber,
    ServiceId,
    TransportError,
)
from sms_dispatch.phone import PhoneNumber  # noqa: E402


class FakeTransport:
    """
    In-memory transport that records calls.

    - delays: per-number sleep (seconds) before answering
    - fail_for: numbers that get a TransportError back
    - raise_for: numbers whose call raises RuntimeError
    - on_complete: called with the E.164 number after each call finishes
    """

    def __init__(
        self,
        *,
        delays: dict[str, float] | None = None,
        fail_for: set[str] | None = None,
        raise_for: set[str] | None = None,
        on_complete: Callable[[str], None] | None = None,
    ) -> None:
        self.delays = delays or {}
        self.fail_for = fail_for or set()
        self.raise_for = raise_for or set()
        self.on_complete = on_complete
        self.calls: list[tuple[OriginatingNumber | ServiceId, str, str, DeliveryOptions | None]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(
        self,
        sender: OriginatingNumber | ServiceId,
        to: PhoneNumber,
        body: str,
        options: DeliveryOptions | None,
    ) -> str | TransportError:
        self.calls.append((sender, to.e164, body, options))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(to.e164, 0))
            if to.e164 in self.raise_for:
                raise RuntimeError("connection reset")
            if to.e164 in self.fail_for:
                return TransportError(message="Message delivery - carrier rejected", code="30006")
            return f"SM{to.e164[1:]}"
        finally:
            self.in_flight -= 1
            if self.on_complete is not None:
                self.on_complete(to.e164)

    @property
    def called_numbers(self) -> list[str]:
        return [call[1] for call in self.calls]


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def from_number() -> OriginatingNumber:
    return OriginatingNumber(number=PhoneNumber(e164="+15550001111"))
