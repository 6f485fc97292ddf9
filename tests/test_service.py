from __future__ import annotations

import pytest
from conftest import FakeTransport

from sms_dispatch.config import Settings
from sms_dispatch.errors import AmbiguousSender, InvalidSender, MissingSender
from sms_dispatch.models import OriginatingNumber, ServiceId
from sms_dispatch.service import SmsService


@pytest.fixture
def service(transport: FakeTransport) -> SmsService:
    return SmsService(transport, Settings(default_region="US", max_concurrency=5))


@pytest.mark.asyncio
async def test_send_from_returns_single_outcome(service: SmsService, transport: FakeTransport) -> None:
    outcome = await service.send_from("+15550001111", "(555) 123-4567", "Your code is 1234")

    assert outcome.success
    assert outcome.phone_number == "(555) 123-4567"
    assert outcome.message_id == "SM15551234567"

    sender, to, body, options = transport.calls[0]
    assert isinstance(sender, OriginatingNumber)
    assert sender.number.e164 == "+15550001111"
    assert to == "+15551234567"
    assert body == "Your code is 1234"
    assert options is None


@pytest.mark.asyncio
async def test_send_via_service_uses_service_identity(
    service: SmsService, transport: FakeTransport
) -> None:
    outcome = await service.send_via_service("MG0123", "+15551234567", "Hi")

    assert outcome.success
    sender = transport.calls[0][0]
    assert isinstance(sender, ServiceId)
    assert sender.service_id == "MG0123"


@pytest.mark.asyncio
async def test_single_send_reports_bad_recipient_as_outcome(
    service: SmsService, transport: FakeTransport
) -> None:
    outcome = await service.send_from("+15550001111", "not-a-number", "Hi")

    assert not outcome.success
    assert outcome.error_code == "invalid_characters"
    assert transport.calls == []


@pytest.mark.asyncio
async def test_single_send_reports_transport_failure() -> None:
    transport = FakeTransport(fail_for={"+15551234567"})
    service = SmsService(transport, Settings())

    outcome = await service.send_from("+15550001111", "+15551234567", "Hi")

    assert not outcome.success
    assert outcome.error_code == "30006"


@pytest.mark.asyncio
async def test_single_send_needs_its_sender(service: SmsService) -> None:
    with pytest.raises(MissingSender):
        await service.send_from("", "+15551234567", "Hi")
    with pytest.raises(MissingSender):
        await service.send_via_service("  ", "+15551234567", "Hi")
    with pytest.raises(InvalidSender):
        await service.send_from("nope", "+15551234567", "Hi")


@pytest.mark.asyncio
async def test_send_bulk_uses_country_code(service: SmsService, transport: FakeTransport) -> None:
    result = await service.send_bulk(
        "Hello",
        ["020 7946 0958", "+15551234567"],
        service_id="MG0123",
        country_code="GB",
    )

    assert result.sent == 2
    assert transport.called_numbers == ["+442079460958", "+15551234567"]


@pytest.mark.asyncio
async def test_send_bulk_defaults_to_configured_region(transport: FakeTransport) -> None:
    service = SmsService(transport, Settings(default_region="GB"))

    result = await service.send_bulk("Hello", ["020 7946 0958"], from_="+15550001111")

    assert result.results[0].normalized is not None
    assert result.results[0].normalized.e164 == "+442079460958"


@pytest.mark.asyncio
async def test_send_bulk_sender_rules(service: SmsService) -> None:
    with pytest.raises(AmbiguousSender):
        await service.send_bulk("Hello", ["+15551234567"], from_="+15550001111", service_id="MG1")
    with pytest.raises(MissingSender):
        await service.send_bulk("Hello", ["+15551234567"])


@pytest.mark.asyncio
async def test_send_bulk_accepts_any_iterable(service: SmsService) -> None:
    numbers = (n for n in ["+15551234567", "+15551234568"])
    result = await service.send_bulk("Hello", numbers, from_="+15550001111", validate_only=True)
    assert result.sent == 2


def test_engine_uses_configured_concurrency(service: SmsService) -> None:
    assert service.engine.max_concurrency == 5
