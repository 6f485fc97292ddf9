from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import FakeTransport

from sms_dispatch import cli
from sms_dispatch.cli import build_parser, main, options_from_args


def test_validate_only_prints_results(capsys: pytest.CaptureFixture[str]) -> None:
    code = main(
        ["Hello", "+15551234567", "not-a-number", "--from", "+15550001111", "--validate-only"]
    )

    out = capsys.readouterr().out
    assert code == 1
    assert "OK    +15551234567 -> +15551234567  valid" in out
    assert "FAIL  not-a-number" in out
    assert "sent=1 failed=1" in out


def test_all_valid_exit_code_zero(capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["Hello", "(555) 123-4567", "--service-id", "MG0123", "--validate-only"])

    assert code == 0
    assert "sent=1 failed=0" in capsys.readouterr().out


def test_missing_sender_is_reported(
    capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("TWILIO_FROM_NUMBER", raising=False)
    monkeypatch.delenv("TWILIO_MESSAGING_SERVICE_SID", raising=False)

    code = main(["Hello", "+15551234567", "--validate-only"])

    assert code == 2
    assert "error:" in capsys.readouterr().err


def test_sender_defaults_from_settings(
    capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("TWILIO_MESSAGING_SERVICE_SID", raising=False)
    monkeypatch.setenv("TWILIO_FROM_NUMBER", "+15550001111")

    assert main(["Hello", "+15551234567", "--validate-only"]) == 0


def test_from_and_service_id_are_mutually_exclusive() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["Hello", "+15551234567", "--from", "+1555", "--service-id", "MG1"])


def test_options_from_args() -> None:
    args = build_parser().parse_args(
        [
            "Hello",
            "+15551234567",
            "--media-url",
            "https://cdn.example.com/a.png",
            "--media-url",
            "https://cdn.example.com/b.png",
            "--validity-seconds",
            "120",
            "--send-at",
            "2030-01-01T09:00:00+00:00",
        ]
    )

    options = options_from_args(args)

    assert options is not None
    assert options.media_urls == ("https://cdn.example.com/a.png", "https://cdn.example.com/b.png")
    assert options.validity_period == timedelta(seconds=120)
    assert options.scheduled_send_time is not None
    assert options.status_callback_url is None


def test_no_option_flags_means_no_options() -> None:
    args = build_parser().parse_args(["Hello", "+15551234567"])
    assert options_from_args(args) is None


def test_send_uses_twilio_transport(
    capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    transport = FakeTransport()
    monkeypatch.setattr(cli, "TwilioTransport", lambda: transport)

    code = main(["Hello", "+15551234567", "+15551234568", "--service-id", "MG0123"])

    assert code == 0
    assert transport.called_numbers == ["+15551234567", "+15551234568"]
    assert "SM15551234567" in capsys.readouterr().out
