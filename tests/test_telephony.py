from __future__ import annotations

from typing import Any

import pytest

from sms_bridge.config import Settings
from sms_bridge.telephony import ConsoleSmsManager, get_sms_manager
from sms_bridge.twilio_client import TwilioSmsManager


class FakeMessages:
    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> Any:
        self.created.append(kwargs)
        return type("MessageInstance", (), {"sid": "SM123"})()


class FakeTwilioClient:
    def __init__(self) -> None:
        self.messages = FakeMessages()


def _settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "sms_backend": "twilio",
        "twilio_account_sid": "AC123",
        "twilio_auth_token": "token",
        "twilio_from_number": "+15550000000",
    }
    values.update(overrides)
    return Settings(**values)


def test_twilio_manager_creates_message() -> None:
    client = FakeTwilioClient()
    manager = TwilioSmsManager(_settings(), client=client)  # type: ignore[arg-type]

    manager.send_text_message("5551234", None, "hi", None, None)

    assert client.messages.created == [{"to": "5551234", "from_": "+15550000000", "body": "hi"}]


def test_twilio_manager_requires_from_number() -> None:
    manager = TwilioSmsManager(_settings(twilio_from_number=None), client=FakeTwilioClient())  # type: ignore[arg-type]

    with pytest.raises(RuntimeError, match="TWILIO_FROM_NUMBER"):
        manager.send_text_message("5551234", None, "hi", None, None)


def test_twilio_manager_requires_credentials() -> None:
    manager = TwilioSmsManager(_settings(twilio_auth_token=None))

    with pytest.raises(RuntimeError, match="credentials"):
        manager.send_text_message("5551234", None, "hi", None, None)


def test_twilio_manager_rejects_intents() -> None:
    manager = TwilioSmsManager(_settings(), client=FakeTwilioClient())  # type: ignore[arg-type]

    with pytest.raises(ValueError):
        manager.send_text_message("5551234", None, "hi", object(), None)


def test_console_manager_prints(capsys: pytest.CaptureFixture[str]) -> None:
    ConsoleSmsManager().send_text_message("5551234", None, "hi", None, None)

    out = capsys.readouterr().out
    assert "to=5551234" in out
    assert "message=hi" in out


def test_backend_selection() -> None:
    assert isinstance(get_sms_manager(_settings()), TwilioSmsManager)
    assert isinstance(get_sms_manager(_settings(sms_backend="Console")), ConsoleSmsManager)
    with pytest.raises(RuntimeError, match="Unsupported SMS_BACKEND"):
        get_sms_manager(_settings(sms_backend="carrier-pigeon"))
