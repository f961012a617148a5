from __future__ import annotations

import pytest

from sms_bridge import cli
from sms_bridge.permissions import PermissionBroker, PermissionStatus
from sms_bridge.sms import SEND_SMS_PERMISSION

from conftest import FakeSmsManager


@pytest.fixture(autouse=True)
def fake_backend(monkeypatch: pytest.MonkeyPatch, sms_manager: FakeSmsManager) -> None:
    monkeypatch.setattr(cli, "get_sms_manager", lambda settings: sms_manager)


def test_send_without_permission(
    broker: PermissionBroker, sms_manager: FakeSmsManager, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli.main(["send", "--phone", "5551234", "--message", "hi"], broker=broker)

    assert code == 1
    assert "PERMISSION_DENIED: SMS permission not granted" in capsys.readouterr().err
    assert sms_manager.sent == []


def test_grant_then_send(
    broker: PermissionBroker, sms_manager: FakeSmsManager, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.main(["send", "--phone", "5551234", "--message", "hi"], broker=broker)
    [pending] = broker.list_requests()

    assert cli.main(["grant", str(pending.id)], broker=broker) == 0
    assert cli.main(["send", "--phone", "5551234", "--message", "hi"], broker=broker) == 0

    assert "SMS sent" in capsys.readouterr().out
    assert sms_manager.sent == [("5551234", None, "hi", None, None)]


def test_deny_and_requests_listing(
    broker: PermissionBroker, capsys: pytest.CaptureFixture[str]
) -> None:
    req = broker.request(SEND_SMS_PERMISSION, 123)

    assert cli.main(["deny", str(req.id)], broker=broker) == 0
    assert broker.get_request(req.id).status == PermissionStatus.DENIED

    assert cli.main(["requests", "--limit", "5"], broker=broker) == 0
    assert f"#{req.id}" in capsys.readouterr().out


def test_resolve_unknown_request(
    broker: PermissionBroker, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(["grant", "404"], broker=broker) == 1
    assert "404" in capsys.readouterr().err


def test_status_and_revoke(
    broker: PermissionBroker, grant_sms: None, capsys: pytest.CaptureFixture[str]
) -> None:
    cli.main(["status"], broker=broker)
    assert "granted" in capsys.readouterr().out

    assert cli.main(["revoke"], broker=broker) == 0
    capsys.readouterr()

    cli.main(["status"], broker=broker)
    assert "not granted" in capsys.readouterr().out
