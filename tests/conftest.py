from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from sms_bridge.bridge import SmsBridge
from sms_bridge.db import init_db, make_engine
from sms_bridge.permissions import PermissionBroker
from sms_bridge.sms import SEND_SMS_PERMISSION


class FakeSmsManager:
    """Records every send; raises `error` instead when one is set."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[tuple[object, ...]] = []

    def send_text_message(
        self,
        destination: str | None,
        sc_address: str | None,
        text: str | None,
        sent_intent: object | None,
        delivery_intent: object | None,
    ) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((destination, sc_address, text, sent_intent, delivery_intent))


@pytest.fixture
def session_factory(tmp_path: Path) -> sessionmaker[Session]:
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def broker(session_factory: sessionmaker[Session]) -> PermissionBroker:
    return PermissionBroker(session_factory)


@pytest.fixture
def grant_sms(broker: PermissionBroker) -> None:
    """Put SEND_SMS in the granted state."""
    req = broker.request(SEND_SMS_PERMISSION, 123)
    broker.resolve(req.id, granted=True)


@pytest.fixture
def sms_manager() -> FakeSmsManager:
    return FakeSmsManager()


@pytest.fixture
def bridge(broker: PermissionBroker, sms_manager: FakeSmsManager) -> SmsBridge:
    return SmsBridge(permissions=broker, sms_manager=sms_manager, request_code=123)
