from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final

SEND_SMS_PERMISSION: Final[str] = "android.permission.SEND_SMS"

SMS_SENT: Final[str] = "SMS sent"
PERMISSION_NOT_GRANTED: Final[str] = "SMS permission not granted"
SEND_FAILED_PREFIX: Final[str] = "SMS failed to send: "


class ErrorCode(StrEnum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    FAILED = "FAILED"
    UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"


class Operation(StrEnum):
    """Method names the bridge answers on its channel."""

    SEND_SMS = "sendSMS"
    CHECK_PERMISSION = "checkSmsPermission"
    REQUEST_PERMISSION = "requestSmsPermission"
    AWAIT_PERMISSION = "awaitSmsPermission"

    @classmethod
    def parse(cls, method: str) -> Operation | None:
        try:
            return cls(method)
        except ValueError:
            return None


@dataclass(frozen=True)
class SendRequest:
    # Both fields are passed through to the telephony backend unchecked.
    phone: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class Success:
    value: Any = None


@dataclass(frozen=True)
class Failure:
    code: str
    message: str
    details: Any = None


SendResult = Success | Failure
