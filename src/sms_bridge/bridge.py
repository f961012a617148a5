from __future__ import annotations

import logging
import math
from typing import Any

from .channel import BinaryMessenger, MethodCall, MethodChannel
from .config import DEFAULT_CHANNEL, DEFAULT_REQUEST_CODE
from .permissions import PermissionBroker, PermissionRequestNotFound
from .sms import (
    PERMISSION_NOT_GRANTED,
    SEND_FAILED_PREFIX,
    SEND_SMS_PERMISSION,
    SMS_SENT,
    ErrorCode,
    Failure,
    Operation,
    SendRequest,
    SendResult,
    Success,
)
from .telephony import Telephony

logger = logging.getLogger(__name__)


class SmsBridge:
    """
    Answers calls on the SMS channel.

    sendSMS checks the SEND_SMS grant first. Without it the bridge starts a
    permission prompt, does not wait for the answer, and reports
    PERMISSION_DENIED; the caller retries once the prompt is resolved
    (requestSmsPermission / awaitSmsPermission make that explicit). With it the
    message goes to the telephony backend and any exception becomes FAILED.
    """

    def __init__(
        self,
        permissions: PermissionBroker,
        sms_manager: Telephony,
        request_code: int = DEFAULT_REQUEST_CODE,
        wait_timeout: float = 30.0,
    ) -> None:
        self.permissions = permissions
        self.sms_manager = sms_manager
        self.request_code = request_code
        self.wait_timeout = wait_timeout

    def handle(self, call: MethodCall) -> SendResult:
        operation = Operation.parse(call.method)
        if operation is Operation.SEND_SMS:
            request = SendRequest(phone=call.argument("phone"), message=call.argument("message"))
            return self.send_sms(request.phone, request.message)
        if operation is Operation.CHECK_PERMISSION:
            return Success(self.permissions.check(SEND_SMS_PERMISSION))
        if operation is Operation.REQUEST_PERMISSION:
            return self.request_permission()
        if operation is Operation.AWAIT_PERMISSION:
            return self.await_permission(call.argument("requestId"), call.argument("timeout"))

        logger.warning("Unsupported operation %r", call.method)
        return Failure(
            code=ErrorCode.UNSUPPORTED_OPERATION,
            message=f"Unsupported operation: {call.method}",
        )

    def send_sms(self, phone: str | None, message: str | None) -> SendResult:
        if not self.permissions.check(SEND_SMS_PERMISSION):
            pending = self.permissions.request(SEND_SMS_PERMISSION, self.request_code)
            logger.info("SMS permission missing; prompt #%d pending", pending.id)
            return Failure(code=ErrorCode.PERMISSION_DENIED, message=PERMISSION_NOT_GRANTED)

        try:
            self.sms_manager.send_text_message(phone, None, message, None, None)
        except Exception as e:
            logger.exception("SMS send failed")
            return Failure(code=ErrorCode.FAILED, message=f"{SEND_FAILED_PREFIX}{e}")
        return Success(SMS_SENT)

    def request_permission(self) -> SendResult:
        """Phase one: start (or join) a prompt and return its id without waiting."""
        if self.permissions.check(SEND_SMS_PERMISSION):
            return Success({"requestId": None, "status": "granted"})
        pending = self.permissions.request(SEND_SMS_PERMISSION, self.request_code)
        return Success({"requestId": pending.id, "status": str(pending.status)})

    def await_permission(self, request_id: Any, timeout: Any = None) -> SendResult:
        """Phase two: block until the prompt is answered or the timeout passes."""
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            return Failure(code=ErrorCode.FAILED, message="requestId must be an integer")
        if timeout is None:
            timeout = self.wait_timeout
        elif (
            isinstance(timeout, bool)
            or not isinstance(timeout, int | float)
            or not math.isfinite(timeout)
        ):
            return Failure(code=ErrorCode.FAILED, message="timeout must be a number")

        # Callers never hold a worker longer than the configured wait
        safe_timeout = max(0.0, min(float(timeout), self.wait_timeout))
        try:
            status = self.permissions.wait(request_id, safe_timeout)
        except PermissionRequestNotFound as e:
            return Failure(code=ErrorCode.FAILED, message=str(e))
        return Success(str(status))


def configure_channel(
    messenger: BinaryMessenger,
    bridge: SmsBridge,
    name: str = DEFAULT_CHANNEL,
) -> MethodChannel:
    """Bind `bridge` to the named channel on `messenger` and return the channel."""
    channel = MethodChannel(messenger, name)
    channel.set_method_call_handler(bridge.handle)
    logger.info("SMS bridge listening on %s", name)
    return channel
