"""
Named call channel between the application layer and the bridge.

The wire format is the JSON method codec used by cross-platform shells:

  call:     {"method": "sendSMS", "args": {"phone": "...", "message": "..."}}
  success:  [<result>]
  error:    [<code>, <message>, <details>]
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .sms import Failure, SendResult, Success

logger = logging.getLogger(__name__)

MethodCallHandler = Callable[["MethodCall"], SendResult]
BinaryHandler = Callable[[bytes], bytes]

# Code reported when a handler raises instead of returning a result.
HANDLER_ERROR_CODE = "error"


class CodecError(ValueError):
    pass


class ChannelNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class MethodCall:
    method: str
    arguments: Any = None

    def argument(self, key: str) -> Any:
        """Return one named argument, or None if absent or arguments are not a map."""
        if not isinstance(self.arguments, Mapping):
            return None
        return self.arguments.get(key)


class JsonMethodCodec:
    def encode_method_call(self, call: MethodCall) -> bytes:
        return json.dumps({"method": call.method, "args": call.arguments}).encode("utf-8")

    def decode_method_call(self, payload: bytes) -> MethodCall:
        try:
            data = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CodecError(f"Invalid method call: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("method"), str):
            raise CodecError("Invalid method call: expected an object with a 'method' string")
        return MethodCall(method=data["method"], arguments=data.get("args"))

    def encode_envelope(self, result: SendResult) -> bytes:
        if isinstance(result, Success):
            envelope: list[Any] = [result.value]
        else:
            envelope = [str(result.code), result.message, result.details]
        return json.dumps(envelope).encode("utf-8")

    def decode_envelope(self, payload: bytes) -> SendResult:
        try:
            envelope = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CodecError(f"Invalid envelope: {e}") from e

        if not isinstance(envelope, list):
            raise CodecError("Invalid envelope: expected a list")
        if len(envelope) == 1:
            return Success(envelope[0])
        if len(envelope) == 3 and isinstance(envelope[0], str):
            code, message, details = envelope
            return Failure(code=code, message=message, details=details)
        raise CodecError(f"Invalid envelope: {envelope!r}")


class BinaryMessenger:
    """Routes encoded messages to the handler registered for a channel name."""

    def __init__(self) -> None:
        self._handlers: dict[str, BinaryHandler] = {}

    def set_message_handler(self, channel: str, handler: BinaryHandler | None) -> None:
        if handler is None:
            self._handlers.pop(channel, None)
        else:
            self._handlers[channel] = handler

    def has_handler(self, channel: str) -> bool:
        return channel in self._handlers

    def send(self, channel: str, payload: bytes) -> bytes:
        handler = self._handlers.get(channel)
        if handler is None:
            raise ChannelNotFoundError(f"No handler registered for channel {channel!r}")
        return handler(payload)


class MethodChannel:
    def __init__(
        self,
        messenger: BinaryMessenger,
        name: str,
        codec: JsonMethodCodec | None = None,
    ) -> None:
        self.messenger = messenger
        self.name = name
        self.codec = codec or JsonMethodCodec()

    def set_method_call_handler(self, handler: MethodCallHandler | None) -> None:
        if handler is None:
            self.messenger.set_message_handler(self.name, None)
            return

        def on_message(payload: bytes) -> bytes:
            call = self.codec.decode_method_call(payload)
            try:
                result = handler(call)
            except Exception as e:
                logger.exception("Handler for %s on %s raised", call.method, self.name)
                result = Failure(code=HANDLER_ERROR_CODE, message=str(e))
            return self.codec.encode_envelope(result)

        self.messenger.set_message_handler(self.name, on_message)

    def invoke_method(self, method: str, arguments: Any = None) -> SendResult:
        """Send one call over the messenger and decode the reply."""
        payload = self.codec.encode_method_call(MethodCall(method=method, arguments=arguments))
        reply = self.messenger.send(self.name, payload)
        return self.codec.decode_envelope(reply)
