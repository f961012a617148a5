from __future__ import annotations

import logging
from typing import Protocol

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


class Telephony(Protocol):
    def send_text_message(
        self,
        destination: str | None,
        sc_address: str | None,
        text: str | None,
        sent_intent: object | None,
        delivery_intent: object | None,
    ) -> None:
        """Hand one text message to the carrier; raise with a readable message on failure."""
        ...


class ConsoleSmsManager:
    """Development backend: prints the message instead of sending it."""

    def send_text_message(
        self,
        destination: str | None,
        sc_address: str | None,
        text: str | None,
        sent_intent: object | None,
        delivery_intent: object | None,
    ) -> None:
        logger.info("Console SMS to %s (%d chars)", destination, len(text or ""))
        print("[SMS]")
        print(f"to={destination}")
        print(f"message={text}")


def get_sms_manager(settings: Settings | None = None) -> Telephony:
    settings = settings or get_settings()
    backend = settings.sms_backend.strip().lower()

    if backend == "twilio":
        from .twilio_client import TwilioSmsManager

        return TwilioSmsManager(settings)
    if backend == "console":
        return ConsoleSmsManager()
    raise RuntimeError(f"Unsupported SMS_BACKEND: {settings.sms_backend}")
