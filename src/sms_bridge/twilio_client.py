from __future__ import annotations

import logging

from twilio.rest import Client

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


def get_twilio_client(settings: Settings | None = None) -> Client:
    settings = settings or get_settings()

    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        raise RuntimeError(
            "Twilio credentials are not configured (TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN)"
        )

    return Client(settings.twilio_account_sid, settings.twilio_auth_token)


class TwilioSmsManager:
    """
    Telephony backend that hands messages to the Twilio REST API.

    Twilio has no service-centre address or sent/delivery intents, so those
    must be left as None.
    """

    def __init__(self, settings: Settings | None = None, client: Client | None = None) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> Client:
        # Created on first send so a misconfigured backend only fails the call.
        if self._client is None:
            self._client = get_twilio_client(self._settings)
        return self._client

    def send_text_message(
        self,
        destination: str | None,
        sc_address: str | None,
        text: str | None,
        sent_intent: object | None,
        delivery_intent: object | None,
    ) -> None:
        if sc_address is not None or sent_intent is not None or delivery_intent is not None:
            raise ValueError("Twilio does not support sc_address, sent or delivery intents")
        if not self._settings.twilio_from_number:
            raise RuntimeError("TWILIO_FROM_NUMBER is not configured")

        message = self.client.messages.create(
            to=destination,
            from_=self._settings.twilio_from_number,
            body=text,
        )
        logger.info("Handed SMS to Twilio (sid=%s)", getattr(message, "sid", None))
