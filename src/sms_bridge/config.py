from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_CHANNEL = "com.example.sms/send"
DEFAULT_REQUEST_CODE = 123


class Settings(BaseModel):
    # Name of the call channel the application layer talks to
    channel_name: str = Field(
        default_factory=lambda: os.getenv("SMS_BRIDGE_CHANNEL") or DEFAULT_CHANNEL
    )
    permission_request_code: int = Field(
        default_factory=lambda: int(os.getenv("SMS_PERMISSION_REQUEST_CODE") or DEFAULT_REQUEST_CODE)
    )
    # Seconds awaitSmsPermission blocks when the caller gives no timeout
    permission_wait_timeout: float = Field(
        default_factory=lambda: float(os.getenv("PERMISSION_WAIT_TIMEOUT") or 30)
    )

    # Database URL:
    # - Default for local dev: sqlite file in the project root (sms_bridge.db)
    # - Override in Docker / production using the DATABASE_URL env var
    database_url: str = Field(
        default_factory=lambda: os.getenv("DATABASE_URL")
        or f"sqlite:///{(Path(__file__).resolve().parents[2] / 'sms_bridge.db')}",
    )

    # "twilio" or "console"
    sms_backend: str = Field(default_factory=lambda: os.getenv("SMS_BACKEND") or "twilio")

    twilio_account_sid: str | None = Field(default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID"))
    twilio_auth_token: str | None = Field(default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN"))
    twilio_from_number: str | None = Field(default_factory=lambda: os.getenv("TWILIO_FROM_NUMBER"))

    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL") or "INFO")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Set up root logging for the HTTP and CLI entry points."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
