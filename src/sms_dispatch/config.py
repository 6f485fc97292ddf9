from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


class Settings(BaseModel):
    # Env-derived defaults go through the same validation as explicit values.
    model_config = ConfigDict(validate_default=True)

    # Outbound message log:
    # - Default for local dev: sqlite file in the project root (sms_dispatch.db)
    # - Override in Docker / production using the DATABASE_URL env var
    database_url: str = Field(
        default_factory=lambda: os.getenv(
            "DATABASE_URL",
            f"sqlite:///{(Path(__file__).resolve().parents[2] / 'sms_dispatch.db')}",
        )
    )

    # --- Twilio transport ---
    twilio_account_sid: str | None = Field(default_factory=lambda: os.getenv("TWILIO_ACCOUNT_SID"))
    twilio_auth_token: str | None = Field(default_factory=lambda: os.getenv("TWILIO_AUTH_TOKEN"))
    # Default senders for the CLI when neither --from nor --service-id is given.
    twilio_from_number: str | None = Field(default_factory=lambda: os.getenv("TWILIO_FROM_NUMBER"))
    twilio_messaging_service_sid: str | None = Field(
        default_factory=lambda: os.getenv("TWILIO_MESSAGING_SERVICE_SID")
    )

    # --- Dispatch ---
    default_region: str = Field(default_factory=lambda: os.getenv("SMS_DEFAULT_REGION", "US"))
    max_concurrency: int = Field(
        default_factory=lambda: _env_int("SMS_MAX_CONCURRENCY", 10),
        ge=1,
    )

    admin_token: str | None = Field(default_factory=lambda: os.getenv("ADMIN_TOKEN"))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


@lru_cache
def get_settings() -> Settings:
    return Settings()
