"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development; transport
credentials default to None and must be injected for live delivery.

Usage:
    from backend.app.core.config import settings
    print(settings.SHAKE_THRESHOLD_DEFAULT)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "DriveSafe"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # ── Shake detection ──
    SHAKE_THRESHOLD_DEFAULT: float = 6.0
    SHAKE_THRESHOLD_MIN: float = 2.0
    SHAKE_THRESHOLD_MAX: float = 10.0
    SHAKE_THRESHOLD_STEP: float = 0.1  # settings slider resolution

    # ── Countdown ──
    COUNTDOWN_TICKS: int = 10
    COUNTDOWN_TICK_SECONDS: float = 1.0
    HAPTIC_PATTERN_MS: List[int] = [500, 500, 500]

    # ── Dispatch ──
    DISPATCH_CONCURRENT_SENDS: bool = True
    MAP_LINK_BASE: str = "https://www.google.com/maps?q="
    NOTIFICATION_TITLE: str = "Emergency Alert"
    NOTIFICATION_BODY: str = "Sending emergency notifications!"
    CANCEL_NOTIFICATION_TITLE: str = "Emergency Canceled"
    CANCEL_NOTIFICATION_BODY: str = "The emergency alert has been canceled."
    SPEECH_TEXT: str = "Emergency detected. Sending help messages."

    # ── Message transport ──
    MAIL_PROVIDER: str = "simulation"  # simulation | mailgun
    MAILGUN_API_KEY: Optional[SecretStr] = None
    MAILGUN_DOMAIN: str = "sandbox.mailgun.org"
    MAILGUN_BASE_URL: str = "https://api.mailgun.net/v3"
    MAIL_SENDER_NAME: str = "Emergency Alert"
    TRANSPORT_TIMEOUT_SECONDS: float = 15.0

    # ── Simulated device (local development) ──
    SIM_LOCATION_PERMISSION: str = "granted"  # granted | denied
    SIM_LATITUDE: float = 37.4219983
    SIM_LONGITUDE: float = -122.084
    NOTICE_HISTORY_SIZE: int = 100

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def mail_sender(self) -> str:
        return f"{self.MAIL_SENDER_NAME} <mailgun@{self.MAILGUN_DOMAIN}>"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
