"""Configuration settings for Passport Tracker."""

from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Locale(str, Enum):
    """Language of the messages sent to users."""

    RU = "ru"
    EN = "en"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults and can be overridden via
    environment variables or a .env file. Only the bot token is
    required, and only for the ``run`` command.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Telegram
    telegram_bot_token: str | None = Field(
        default=None,
        description="Bot token issued by @BotFather",
    )
    telegram_api_url: str = Field(
        default="https://api.telegram.org",
        description="Base URL of the Telegram Bot API",
    )
    telegram_poll_timeout: Annotated[int, Field(ge=0)] = Field(
        default=60,
        description="Long-polling timeout for getUpdates, in seconds",
    )

    # Storage
    tracker_db_path: Path = Field(
        default=Path("./data/tracker.db"),
        description="Path to the SQLite tracker database",
    )

    # Reconciliation
    reconcile_interval_minutes: Annotated[int, Field(gt=0)] = Field(
        default=30,
        description="Minutes between two status reconciliation passes",
    )
    stale_threshold: Annotated[int, Field(gt=0)] = Field(
        default=48,
        description=(
            "Consecutive unchanged polls before the 'status unchanged' reminder "
            "(48 polls at 30 minutes is one day)"
        ),
    )

    # Status source
    status_source_url: str = Field(
        default="https://info.midpass.ru/api/request",
        description="Endpoint answering the status of a short-validity application",
    )
    long_validity_status_url: str | None = Field(
        default=None,
        description=(
            "Endpoint answering the status of a long-validity application. "
            "Long-validity applications are not polled when unset."
        ),
    )
    city_lookup_url: str = Field(
        default="https://info.midpass.ru/api/cities",
        description="Endpoint listing the cities known to the status source",
    )
    http_timeout_seconds: Annotated[float, Field(gt=0)] = Field(
        default=30.0,
        description="Timeout applied to every outbound HTTP call",
    )

    # Runtime
    inbound_queue_size: Annotated[int, Field(gt=0)] = Field(
        default=100,
        description="Capacity of the queue between the update poller and the consumer",
    )
    locale: Locale = Field(
        default=Locale.RU,
        description="Language of user-facing messages: 'ru' or 'en'",
    )
    health_host: str = Field(
        default="0.0.0.0",
        description="Bind address of the health-check server",
    )
    health_port: Annotated[int, Field(ge=0, le=65535)] = Field(
        default=3000,
        description="Port of the health-check server (0 disables it)",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )

    @field_validator("locale", mode="before")
    @classmethod
    def validate_locale(cls, v: str | Locale) -> Locale:
        """Accept locale names regardless of case."""
        if isinstance(v, Locale):
            return v
        if isinstance(v, str):
            try:
                return Locale(v.strip().lower())
            except ValueError:
                raise ValueError(f"Invalid locale: {v}. Must be 'ru' or 'en'") from None
        raise ValueError(f"Invalid locale type: {type(v)}")

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("telegram_api_url", "status_source_url", "city_lookup_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def reconcile_interval_seconds(self) -> float:
        return self.reconcile_interval_minutes * 60.0
