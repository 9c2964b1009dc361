"""Runtime configuration based on environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AnyHttpUrl, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    dsn: str = Field(
        default="sqlite+aiosqlite:///smsgw.db",
        description="SQLAlchemy async DSN.",
    )
    pool_size: int = Field(default=5, ge=1, le=50)
    max_overflow: int = Field(default=10, ge=0, le=100)
    echo: bool = False
    pool_recycle: int = Field(default=3600, ge=30)
    pool_pre_ping: bool = Field(default=True)


class QuotaSettings(BaseModel):
    default_hourly_limit: int = Field(default=5, ge=1)
    subscribed_hourly_limit: int = Field(default=20, ge=1)
    window_seconds: int = Field(default=3600, ge=1)
    retention_hours: int = Field(default=24, ge=1, le=168)
    purge_interval_seconds: int = Field(default=3600, ge=60)


class SMSSettings(BaseModel):
    provider: str = "Verimor"
    api_url: AnyHttpUrl = Field(default="https://sms.verimor.com.tr/v2/send.json")
    username: str | None = None
    password: SecretStr | None = None
    source_addr: str | None = None
    valid_for: str = "48:00"
    datacoding: str = "0"
    segment_length: int = Field(default=500, ge=1)
    request_timeout_seconds: int = Field(default=10, ge=1, le=60)


class TelegramSettings(BaseModel):
    token: SecretStr | None = None
    proxy: str | None = None
    chunk_length: int = Field(default=4000, ge=1, le=4096)
    send_delay_seconds: float = Field(default=0.1, ge=0)

    @field_validator("token", "proxy", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ContentSettings(BaseModel):
    markdown_url: AnyHttpUrl = Field(default="https://urltomarkdown.herokuapp.com/")
    nitter_base_url: AnyHttpUrl = Field(default="https://nitter.app.ooguz.dev/")
    duckduckgo_url: AnyHttpUrl = Field(default="https://lite.duckduckgo.com/lite/")
    wikipedia_host_template: str = "https://{lang}.wikipedia.org/w/api.php"
    weather_base_url: AnyHttpUrl = Field(default="https://wttr.in/")
    weather_format: str = "%l:\n%c%t\n%w %h - %m\nsr %S\nss %s\n"
    request_timeout_seconds: int = Field(default=10, ge=1, le=60)
    sms_tweet_count: int = Field(default=5, ge=1)
    telegram_tweet_count: int = Field(default=10, ge=1)
    http_tweet_count: int = Field(default=25, ge=1)
    max_search_results: int = Field(default=10, ge=1)


class SubscriptionSettings(BaseModel):
    subscription_duration_days: int = Field(default=30, ge=1)
    support_url: str = "https://buymeacoffee.com/ooguz"


class HTTPSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)


class GatewaySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SMSGW_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__"
    )

    environment: Literal["test", "dev", "prod"] = "prod"
    default_language: str = "en"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    quota: QuotaSettings = Field(default_factory=QuotaSettings)
    sms: SMSSettings = Field(default_factory=SMSSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    content: ContentSettings = Field(default_factory=ContentSettings)
    subscriptions: SubscriptionSettings = Field(default_factory=SubscriptionSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"


@lru_cache
def get_settings() -> GatewaySettings:
    """Return cached settings instance."""

    return GatewaySettings()


__all__ = [
    "ContentSettings",
    "DatabaseSettings",
    "GatewaySettings",
    "HTTPSettings",
    "QuotaSettings",
    "SMSSettings",
    "SubscriptionSettings",
    "TelegramSettings",
    "get_settings",
]
