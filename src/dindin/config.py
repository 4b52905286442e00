"""Application configuration models."""
from __future__ import annotations

from functools import lru_cache
from typing import Callable, Literal, Optional, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_CONVERSATION_TTL_SECONDS = 60

# attribute path -> environment variable that must not be blank
REQUIRED_VARIABLES = {
    ("telegram", "bot_token"): "TELEGRAM_BOT_TOKEN",
    ("openai", "api_key"): "OPENAI_API_KEY",
}


class AppBaseSettings(BaseSettings):
    """Base settings with shared configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class TelegramSettings(AppBaseSettings):
    bot_token: str = Field(..., validation_alias="TELEGRAM_BOT_TOKEN")
    parse_mode: str = Field("Markdown", validation_alias="TELEGRAM_PARSE_MODE")


class OpenAISettings(AppBaseSettings):
    """Chat model used to classify free-text messages."""

    api_key: str = Field(..., validation_alias="OPENAI_API_KEY")
    model: str = Field("gpt-4o-mini", validation_alias="OPENAI_MODEL")
    temperature: float = Field(0.1, validation_alias="OPENAI_TEMPERATURE")
    base_url: Optional[str] = Field(None, validation_alias="OPENAI_BASE_URL")
    max_tokens: int = Field(500, validation_alias="OPENAI_MAX_TOKENS")
    cache_ttl_seconds: int = Field(6 * 60 * 60, validation_alias="LLM_CACHE_TTL_SECONDS")

    @field_validator("temperature")
    def validate_temperature(cls, value: float) -> float:
        if not 0.0 <= value <= 2.0:
            raise ValueError("temperature must be between 0 and 2")
        return value


class DatabaseSettings(AppBaseSettings):
    """PostgreSQL connection, or a full SQLAlchemy URL through ``DATABASE_URL``."""

    url: Optional[str] = Field(None, validation_alias="DATABASE_URL")
    host: str = Field("postgres", validation_alias="POSTGRES_HOST")
    port: int = Field(5432, validation_alias="POSTGRES_PORT")
    user: str = Field("postgres", validation_alias="POSTGRES_USER")
    password: str = Field("postgres", validation_alias="POSTGRES_PASSWORD")
    name: str = Field("dindin", validation_alias="POSTGRES_DB")
    echo: bool = Field(False, validation_alias="DB_ECHO")

    @property
    def async_dsn(self) -> str:
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


class RedisSettings(AppBaseSettings):
    """Celery broker, LLM cache and the optional conversation store."""

    url: str = Field("redis://redis:6379/0", validation_alias="REDIS_URL")

    @property
    def dsn(self) -> str:
        return self.url


class LoggingSettings(AppBaseSettings):
    level: str = Field("INFO", validation_alias="LOG_LEVEL")


class ConversationSettings(AppBaseSettings):
    """Where open conversations live and how long an idle one is kept."""

    backend: Literal["memory", "redis"] = Field("memory", validation_alias="CONVERSATION_BACKEND")
    ttl_seconds: int = Field(30 * 60, validation_alias="CONVERSATION_TTL_SECONDS")

    @field_validator("ttl_seconds")
    def validate_ttl(cls, value: int) -> int:
        if value < MIN_CONVERSATION_TTL_SECONDS:
            raise ValueError(f"ttl_seconds must be at least {MIN_CONVERSATION_TTL_SECONDS}")
        return value


class ReminderSettings(AppBaseSettings):
    """When the daily income and expense reminders go out."""

    timezone: str = Field("America/Sao_Paulo", validation_alias="REMINDER_TIMEZONE")
    hour: int = Field(9, validation_alias="REMINDER_HOUR")
    expense_lead_days: int = Field(1, validation_alias="EXPENSE_REMINDER_LEAD_DAYS")

    @field_validator("timezone")
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value

    @field_validator("hour")
    def validate_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("hour must be between 0 and 23")
        return value

    @field_validator("expense_lead_days")
    def validate_lead_days(cls, value: int) -> int:
        if value < 0:
            raise ValueError("expense_lead_days cannot be negative")
        return value


SectionT = TypeVar("SectionT", bound=AppBaseSettings)


def _from_env(section: type[SectionT]) -> Callable[[], SectionT]:
    def build() -> SectionT:
        return section()  # type: ignore[call-arg]

    return build


class Settings(AppBaseSettings):
    """Full application configuration, one nested model per concern."""

    telegram: TelegramSettings = Field(default_factory=_from_env(TelegramSettings))
    openai: OpenAISettings = Field(default_factory=_from_env(OpenAISettings))
    database: DatabaseSettings = Field(default_factory=_from_env(DatabaseSettings))
    redis: RedisSettings = Field(default_factory=_from_env(RedisSettings))
    logging: LoggingSettings = Field(default_factory=_from_env(LoggingSettings))
    conversation: ConversationSettings = Field(default_factory=_from_env(ConversationSettings))
    reminders: ReminderSettings = Field(default_factory=_from_env(ReminderSettings))


def _find_missing(settings: Settings) -> list[str]:
    missing = []
    for (section, attribute), env_name in REQUIRED_VARIABLES.items():
        value = getattr(getattr(settings, section), attribute)
        if not str(value or "").strip():
            missing.append(env_name)
    return sorted(missing)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached settings instance, failing fast on blank credentials."""

    settings = Settings()
    missing = _find_missing(settings)
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Set them in the environment or in .env before starting DinDin."
        )
    return settings


__all__ = [
    "ConversationSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "OpenAISettings",
    "RedisSettings",
    "ReminderSettings",
    "Settings",
    "TelegramSettings",
    "get_settings",
]
