"""Конфигурация приложения."""
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Full SQLAlchemy URL; when empty the Postgres parts below are used.
    database_url: str = ""
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "predictbot"
    postgres_user: str = "predictbot"
    postgres_password: str = "changeme"
    auto_create_schema: bool = False

    telegram_bot_token: str = ""
    telegram_webhook_secret: str = ""
    # Public base URL of this service; when set the webhook is registered on startup.
    telegram_webhook_url: str = ""
    admin_user_ids: str = ""  # comma separated Telegram user ids
    default_group_id: int = 0

    display_timezone: str = "Europe/Moscow"
    locale: str = "en"

    session_ttl_minutes: int = 30
    message_delete_backoff_seconds: float = 1.0

    event_manager_url: str = ""
    event_manager_timeout_seconds: float = 10.0

    @field_validator("display_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {value}") from e
        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.display_timezone)

    @property
    def admin_ids(self) -> set[int]:
        out: set[int] = set()
        for part in self.admin_user_ids.replace(";", ",").split(","):
            part = part.strip()
            if part.lstrip("-").isdigit():
                out.add(int(part))
        return out


@lru_cache
def get_settings() -> Settings:
    return Settings()
