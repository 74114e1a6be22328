"""Application configuration using Pydantic Settings."""

from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "test", "production"] = Field(default="development")

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./webhooks.db")
    db_echo: bool = Field(default=False)

    # Meta app
    meta_verify_token: str = Field(default="")
    meta_app_secret: str = Field(default="")

    # File storage
    webhook_storage_dir: str = Field(default="WebhookData")
    migration_reports_dir: str = Field(default="Migrations")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")


@dataclass(frozen=True)
class MetaConfig:
    """Secrets the signature check and the handshake are evaluated against."""

    verify_token: str = ""
    app_secret: str = ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetaConfig":
        return cls(
            verify_token=settings.meta_verify_token.strip(),
            app_secret=settings.meta_app_secret,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
