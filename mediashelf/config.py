"""Application configuration models."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Mediashelf", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=8096, alias="PORT")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./mediashelf.db", alias="DATABASE_URL"
    )

    metadata_refresh_url: HttpUrl | None = Field(
        default=None, alias="METADATA_REFRESH_URL"
    )
    metadata_refresh_timeout: float = Field(
        default=60.0, alias="METADATA_REFRESH_TIMEOUT", gt=0
    )
    person_full_refresh_days: int = Field(
        default=3, alias="PERSON_FULL_REFRESH_DAYS", ge=1
    )

    latest_items_limit: int = Field(
        default=20, alias="LATEST_ITEMS_LIMIT", ge=1, le=500
    )
    intro_limit: int = Field(default=1, alias="INTRO_LIMIT", ge=0, le=10)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("metadata_refresh_url", mode="before")
    @classmethod
    def _strip_refresh_url(cls, value: object) -> object:
        """Treat blank refresh URLs as unset and drop trailing slashes."""

        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip().rstrip("/")
            return stripped or None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        if value is None or value == "":
            return "INFO"
        level = str(value).strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level {value!r}")
        return level

    @property
    def refresh_base_url(self) -> str | None:
        """Return the refresh service URL without a trailing slash."""

        if self.metadata_refresh_url is None:
            return None
        return str(self.metadata_refresh_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
