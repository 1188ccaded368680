from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Quicklook Ledger"
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent)
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent.parent / "data")

    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))
    JWT_SECRET: str = "change-me"
    JWT_ACCESS_TTL_MIN: int = 15
    JWT_REFRESH_TTL_DAYS: int = 7
    # Comma separated in the environment; NoDecode hands the raw string to the validator.
    ALLOWED_ORIGINS: Annotated[list[str], NoDecode] = Field(default_factory=list)

    DB_URL: str = Field(default="", validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    # ``sql`` keeps everything in DB_URL; ``rest`` talks to a hosted
    # PostgREST-style store at STORE_URL.
    STORE_BACKEND: str = "sql"
    STORE_URL: str = ""
    STORE_API_KEY: str = ""
    STORE_TABLE: str = "inventory_items"
    STORE_ACCESS_TABLE: str = "inventory_access"
    STORE_ACTIVITY_TABLE: str = "inventory_activity_log"
    STORE_TIMEOUT: float = 10.0

    PAGE_SIZE: int = Field(default=10, ge=1)
    ADMIN_DEPARTMENT: str = "ADMIN"

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR}/quicklook.db"

    @field_validator("STORE_BACKEND", mode="before")
    @classmethod
    def normalize_backend(cls, value: Any) -> str:
        backend = str(value or "sql").strip().lower()
        if backend not in {"sql", "rest"}:
            raise ValueError("STORE_BACKEND must be 'sql' or 'rest'")
        return backend

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("ALLOWED_ORIGINS must be a comma separated string or list")


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    if not settings.DB_URL:
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
