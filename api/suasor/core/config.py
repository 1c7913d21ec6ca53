"""Application settings parsed from environment variables and defaults."""

import json
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
DEFAULT_SECRET_KEY = "suasor-development-secret"


def _split_list(value: str | list[str] | None, *, default: list[str]) -> list[str]:
    """Normalize list settings from JSON, CSV, or list inputs."""
    if isinstance(value, list):
        cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
        return cleaned or default.copy()
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return default.copy()
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            cleaned = [str(item).strip() for item in parsed if str(item).strip()]
            if cleaned:
                return cleaned
        items = [item.strip() for item in stripped.split(",") if item.strip()]
        if items:
            return items
    return default.copy()


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "Suasor API"
    environment: str = "development"
    api_prefix: str = "/api"

    database_url: str = "sqlite+aiosqlite:///./suasor.db"
    test_database_url: Optional[str] = None

    secret_key: str = DEFAULT_SECRET_KEY
    credential_vault_key: Optional[str] = None

    log_level: str = "INFO"
    cors_origins: list[str] | str = Field(default_factory=lambda: DEFAULT_CORS_ORIGINS.copy())
    redis_url: str = "redis://redis:6379/0"
    worker_queue_names: list[str] | str = Field(default_factory=lambda: ["default", "sync"])
    health_allowlist: list[str] | str = Field(default_factory=list)

    client_request_timeout_seconds: float = 15.0
    client_page_size: int = 200
    reconcile_match_external_ids: bool = True
    reconcile_match_title_year: bool = True
    sync_error_sample_size: int = 5

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        """Normalize CORS origins from JSON, CSV, or list inputs."""
        return _split_list(value, default=DEFAULT_CORS_ORIGINS)

    @field_validator("worker_queue_names", mode="before")
    @classmethod
    def _split_worker_queue_names(cls, value: str | list[str] | None) -> list[str]:
        """Normalize worker queue names from JSON, CSV, or list inputs."""
        return _split_list(value, default=["default"])

    @field_validator("health_allowlist", mode="before")
    @classmethod
    def _split_health_allowlist(cls, value: str | list[str] | None) -> list[str]:
        """Normalize health allowlist entries from JSON, CSV, or list inputs."""
        return _split_list(value, default=[])

    @field_validator("client_page_size")
    @classmethod
    def _validate_page_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("CLIENT_PAGE_SIZE must be positive")
        return value

    @model_validator(mode="after")
    def _validate_secrets(self) -> "Settings":
        """Refuse to encrypt client credentials with the development key in production."""
        if self.environment.lower() == "production":
            if not self.credential_vault_key and self.secret_key == DEFAULT_SECRET_KEY:
                msg = "CREDENTIAL_VAULT_KEY or a non-default SECRET_KEY must be set in production"
                raise ValueError(msg)
        return self

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings to avoid re-parsing environment variables."""
    return Settings()


settings = get_settings()
