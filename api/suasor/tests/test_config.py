from __future__ import annotations

import pytest
from pydantic import ValidationError

from suasor.core.config import DEFAULT_CORS_ORIGINS, Settings


def test_list_settings_accept_csv_and_json() -> None:
    settings = Settings(
        cors_origins="http://a.local, http://b.local",
        worker_queue_names='["sync", "default"]',
        health_allowlist="10.0.0.0/8",
    )

    assert settings.cors_origins == ["http://a.local", "http://b.local"]
    assert settings.worker_queue_names == ["sync", "default"]
    assert settings.health_allowlist == ["10.0.0.0/8"]


def test_blank_cors_falls_back_to_defaults() -> None:
    assert Settings(cors_origins="").cors_origins == DEFAULT_CORS_ORIGINS


def test_production_requires_non_default_secret() -> None:
    with pytest.raises(ValidationError):
        Settings(environment="production")

    assert Settings(environment="production", credential_vault_key="k").environment == "production"


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(client_page_size=0)
