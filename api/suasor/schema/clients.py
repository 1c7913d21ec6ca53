"""Client configuration schemas for API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from suasor.models.client import ClientCategory, ClientType
from suasor.models.media import MediaType
from suasor.schema.base import Timestamped
from suasor.schema.media_data import ExternalID


class ClientCapabilitiesRead(BaseModel):
    """Media families a client adapter can serve."""
    movies: bool = False
    series: bool = False
    episodes: bool = False
    music: bool = False
    tracks: bool = False
    playlists: bool = False
    collections: bool = False
    search: bool = False
    media_types: list[MediaType] = Field(default_factory=list)


class ClientCreate(BaseModel):
    """Payload for registering a new external client."""
    name: str = Field(min_length=1, max_length=120)
    client_type: ClientType
    base_url: str = Field(min_length=1)
    user_id: str | None = None
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    token: str | None = None
    enabled: bool = True

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return cleaned


class ClientUpdate(BaseModel):
    """Partial update for a client; omitted secrets are left unchanged."""
    name: str | None = Field(default=None, min_length=1, max_length=120)
    base_url: str | None = None
    user_id: str | None = None
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    token: str | None = None
    enabled: bool | None = None

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip().rstrip("/")
        if not cleaned.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return cleaned


class ClientRead(Timestamped):
    """Client configuration returned by the API; secrets are never echoed."""
    name: str
    client_type: ClientType
    category: ClientCategory
    base_url: str
    user_id: str | None = None
    enabled: bool
    has_credentials: bool = False
    last_error: str | None = None
    last_synced_at: datetime | None = None


class ClientTestResult(BaseModel):
    client_id: int
    ok: bool
    detail: str | None = None


class ClientSyncRequest(BaseModel):
    media_type: MediaType


class ClientItemRead(BaseModel):
    """Item as reported live by a client, before reconciliation."""
    client_item_id: str
    media_type: MediaType
    title: str
    release_year: int | None = None
    external_ids: list[ExternalID] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
