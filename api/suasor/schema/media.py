"""Media record container and media API schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, model_validator

from suasor.models.media import MediaType
from suasor.models.sync_run import SyncRunStatus
from suasor.schema.base import ORMModel, Timestamped
from suasor.schema.media_data import ExternalID, ExternalIDs, MediaData
from suasor.schema.sync_clients import SyncClient, SyncClients

T = TypeVar("T", bound=MediaData)


class MediaRecord(BaseModel, Generic[T]):
    """A media item with its typed payload and client identity map.

    ``media_type`` must agree with the payload class; ``title``,
    ``release_date`` and ``release_year`` fall back to ``data.details``.
    """

    id: int | None = None
    uuid: str | None = None
    media_type: MediaType | None = None
    title: str = ""
    release_date: date | None = None
    release_year: int | None = None
    data: T
    sync_clients: SyncClients = Field(default_factory=SyncClients)
    external_ids: ExternalIDs = Field(default_factory=ExternalIDs)
    stream_url: str | None = None
    download_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _align_with_payload(self) -> "MediaRecord[T]":
        expected = type(self.data).media_type
        if self.media_type is None:
            self.media_type = expected
        elif self.media_type != expected:
            raise ValueError(
                f"media_type {self.media_type.value} does not match payload type {expected.value}"
            )
        details = self.data.details
        if not self.title:
            self.title = details.title
        if self.release_date is None:
            self.release_date = details.release_date
        if self.release_year is None:
            self.release_year = self.release_date.year if self.release_date else details.release_year
        self.external_ids.merge(details.external_ids)
        return self

    def client_item_id(self, client_id: int) -> str:
        return self.sync_clients.get_client_item_id(client_id)


class MediaItemRead(Timestamped):
    """Persisted media item returned by the API."""
    uuid: str
    media_type: MediaType
    title: str
    release_date: date | None = None
    release_year: int | None = None
    stream_url: str | None = None
    download_url: str | None = None
    sync_clients: list[SyncClient] = Field(default_factory=list)
    external_ids: list[ExternalID] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)


class MediaItemCreate(BaseModel):
    """Payload for creating a media item directly."""
    media_type: MediaType
    title: str | None = None
    release_date: date | None = None
    release_year: int | None = None
    stream_url: str | None = None
    download_url: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    external_ids: list[ExternalID] = Field(default_factory=list)
    sync_clients: list[SyncClient] = Field(default_factory=list)


class MediaItemUpdate(BaseModel):
    """Partial update for a media item; the media type is immutable."""
    title: str | None = None
    release_date: date | None = None
    release_year: int | None = None
    stream_url: str | None = None
    download_url: str | None = None
    data: dict[str, Any] | None = None
    external_ids: list[ExternalID] | None = None


class MediaItemList(BaseModel):
    items: list[MediaItemRead]
    total: int
    limit: int
    offset: int


class LinkClientRequest(BaseModel):
    """Attach a client's item ID to an existing media item."""
    client_id: int
    item_id: str = Field(min_length=1)
    source_client_id: int | None = None


class SyncRunRead(ORMModel):
    """Outcome of a fetch-and-reconcile pass."""
    id: int
    client_id: int
    media_type: MediaType
    status: SyncRunStatus
    fetched: int
    created: int
    updated: int
    linked: int
    skipped: int
    failed: int
    errors: list[dict[str, Any]] | None = None
    error: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
