"""Media catalog model with an embedded client identity map."""

from __future__ import annotations

import enum
import uuid
from datetime import date

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from suasor.db.base_class import JSON_COMPATIBLE, Base, TimestampMixin, value_enum


class MediaType(str, enum.Enum):
    """Supported media categories for catalog items."""
    MOVIE = "movie"
    SERIES = "series"
    SEASON = "season"
    EPISODE = "episode"
    ARTIST = "artist"
    ALBUM = "album"
    TRACK = "track"
    PLAYLIST = "playlist"
    COLLECTION = "collection"


class MediaItem(TimestampMixin, Base):
    """Canonical media record shared across clients.

    ``sync_clients`` holds the list of ``{client_id, client_type, item_id, ...}``
    entries naming the row in each external client; ``data`` holds the typed
    payload serialized as JSON.
    """
    __tablename__ = "media_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[str] = mapped_column(
        String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4())
    )
    media_type: Mapped[MediaType] = mapped_column(
        value_enum(MediaType, "media_type"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    release_date: Mapped[date | None] = mapped_column(Date)
    release_year: Mapped[int | None] = mapped_column(Integer, index=True)
    stream_url: Mapped[str | None] = mapped_column(String(1024))
    download_url: Mapped[str | None] = mapped_column(String(1024))
    sync_clients: Mapped[list | None] = mapped_column(JSON_COMPATIBLE, default=list)
    external_ids: Mapped[list | None] = mapped_column(JSON_COMPATIBLE, default=list)
    data: Mapped[dict | None] = mapped_column(JSON_COMPATIBLE, default=dict)
