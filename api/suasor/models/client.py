"""External client configuration records."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from suasor.db.base_class import Base, TimestampMixin, value_enum


class ClientCategory(str, enum.Enum):
    """Broad role of an external client."""
    MEDIA = "media"
    AUTOMATION = "automation"
    METADATA = "metadata"


class ClientType(str, enum.Enum):
    """Vendors Suasor can talk to."""
    PLEX = "plex"
    JELLYFIN = "jellyfin"
    EMBY = "emby"
    SUBSONIC = "subsonic"
    RADARR = "radarr"
    SONARR = "sonarr"
    LIDARR = "lidarr"
    TMDB = "tmdb"

    @property
    def category(self) -> ClientCategory:
        if self in {ClientType.RADARR, ClientType.SONARR, ClientType.LIDARR}:
            return ClientCategory.AUTOMATION
        if self is ClientType.TMDB:
            return ClientCategory.METADATA
        return ClientCategory.MEDIA


class Client(TimestampMixin, Base):
    """Configured connection to an external client.

    Credentials live in ``encrypted_secret`` as a Fernet token; see
    ``suasor.services.credential_vault``.
    """

    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("client_type", "name", name="uq_client_type_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    client_type: Mapped[ClientType] = mapped_column(
        value_enum(ClientType, "client_type"),
        nullable=False,
        index=True,
    )
    category: Mapped[ClientCategory] = mapped_column(
        value_enum(ClientCategory, "client_category"),
        nullable=False,
    )
    base_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(255))
    encrypted_secret: Mapped[str] = mapped_column(String(4096), nullable=False, default="")
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_error: Mapped[str | None] = mapped_column(String(500))
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
