"""SQLAlchemy ORM models for the Suasor API."""

from suasor.models.client import Client, ClientCategory, ClientType
from suasor.models.media import MediaItem, MediaType
from suasor.models.sync_run import SyncRun, SyncRunStatus

__all__ = [
    "Client",
    "ClientCategory",
    "ClientType",
    "MediaItem",
    "MediaType",
    "SyncRun",
    "SyncRunStatus",
]
