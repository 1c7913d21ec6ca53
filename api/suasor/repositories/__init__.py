"""Typed data access for the media catalog."""

from suasor.repositories.media_items import (
    MediaItemNotFoundError,
    MediaItemRepository,
    RepositoryError,
    repository_for,
)

__all__ = ["MediaItemNotFoundError", "MediaItemRepository", "RepositoryError", "repository_for"]
