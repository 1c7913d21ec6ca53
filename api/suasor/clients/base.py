"""Base adapter contract shared by all external clients.

Invariants:
- Every record an adapter returns carries exactly one ``SyncClients`` entry,
  naming the adapter's own ``client_id`` and the vendor's item ID.
- Capabilities are fixed at construction; ``fetch_items`` refuses media types
  the capabilities do not cover.
- A vendor item that cannot be converted is logged, recorded in
  ``conversion_skips`` and left out; the rest of the page is still returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Iterable

from suasor.core.config import settings
from suasor.models.client import ClientType
from suasor.models.media import MediaType
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import MediaData
from suasor.schema.sync_clients import SyncClients, SyncStatus

logger = logging.getLogger("suasor.clients")

# Raised by converters on data the vendor sent in an unexpected shape.
CONVERSION_ERRORS = (ValueError, TypeError, KeyError, AttributeError)


class UnsupportedMediaTypeError(Exception):
    """Raised when a client cannot serve the requested media type."""

    def __init__(self, client_type: ClientType | str, media_type: MediaType | str) -> None:
        client_label = getattr(client_type, "value", client_type)
        media_label = getattr(media_type, "value", media_type)
        super().__init__(f"{client_label} does not support {media_label}")
        self.client_type = client_type
        self.media_type = media_type


class ClientConfigurationError(Exception):
    """Raised when a client is missing configuration needed to connect."""


@dataclass(slots=True)
class ClientConfig:
    """Connection details for one configured client."""
    base_url: str
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    token: str | None = None
    user_id: str | None = None
    page_size: int = field(default_factory=lambda: settings.client_page_size)

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")


@dataclass(frozen=True, slots=True)
class ClientCapabilities:
    """Media families a client can serve, declared up front."""
    movies: bool = False
    series: bool = False
    episodes: bool = False
    music: bool = False
    tracks: bool = False
    playlists: bool = False
    collections: bool = False
    search: bool = False

    def media_types(self) -> list[MediaType]:
        types: list[MediaType] = []
        if self.movies:
            types.append(MediaType.MOVIE)
        if self.series:
            types.append(MediaType.SERIES)
        if self.episodes:
            types.extend([MediaType.SEASON, MediaType.EPISODE])
        if self.music:
            types.extend([MediaType.ARTIST, MediaType.ALBUM])
        if self.tracks:
            types.append(MediaType.TRACK)
        if self.playlists:
            types.append(MediaType.PLAYLIST)
        if self.collections:
            types.append(MediaType.COLLECTION)
        return types

    def supports(self, media_type: MediaType) -> bool:
        return media_type in self.media_types()

    def as_dict(self) -> dict[str, Any]:
        return {
            "movies": self.movies,
            "series": self.series,
            "episodes": self.episodes,
            "music": self.music,
            "tracks": self.tracks,
            "playlists": self.playlists,
            "collections": self.collections,
            "search": self.search,
            "media_types": self.media_types(),
        }


@dataclass(slots=True)
class ConversionSkip:
    """A vendor item left out because it could not be converted."""
    item_id: str
    media_type: MediaType
    error: str

    def as_dict(self) -> dict[str, Any]:
        return {"client_item_id": self.item_id, "media_type": self.media_type.value, "error": self.error}


@dataclass(slots=True)
class QueryOptions:
    """Paging and filter options passed to client fetches."""
    limit: int | None = None
    offset: int = 0
    query: str | None = None
    year: int | None = None
    favorites_only: bool = False


class MediaClient:
    """Abstract client adapter for an external media system."""
    client_type: ClassVar[ClientType]
    capabilities_template: ClassVar[ClientCapabilities] = ClientCapabilities()

    def __init__(self, client_id: int, config: ClientConfig) -> None:
        self.client_id = client_id
        self.config = config
        self.conversion_skips: list[ConversionSkip] = []
        self.validate_config()
        self.capabilities = self.build_capabilities()

    def validate_config(self) -> None:
        """Check that the configuration has what the adapter needs."""
        if not self.config.base_url:
            raise ClientConfigurationError(f"{self.client_type.value} client requires a base_url")

    def build_capabilities(self) -> ClientCapabilities:
        return self.capabilities_template

    def supports(self, media_type: MediaType) -> bool:
        return self.capabilities.supports(media_type)

    async def fetch_items(
        self, media_type: MediaType, options: QueryOptions | None = None
    ) -> list[MediaRecord[Any]]:
        """Fetch all items of ``media_type`` in vendor order."""
        if not self.supports(media_type):
            raise UnsupportedMediaTypeError(self.client_type, media_type)
        self.conversion_skips = []
        handlers: dict[MediaType, Callable[[QueryOptions], Awaitable[list[MediaRecord[Any]]]]] = {
            MediaType.MOVIE: self.get_movies,
            MediaType.SERIES: self.get_series,
            MediaType.SEASON: self.get_seasons,
            MediaType.EPISODE: self.get_episodes,
            MediaType.ARTIST: self.get_artists,
            MediaType.ALBUM: self.get_albums,
            MediaType.TRACK: self.get_tracks,
            MediaType.PLAYLIST: self.get_playlists,
            MediaType.COLLECTION: self.get_collections,
        }
        records = await handlers[media_type](options or QueryOptions())
        return _apply_options(records, options)

    async def get_movies(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.MOVIE)

    async def get_series(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.SERIES)

    async def get_seasons(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.SEASON)

    async def get_episodes(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.EPISODE)

    async def get_artists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.ARTIST)

    async def get_albums(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.ALBUM)

    async def get_tracks(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.TRACK)

    async def get_playlists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.PLAYLIST)

    async def get_collections(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        raise UnsupportedMediaTypeError(self.client_type, MediaType.COLLECTION)

    async def search(
        self, query: str, media_type: MediaType | None = None
    ) -> list[MediaRecord[Any]]:
        """Search the client catalog; ``media_type`` narrows the result."""
        if not self.capabilities.search:
            raise UnsupportedMediaTypeError(self.client_type, media_type or "search")
        records: list[MediaRecord[Any]] = []
        for item_type in [media_type] if media_type else self.capabilities.media_types():
            records.extend(await self.fetch_items(item_type, QueryOptions(query=query)))
        return records

    async def test_connection(self) -> bool:
        """Return True when the client answers with the configured credentials."""
        raise NotImplementedError

    def convert_entries(
        self,
        entries: Iterable[dict[str, Any]],
        media_type: MediaType,
        convert: Callable[[dict[str, Any]], MediaRecord[Any]],
        *,
        id_key: str = "id",
    ) -> list[MediaRecord[Any]]:
        """Convert vendor entries one by one, skipping the ones that do not fit."""
        records: list[MediaRecord[Any]] = []
        for entry in entries:
            try:
                records.append(convert(entry))
            except CONVERSION_ERRORS as exc:
                item_id = str(entry.get(id_key) or "")
                logger.warning(
                    "Skipping malformed %s item %s from %s client %s: %s",
                    media_type.value,
                    item_id or "<unknown>",
                    self.client_type.value,
                    self.client_id,
                    exc,
                )
                self.conversion_skips.append(ConversionSkip(item_id, media_type, str(exc)))
        return records

    def make_record(
        self,
        data: MediaData,
        item_id: str,
        *,
        stream_url: str | None = None,
        download_url: str | None = None,
    ) -> MediaRecord[Any]:
        """Wrap a payload with this client's single identity entry."""
        return MediaRecord[type(data)](  # type: ignore[misc]
            data=data,
            sync_clients=SyncClients.single(
                self.client_id, self.client_type, str(item_id), status=SyncStatus.SUCCESS
            ),
            stream_url=stream_url,
            download_url=download_url,
        )


def _apply_options(records: list[MediaRecord[Any]], options: QueryOptions | None) -> list[MediaRecord[Any]]:
    """Apply filters that vendors do not support server-side."""
    if options is None:
        return records
    filtered = records
    if options.year is not None:
        filtered = [record for record in filtered if record.release_year == options.year]
    if options.favorites_only:
        filtered = [record for record in filtered if record.data.details.is_favorite]
    if options.query:
        needle = options.query.casefold()
        filtered = [record for record in filtered if needle in record.title.casefold()]
    return filtered
