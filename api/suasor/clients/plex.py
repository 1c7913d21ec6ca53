"""Plex adapter over the library section API."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from suasor.clients.base import (
    ClientCapabilities,
    ClientConfigurationError,
    MediaClient,
    QueryOptions,
)
from suasor.clients.http import fetch_json
from suasor.models.client import ClientType
from suasor.models.media import MediaType
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import (
    Album,
    Artist,
    Artwork,
    Collection,
    Episode,
    ExternalIDs,
    MediaData,
    MediaDetails,
    Movie,
    Playlist,
    Rating,
    Season,
    Series,
    Track,
)
from suasor.utils.datetime import from_timestamp, parse_date

logger = logging.getLogger("suasor.clients.plex")

PLEX_TYPES: dict[MediaType, tuple[str, str]] = {
    MediaType.MOVIE: ("movie", "1"),
    MediaType.SERIES: ("show", "2"),
    MediaType.SEASON: ("show", "3"),
    MediaType.EPISODE: ("show", "4"),
    MediaType.ARTIST: ("artist", "8"),
    MediaType.ALBUM: ("artist", "9"),
    MediaType.TRACK: ("artist", "10"),
}
HUB_TYPES: dict[str, MediaType] = {
    "movie": MediaType.MOVIE,
    "show": MediaType.SERIES,
    "season": MediaType.SEASON,
    "episode": MediaType.EPISODE,
    "artist": MediaType.ARTIST,
    "album": MediaType.ALBUM,
    "track": MediaType.TRACK,
    "playlist": MediaType.PLAYLIST,
    "collection": MediaType.COLLECTION,
}

GUID_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"com\.plexapp\.agents\.imdb://(?P<id>tt\d+)", re.I), "imdb"),
    (re.compile(r"com\.plexapp\.agents\.themoviedb://(?P<id>\d+)", re.I), "tmdb"),
    (re.compile(r"com\.plexapp\.agents\.thetvdb://(?P<id>\d+)", re.I), "tvdb"),
    (re.compile(r"imdb://(?:title/)?(?P<id>tt\d+)", re.I), "imdb"),
    (re.compile(r"tmdb://(?:(?:movie|show|tv)/)?(?P<id>\d+)", re.I), "tmdb"),
    (re.compile(r"tvdb://(?:(?:series|show|tv)/)?(?P<id>\d+)", re.I), "tvdb"),
    (re.compile(r"mbid://(?P<id>[0-9a-f-]{36})", re.I), "musicbrainz"),
    (re.compile(r"com\.plexapp\.agents\.musicbrainz://(?:\w+/)?(?P<id>[0-9a-f-]{36})", re.I), "musicbrainz"),
    (re.compile(r"^plex://(?P<id>.+)$", re.I), "plex"),
]


def guids_to_external(entry: dict[str, Any]) -> ExternalIDs:
    """Collect external IDs from the ``guid`` string and the ``Guid`` list."""
    candidates: list[str] = []
    primary = entry.get("guid")
    if isinstance(primary, str):
        candidates.append(primary)
    guids = entry.get("Guid")
    if isinstance(guids, list):
        for guid in guids:
            if isinstance(guid, dict):
                value = guid.get("id") or guid.get("Id")
                if value:
                    candidates.append(str(value))
    ids = ExternalIDs()
    for candidate in candidates:
        for pattern, source in GUID_PATTERNS:
            match = pattern.search(candidate)
            if match:
                ids.add_or_update(source, match.group("id"))
                break
    return ids


class PlexClient(MediaClient):
    """Adapter for Plex Media Server."""
    client_type = ClientType.PLEX
    capabilities_template = ClientCapabilities(
        movies=True,
        series=True,
        episodes=True,
        music=True,
        tracks=True,
        playlists=True,
        collections=True,
        search=True,
    )

    def validate_config(self) -> None:
        super().validate_config()
        if not (self.config.token or self.config.api_key):
            raise ClientConfigurationError("plex client requires a token")

    def _headers(self) -> dict[str, str]:
        return {"accept": "application/json", "X-Plex-Token": self.config.token or self.config.api_key or ""}

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = await fetch_json(f"{self.config.base_url}{path}", headers=self._headers(), params=params)
        if not isinstance(payload, dict):
            return {}
        container = payload.get("MediaContainer")
        return container if isinstance(container, dict) else {}

    async def test_connection(self) -> bool:
        container = await self._get("/identity")
        return bool(container.get("machineIdentifier"))

    async def _sections(self, section_type: str) -> list[dict[str, Any]]:
        container = await self._get("/library/sections")
        return [
            section
            for section in container.get("Directory", [])
            if isinstance(section, dict) and section.get("type") == section_type and section.get("key")
        ]

    async def _paged(self, path: str, options: QueryOptions, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        """Page through ``Metadata`` entries with the Plex container headers."""
        collected: list[dict[str, Any]] = []
        start_index = options.offset
        while True:
            page_size = self.config.page_size
            if options.limit is not None:
                page_size = min(page_size, options.limit - len(collected))
                if page_size <= 0:
                    break
            container = await self._get(
                path,
                {
                    **(params or {}),
                    "X-Plex-Container-Start": str(start_index),
                    "X-Plex-Container-Size": str(page_size),
                },
            )
            metadata = [entry for entry in container.get("Metadata", []) if isinstance(entry, dict)]
            collected.extend(metadata)
            start_index += page_size
            total_size = container.get("totalSize")
            if not metadata or total_size is None or start_index >= int(total_size):
                break
        return collected

    async def _library(self, media_type: MediaType, options: QueryOptions) -> list[MediaRecord[Any]]:
        section_type, plex_type = PLEX_TYPES[media_type]
        params = {"type": plex_type}
        if options.query:
            params["title"] = options.query
        if options.year is not None:
            params["year"] = str(options.year)
        records: list[MediaRecord[Any]] = []
        for section in await self._sections(section_type):
            entries = await self._paged(f"/library/sections/{section['key']}/all", options, params)
            records.extend(self._convert(entries, media_type))
        return records

    def _convert(self, entries: list[dict[str, Any]], media_type: MediaType) -> list[MediaRecord[Any]]:
        converter = self._converters()[media_type]
        keyed = []
        for entry in entries:
            if not entry.get("ratingKey"):
                logger.debug("Skipping plex entry without ratingKey")
                continue
            keyed.append(entry)
        return self.convert_entries(
            keyed, media_type, lambda entry: self._record(entry, media_type, converter), id_key="ratingKey"
        )

    async def get_movies(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._library(MediaType.MOVIE, options)

    async def get_series(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._library(MediaType.SERIES, options)

    async def get_seasons(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._library(MediaType.SEASON, options)

    async def get_episodes(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._library(MediaType.EPISODE, options)

    async def get_artists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._library(MediaType.ARTIST, options)

    async def get_albums(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._library(MediaType.ALBUM, options)

    async def get_tracks(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._library(MediaType.TRACK, options)

    async def get_playlists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        entries = await self._paged("/playlists", options)
        return self._convert(entries, MediaType.PLAYLIST)

    async def get_collections(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        records: list[MediaRecord[Any]] = []
        container = await self._get("/library/sections")
        for section in container.get("Directory", []):
            if not isinstance(section, dict) or not section.get("key"):
                continue
            entries = await self._paged(f"/library/sections/{section['key']}/collections", options)
            records.extend(self._convert(entries, MediaType.COLLECTION))
        return records

    async def search(self, query: str, media_type: MediaType | None = None) -> list[MediaRecord[Any]]:
        container = await self._get("/hubs/search", {"query": query, "limit": str(self.config.page_size)})
        records: list[MediaRecord[Any]] = []
        for hub in container.get("Hub", []):
            if not isinstance(hub, dict):
                continue
            hub_type = HUB_TYPES.get(str(hub.get("type", "")))
            if hub_type is None or (media_type and hub_type is not media_type):
                continue
            entries = [entry for entry in hub.get("Metadata", []) if isinstance(entry, dict)]
            records.extend(self._convert(entries, hub_type))
        return records

    def _converters(self) -> dict[MediaType, Callable[[dict[str, Any], MediaDetails], MediaData]]:
        return {
            MediaType.MOVIE: lambda entry, details: Movie(details=details),
            MediaType.SERIES: self._series,
            MediaType.SEASON: self._season,
            MediaType.EPISODE: self._episode,
            MediaType.ARTIST: lambda entry, details: Artist(
                details=details, album_count=int(entry.get("childCount") or 0), biography=entry.get("summary")
            ),
            MediaType.ALBUM: self._album,
            MediaType.TRACK: self._track,
            MediaType.PLAYLIST: lambda entry, details: Playlist(
                details=details, item_count=int(entry.get("leafCount") or 0)
            ),
            MediaType.COLLECTION: lambda entry, details: Collection(
                details=details,
                item_count=int(entry.get("childCount") or 0),
                collection_type=entry.get("subtype"),
            ),
        }

    def _record(
        self,
        entry: dict[str, Any],
        media_type: MediaType,
        converter: Callable[[dict[str, Any], MediaDetails], MediaData],
    ) -> MediaRecord[Any]:
        rating_key = str(entry["ratingKey"])
        data = converter(entry, self._details(entry))
        part_key = _first_part_key(entry)
        stream_url = f"{self.config.base_url}{part_key}" if part_key else None
        download_url = f"{stream_url}?download=1" if stream_url else None
        return self.make_record(data, rating_key, stream_url=stream_url, download_url=download_url)

    def _details(self, entry: dict[str, Any]) -> MediaDetails:
        ratings = []
        if entry.get("rating") is not None:
            ratings.append(Rating(source="critic", value=float(entry["rating"])))
        if entry.get("audienceRating") is not None:
            ratings.append(Rating(source="audience", value=float(entry["audienceRating"])))
        duration_ms = entry.get("duration")
        thumb = entry.get("thumb")
        art = entry.get("art")
        return MediaDetails(
            title=entry.get("title") or "",
            description=entry.get("summary"),
            release_date=parse_date(entry.get("originallyAvailableAt")),
            release_year=entry.get("year"),
            added_at=from_timestamp(entry.get("addedAt")),
            updated_at=from_timestamp(entry.get("updatedAt")),
            genres=_tags(entry.get("Genre")),
            tags=_tags(entry.get("Label")),
            studios=[entry["studio"]] if entry.get("studio") else [],
            external_ids=guids_to_external(entry),
            content_rating=entry.get("contentRating"),
            ratings=ratings,
            user_rating=entry.get("userRating"),
            duration_seconds=int(duration_ms) // 1000 if duration_ms else None,
            artwork=Artwork(
                poster=f"{self.config.base_url}{thumb}" if thumb else None,
                background=f"{self.config.base_url}{art}" if art else None,
            ),
        )

    def _series(self, entry: dict[str, Any], details: MediaDetails) -> Series:
        return Series(
            details=details,
            season_count=int(entry.get("childCount") or 0),
            episode_count=int(entry.get("leafCount") or 0),
            network=entry.get("studio"),
            rating=entry.get("rating"),
        )

    def _season(self, entry: dict[str, Any], details: MediaDetails) -> Season:
        return Season(
            details=details,
            number=int(entry.get("index") or 0),
            episode_count=int(entry.get("leafCount") or 0),
            series_name=entry.get("parentTitle"),
            series_id=entry.get("parentRatingKey"),
        )

    def _episode(self, entry: dict[str, Any], details: MediaDetails) -> Episode:
        return Episode(
            details=details,
            number=int(entry.get("index") or 0),
            season_number=int(entry.get("parentIndex") or 0),
            series_title=entry.get("grandparentTitle"),
            series_id=entry.get("grandparentRatingKey"),
            season_id=entry.get("parentRatingKey"),
        )

    def _album(self, entry: dict[str, Any], details: MediaDetails) -> Album:
        return Album(
            details=details,
            artist_name=entry.get("parentTitle"),
            artist_id=entry.get("parentRatingKey"),
            track_count=int(entry.get("leafCount") or 0),
        )

    def _track(self, entry: dict[str, Any], details: MediaDetails) -> Track:
        return Track(
            details=details,
            number=int(entry.get("index") or 0),
            disc_number=int(entry.get("parentIndex") or 0),
            album_name=entry.get("parentTitle"),
            album_id=entry.get("parentRatingKey"),
            artist_name=entry.get("grandparentTitle"),
            artist_id=entry.get("grandparentRatingKey"),
        )


def _tags(values: Any) -> list[str]:
    if not isinstance(values, list):
        return []
    return [str(value["tag"]) for value in values if isinstance(value, dict) and value.get("tag")]


def _first_part_key(entry: dict[str, Any]) -> str | None:
    for media in entry.get("Media") or []:
        if not isinstance(media, dict):
            continue
        for part in media.get("Part") or []:
            if isinstance(part, dict) and part.get("key"):
                return str(part["key"])
    return None
