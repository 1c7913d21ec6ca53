"""Jellyfin adapter built on the ``/Users/{id}/Items`` API."""

from __future__ import annotations

import logging
from typing import Any, Callable

from suasor.clients.base import (
    ClientCapabilities,
    ClientConfig,
    ClientConfigurationError,
    MediaClient,
    QueryOptions,
)
from suasor.clients.http import ExternalAPIError, fetch_json
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
    Person,
    Playlist,
    Rating,
    Season,
    Series,
    Track,
)
from suasor.utils.datetime import parse_date, parse_datetime

logger = logging.getLogger("suasor.clients.jellyfin")

TICKS_PER_SECOND = 10_000_000

ITEM_TYPES: dict[MediaType, str] = {
    MediaType.MOVIE: "Movie",
    MediaType.SERIES: "Series",
    MediaType.SEASON: "Season",
    MediaType.EPISODE: "Episode",
    MediaType.ARTIST: "MusicArtist",
    MediaType.ALBUM: "MusicAlbum",
    MediaType.TRACK: "Audio",
    MediaType.PLAYLIST: "Playlist",
    MediaType.COLLECTION: "BoxSet",
}
MEDIA_TYPES_BY_ITEM_TYPE = {value.lower(): key for key, value in ITEM_TYPES.items()}

ITEM_FIELDS = ",".join(
    [
        "ProviderIds",
        "Overview",
        "Genres",
        "Tags",
        "Studios",
        "People",
        "PremiereDate",
        "DateCreated",
        "OfficialRating",
        "CommunityRating",
        "ChildCount",
        "RecursiveItemCount",
    ]
)

MUSICBRAINZ_KEYS: dict[MediaType, str] = {
    MediaType.ARTIST: "musicbrainzartist",
    MediaType.ALBUM: "musicbrainzalbum",
    MediaType.TRACK: "musicbrainztrack",
}


def provider_ids_to_external(provider_ids: Any, media_type: MediaType) -> ExternalIDs:
    """Translate Jellyfin/Emby ``ProviderIds`` into external IDs.

    The MusicBrainz key matching the item's own level becomes ``musicbrainz``;
    other keys are kept under their lowercased provider name.
    """
    ids = ExternalIDs()
    if not isinstance(provider_ids, dict):
        return ids
    musicbrainz_key = MUSICBRAINZ_KEYS.get(media_type)
    for key, value in provider_ids.items():
        if value in (None, ""):
            continue
        normalized = str(key).lower()
        if musicbrainz_key and normalized == musicbrainz_key:
            ids.add_or_update("musicbrainz", str(value))
            continue
        ids.add_or_update(normalized, str(value))
    return ids


class JellyfinClient(MediaClient):
    """Adapter for Jellyfin servers."""
    client_type = ClientType.JELLYFIN
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

    def __init__(self, client_id: int, config: ClientConfig) -> None:
        super().__init__(client_id, config)
        self._user_id: str | None = config.user_id

    def validate_config(self) -> None:
        super().validate_config()
        if not self.config.api_key:
            raise ClientConfigurationError(f"{self.client_type.value} client requires an api_key")

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            "Authorization": f'MediaBrowser Client="Suasor", Token="{self.config.api_key}"',
        }

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await fetch_json(f"{self.config.base_url}{path}", headers=self._headers(), params=params)

    async def _resolve_user_id(self) -> str:
        """Use the configured user, or the first user the server reports."""
        if self._user_id:
            return self._user_id
        users = await self._get("/Users")
        if not isinstance(users, list) or not users or not isinstance(users[0], dict):
            raise ExternalAPIError(f"{self.client_type.value} user lookup failed")
        user_id = users[0].get("Id")
        if not user_id:
            raise ExternalAPIError(f"{self.client_type.value} user missing")
        self._user_id = str(user_id)
        return self._user_id

    async def test_connection(self) -> bool:
        info = await self._get("/System/Info")
        return isinstance(info, dict) and bool(info.get("Id") or info.get("Version"))

    async def _items(self, media_type: MediaType, options: QueryOptions, **extra: str) -> list[dict[str, Any]]:
        """Page through user items of one type, honoring offset and limit."""
        user_id = await self._resolve_user_id()
        collected: list[dict[str, Any]] = []
        start_index = options.offset
        page_size = self.config.page_size
        while True:
            if options.limit is not None:
                remaining = options.limit - len(collected)
                if remaining <= 0:
                    break
                page_size = min(page_size, remaining)
            params: dict[str, str] = {
                "Recursive": "true",
                "IncludeItemTypes": ITEM_TYPES[media_type],
                "Fields": ITEM_FIELDS,
                "StartIndex": str(start_index),
                "Limit": str(page_size),
                **extra,
            }
            if options.query:
                params["SearchTerm"] = options.query
            if options.year is not None:
                params["Years"] = str(options.year)
            if options.favorites_only:
                params["Filters"] = "IsFavorite"
            payload = await self._get(f"/Users/{user_id}/Items", params)
            items = payload.get("Items", []) if isinstance(payload, dict) else []
            total = payload.get("TotalRecordCount") if isinstance(payload, dict) else None
            collected.extend(item for item in items if isinstance(item, dict))
            start_index += page_size
            if not items or total is None or start_index >= int(total):
                break
        return collected

    async def _fetch(self, media_type: MediaType, options: QueryOptions) -> list[MediaRecord[Any]]:
        converter = self._converters()[media_type]
        entries = []
        for item in await self._items(media_type, options):
            if not item.get("Id"):
                logger.debug("Skipping %s item without Id", self.client_type.value)
                continue
            entries.append(item)
        return self.convert_entries(
            entries, media_type, lambda item: self._record(item, media_type, converter), id_key="Id"
        )

    async def get_movies(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.MOVIE, options)

    async def get_series(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.SERIES, options)

    async def get_seasons(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.SEASON, options)

    async def get_episodes(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.EPISODE, options)

    async def get_artists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.ARTIST, options)

    async def get_albums(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.ALBUM, options)

    async def get_tracks(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.TRACK, options)

    async def get_playlists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.PLAYLIST, options)

    async def get_collections(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        return await self._fetch(MediaType.COLLECTION, options)

    async def search(self, query: str, media_type: MediaType | None = None) -> list[MediaRecord[Any]]:
        """Search across all supported item types with ``SearchTerm``."""
        types = [media_type] if media_type else list(ITEM_TYPES)
        user_id = await self._resolve_user_id()
        payload = await self._get(
            f"/Users/{user_id}/Items",
            {
                "Recursive": "true",
                "SearchTerm": query,
                "IncludeItemTypes": ",".join(ITEM_TYPES[item_type] for item_type in types),
                "Fields": ITEM_FIELDS,
                "Limit": str(self.config.page_size),
            },
        )
        converters = self._converters()
        records: list[MediaRecord[Any]] = []
        for item in payload.get("Items", []) if isinstance(payload, dict) else []:
            if not isinstance(item, dict) or not item.get("Id"):
                continue
            item_type = MEDIA_TYPES_BY_ITEM_TYPE.get(str(item.get("Type", "")).lower())
            if item_type is None or item_type not in types:
                continue
            records.extend(
                self.convert_entries(
                    [item],
                    item_type,
                    lambda entry, kind=item_type: self._record(entry, kind, converters[kind]),
                    id_key="Id",
                )
            )
        return records

    def _converters(self) -> dict[MediaType, Callable[[dict[str, Any], MediaDetails], MediaData]]:
        return {
            MediaType.MOVIE: self._movie,
            MediaType.SERIES: self._series,
            MediaType.SEASON: self._season,
            MediaType.EPISODE: self._episode,
            MediaType.ARTIST: self._artist,
            MediaType.ALBUM: self._album,
            MediaType.TRACK: self._track,
            MediaType.PLAYLIST: self._playlist,
            MediaType.COLLECTION: self._collection,
        }

    def _record(
        self,
        item: dict[str, Any],
        media_type: MediaType,
        converter: Callable[[dict[str, Any], MediaDetails], MediaData],
    ) -> MediaRecord[Any]:
        item_id = str(item["Id"])
        data = converter(item, self._details(item, media_type))
        stream_url = None
        if media_type in {MediaType.MOVIE, MediaType.EPISODE}:
            stream_url = f"{self.config.base_url}/Videos/{item_id}/stream?static=true"
        elif media_type is MediaType.TRACK:
            stream_url = f"{self.config.base_url}/Audio/{item_id}/universal"
        download_url = f"{self.config.base_url}/Items/{item_id}/Download" if stream_url else None
        return self.make_record(data, item_id, stream_url=stream_url, download_url=download_url)

    def _details(self, item: dict[str, Any], media_type: MediaType) -> MediaDetails:
        item_id = item.get("Id")
        image_tags = item.get("ImageTags") if isinstance(item.get("ImageTags"), dict) else {}
        user_data = item.get("UserData") if isinstance(item.get("UserData"), dict) else {}
        ticks = item.get("RunTimeTicks")
        ratings = []
        if item.get("CommunityRating") is not None:
            ratings.append(Rating(source="community", value=float(item["CommunityRating"])))
        if item.get("CriticRating") is not None:
            ratings.append(Rating(source="critic", value=float(item["CriticRating"])))
        backdrops = item.get("BackdropImageTags") or []
        return MediaDetails(
            title=item.get("Name") or "",
            description=item.get("Overview"),
            release_date=parse_date(item.get("PremiereDate")),
            release_year=item.get("ProductionYear"),
            added_at=parse_datetime(item.get("DateCreated")),
            genres=[genre for genre in item.get("Genres") or [] if genre],
            tags=[tag for tag in item.get("Tags") or [] if tag],
            studios=[studio.get("Name") for studio in item.get("Studios") or [] if isinstance(studio, dict) and studio.get("Name")],
            external_ids=provider_ids_to_external(item.get("ProviderIds"), media_type),
            content_rating=item.get("OfficialRating"),
            ratings=ratings,
            user_rating=user_data.get("Rating"),
            is_favorite=bool(user_data.get("IsFavorite")),
            duration_seconds=int(ticks) // TICKS_PER_SECOND if ticks else None,
            artwork=Artwork(
                poster=f"{self.config.base_url}/Items/{item_id}/Images/Primary" if "Primary" in image_tags else None,
                background=f"{self.config.base_url}/Items/{item_id}/Images/Backdrop" if backdrops else None,
                logo=f"{self.config.base_url}/Items/{item_id}/Images/Logo" if "Logo" in image_tags else None,
            ),
        )

    @staticmethod
    def _people(item: dict[str, Any], *, cast: bool) -> list[Person]:
        people = []
        for person in item.get("People") or []:
            if not isinstance(person, dict) or not person.get("Name"):
                continue
            is_actor = person.get("Type") == "Actor"
            if is_actor != cast:
                continue
            people.append(Person(name=person["Name"], role=person.get("Type"), character=person.get("Role")))
        return people

    def _movie(self, item: dict[str, Any], details: MediaDetails) -> Movie:
        return Movie(details=details, cast=self._people(item, cast=True), crew=self._people(item, cast=False))

    def _series(self, item: dict[str, Any], details: MediaDetails) -> Series:
        return Series(
            details=details,
            season_count=int(item.get("ChildCount") or 0),
            episode_count=int(item.get("RecursiveItemCount") or 0),
            status=item.get("Status"),
            network=details.studios[0] if details.studios else None,
            rating=item.get("CommunityRating"),
            cast=self._people(item, cast=True),
        )

    def _season(self, item: dict[str, Any], details: MediaDetails) -> Season:
        return Season(
            details=details,
            number=int(item.get("IndexNumber") or 0),
            episode_count=int(item.get("ChildCount") or 0),
            series_name=item.get("SeriesName"),
            series_id=item.get("SeriesId"),
        )

    def _episode(self, item: dict[str, Any], details: MediaDetails) -> Episode:
        return Episode(
            details=details,
            number=int(item.get("IndexNumber") or 0),
            season_number=int(item.get("ParentIndexNumber") or 0),
            series_title=item.get("SeriesName"),
            series_id=item.get("SeriesId"),
            season_id=item.get("SeasonId"),
        )

    def _artist(self, item: dict[str, Any], details: MediaDetails) -> Artist:
        return Artist(
            details=details,
            album_count=int(item.get("ChildCount") or item.get("AlbumCount") or 0),
            track_count=int(item.get("SongCount") or 0),
            biography=item.get("Overview"),
        )

    def _album(self, item: dict[str, Any], details: MediaDetails) -> Album:
        artists = item.get("AlbumArtists") or []
        first = artists[0] if artists and isinstance(artists[0], dict) else {}
        return Album(
            details=details,
            artist_name=item.get("AlbumArtist") or first.get("Name"),
            artist_id=first.get("Id"),
            track_count=int(item.get("ChildCount") or 0),
        )

    def _track(self, item: dict[str, Any], details: MediaDetails) -> Track:
        artist_items = item.get("ArtistItems") or []
        first = artist_items[0] if artist_items and isinstance(artist_items[0], dict) else {}
        artists = item.get("Artists") or []
        return Track(
            details=details,
            number=int(item.get("IndexNumber") or 0),
            disc_number=int(item.get("ParentIndexNumber") or 0),
            album_name=item.get("Album"),
            album_id=item.get("AlbumId"),
            artist_name=first.get("Name") or (artists[0] if artists else None),
            artist_id=first.get("Id"),
        )

    def _playlist(self, item: dict[str, Any], details: MediaDetails) -> Playlist:
        return Playlist(details=details, item_count=int(item.get("ChildCount") or 0))

    def _collection(self, item: dict[str, Any], details: MediaDetails) -> Collection:
        return Collection(
            details=details,
            item_count=int(item.get("ChildCount") or 0),
            collection_type=item.get("CollectionType"),
        )
