"""Subsonic (and Navidrome/Airsonic) adapter using token+salt authentication."""

from __future__ import annotations

import hashlib
import secrets
from typing import Any, Callable

from suasor.clients.base import (
    ClientCapabilities,
    ClientConfigurationError,
    MediaClient,
    QueryOptions,
)
from suasor.clients.http import ClientAuthError, ExternalAPIError, fetch_json
from suasor.models.client import ClientType
from suasor.models.media import MediaType
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import Album, Artist, Artwork, ExternalIDs, MediaDetails, Playlist, Track
from suasor.utils.datetime import parse_datetime

API_VERSION = "1.16.1"
CLIENT_NAME = "suasor"
MAX_ALBUM_PAGE = 500
AUTH_ERROR_CODES = {40, 41, 50}


def token_params(username: str, password: str, salt: str | None = None) -> dict[str, str]:
    """Build the ``u``/``t``/``s`` query parameters: ``t = md5(password + salt)``."""
    salt = salt or secrets.token_hex(8)
    token = hashlib.md5(f"{password}{salt}".encode("utf-8")).hexdigest()
    return {"u": username, "t": token, "s": salt, "v": API_VERSION, "c": CLIENT_NAME, "f": "json"}


class SubsonicClient(MediaClient):
    """Adapter for Subsonic-compatible music servers."""
    client_type = ClientType.SUBSONIC
    capabilities_template = ClientCapabilities(music=True, tracks=True, playlists=True, search=True)

    def validate_config(self) -> None:
        super().validate_config()
        if not self.config.username or not self.config.password:
            raise ClientConfigurationError("subsonic client requires a username and password")

    async def _call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Call ``/rest/<method>`` and unwrap ``subsonic-response``."""
        payload = await fetch_json(
            f"{self.config.base_url}/rest/{method}",
            params={**token_params(self.config.username or "", self.config.password or ""), **(params or {})},
        )
        body = payload.get("subsonic-response") if isinstance(payload, dict) else None
        if not isinstance(body, dict):
            raise ExternalAPIError(f"subsonic {method} returned an invalid response")
        if body.get("status") != "ok":
            error = body.get("error") if isinstance(body.get("error"), dict) else {}
            code = error.get("code")
            message = error.get("message") or "unknown error"
            if code in AUTH_ERROR_CODES:
                raise ClientAuthError(f"subsonic authentication failed: {message}")
            raise ExternalAPIError(f"subsonic {method} failed ({code}): {message}")
        return body

    async def test_connection(self) -> bool:
        await self._call("ping")
        return True

    async def get_artists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        body = await self._call("getArtists")
        entries: list[dict[str, Any]] = []
        for index in (body.get("artists") or {}).get("index", []):
            entries.extend(artist for artist in index.get("artist", []) if isinstance(artist, dict))
        end = options.offset + options.limit if options.limit is not None else None
        return self._convert(entries[options.offset:end], MediaType.ARTIST, self._artist)

    async def get_albums(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        collected: list[dict[str, Any]] = []
        offset = options.offset
        while True:
            size = min(self.config.page_size, MAX_ALBUM_PAGE)
            if options.limit is not None:
                size = min(size, options.limit - len(collected))
                if size <= 0:
                    break
            params: dict[str, Any] = {"type": "alphabeticalByName", "size": size, "offset": offset}
            if options.favorites_only:
                params["type"] = "starred"
            body = await self._call("getAlbumList2", params)
            albums = [album for album in (body.get("albumList2") or {}).get("album", []) if isinstance(album, dict)]
            collected.extend(albums)
            offset += size
            if len(albums) < size:
                break
        return self._convert(collected, MediaType.ALBUM, self._album)

    async def get_tracks(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        collected: list[dict[str, Any]] = []
        offset = options.offset
        while True:
            size = self.config.page_size
            if options.limit is not None:
                size = min(size, options.limit - len(collected))
                if size <= 0:
                    break
            body = await self._call(
                "search3",
                {
                    "query": options.query or "",
                    "artistCount": 0,
                    "albumCount": 0,
                    "songCount": size,
                    "songOffset": offset,
                },
            )
            songs = [song for song in (body.get("searchResult3") or {}).get("song", []) if isinstance(song, dict)]
            collected.extend(songs)
            offset += size
            if len(songs) < size:
                break
        return self._convert(collected, MediaType.TRACK, self._track)

    async def get_playlists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        body = await self._call("getPlaylists")
        entries = [entry for entry in (body.get("playlists") or {}).get("playlist", []) if isinstance(entry, dict)]
        end = options.offset + options.limit if options.limit is not None else None
        return self._convert(entries[options.offset:end], MediaType.PLAYLIST, self._playlist)

    async def search(self, query: str, media_type: MediaType | None = None) -> list[MediaRecord[Any]]:
        count = self.config.page_size
        body = await self._call(
            "search3", {"query": query, "artistCount": count, "albumCount": count, "songCount": count}
        )
        result = body.get("searchResult3") or {}
        records: list[MediaRecord[Any]] = []
        if media_type in (None, MediaType.ARTIST):
            records.extend(self._convert(result.get("artist", []), MediaType.ARTIST, self._artist))
        if media_type in (None, MediaType.ALBUM):
            records.extend(self._convert(result.get("album", []), MediaType.ALBUM, self._album))
        if media_type in (None, MediaType.TRACK):
            records.extend(self._convert(result.get("song", []), MediaType.TRACK, self._track))
        return records

    def _convert(
        self,
        entries: list[Any],
        media_type: MediaType,
        convert: Callable[[dict[str, Any]], MediaRecord[Any]],
    ) -> list[MediaRecord[Any]]:
        usable = [entry for entry in entries if isinstance(entry, dict) and entry.get("id")]
        return self.convert_entries(usable, media_type, convert)

    def _details(self, entry: dict[str, Any], *, title_key: str = "name") -> MediaDetails:
        ids = ExternalIDs()
        if entry.get("musicBrainzId"):
            ids.add_or_update("musicbrainz", str(entry["musicBrainzId"]))
        cover = entry.get("coverArt")
        genre = entry.get("genre")
        return MediaDetails(
            title=entry.get(title_key) or entry.get("name") or "",
            release_year=entry.get("year"),
            added_at=parse_datetime(entry.get("created")),
            genres=[genre] if genre else [],
            external_ids=ids,
            user_rating=entry.get("userRating"),
            duration_seconds=entry.get("duration"),
            is_favorite=bool(entry.get("starred")),
            artwork=Artwork(poster=f"{self.config.base_url}/rest/getCoverArt?id={cover}" if cover else None),
        )

    def _artist(self, entry: dict[str, Any]) -> MediaRecord[Any]:
        data = Artist(details=self._details(entry), album_count=int(entry.get("albumCount") or 0))
        return self.make_record(data, str(entry["id"]))

    def _album(self, entry: dict[str, Any]) -> MediaRecord[Any]:
        data = Album(
            details=self._details(entry),
            artist_name=entry.get("artist"),
            artist_id=entry.get("artistId"),
            track_count=int(entry.get("songCount") or 0),
        )
        return self.make_record(data, str(entry["id"]))

    def _track(self, entry: dict[str, Any]) -> MediaRecord[Any]:
        item_id = str(entry["id"])
        data = Track(
            details=self._details(entry, title_key="title"),
            number=int(entry.get("track") or 0),
            disc_number=int(entry.get("discNumber") or 0),
            album_name=entry.get("album"),
            album_id=entry.get("albumId"),
            artist_name=entry.get("artist"),
            artist_id=entry.get("artistId"),
        )
        return self.make_record(
            data,
            item_id,
            stream_url=f"{self.config.base_url}/rest/stream?id={item_id}",
            download_url=f"{self.config.base_url}/rest/download?id={item_id}",
        )

    def _playlist(self, entry: dict[str, Any]) -> MediaRecord[Any]:
        data = Playlist(
            details=self._details(entry),
            item_count=int(entry.get("songCount") or 0),
            owner=entry.get("owner"),
            is_public=bool(entry.get("public")),
        )
        return self.make_record(data, str(entry["id"]))
