"""Lidarr adapter: managed artists and albums."""

from __future__ import annotations

from typing import Any

from suasor.clients.arr import ArrClient, arr_ratings, images_to_artwork, slice_page
from suasor.clients.base import ClientCapabilities, QueryOptions
from suasor.models.client import ClientType
from suasor.models.media import MediaType
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import Album, Artist, ExternalIDs, MediaDetails
from suasor.utils.datetime import parse_date, parse_datetime


class LidarrClient(ArrClient):
    client_type = ClientType.LIDARR
    api_version = "v1"
    capabilities_template = ClientCapabilities(music=True, search=True)

    async def get_artists(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        entries = await self._list("/artist")
        return self.convert_entries(slice_page(entries, options.offset, options.limit), MediaType.ARTIST, self._artist)

    async def get_albums(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        entries = await self._list("/album")
        return self.convert_entries(slice_page(entries, options.offset, options.limit), MediaType.ALBUM, self._album)

    def _artist(self, entry: dict[str, Any]) -> MediaRecord[Any]:
        statistics = entry.get("statistics") if isinstance(entry.get("statistics"), dict) else {}
        details = MediaDetails(
            title=entry.get("artistName") or "",
            description=entry.get("overview"),
            added_at=parse_datetime(entry.get("added")),
            genres=list(entry.get("genres") or []),
            external_ids=ExternalIDs.from_mapping({"musicbrainz": entry.get("foreignArtistId")}),
            ratings=arr_ratings(entry.get("ratings")),
            artwork=images_to_artwork(entry.get("images")),
        )
        data = Artist(
            details=details,
            album_count=int(statistics.get("albumCount") or 0),
            track_count=int(statistics.get("trackCount") or 0),
            biography=entry.get("overview"),
        )
        return self.make_record(data, str(entry["id"]))

    def _album(self, entry: dict[str, Any]) -> MediaRecord[Any]:
        statistics = entry.get("statistics") if isinstance(entry.get("statistics"), dict) else {}
        artist = entry.get("artist") if isinstance(entry.get("artist"), dict) else {}
        details = MediaDetails(
            title=entry.get("title") or "",
            description=entry.get("overview"),
            release_date=parse_date(entry.get("releaseDate")),
            genres=list(entry.get("genres") or []),
            external_ids=ExternalIDs.from_mapping({"musicbrainz": entry.get("foreignAlbumId")}),
            ratings=arr_ratings(entry.get("ratings")),
            duration_seconds=int(entry["duration"]) // 1000 if entry.get("duration") else None,
            artwork=images_to_artwork(entry.get("images")),
        )
        artist_id = entry.get("artistId")
        data = Album(
            details=details,
            artist_name=artist.get("artistName"),
            artist_id=str(artist_id) if artist_id is not None else None,
            track_count=int(statistics.get("trackCount") or 0),
        )
        return self.make_record(data, str(entry["id"]))
