"""Radarr adapter: the managed movie library."""

from __future__ import annotations

from typing import Any

from suasor.clients.arr import ArrClient, arr_ratings, images_to_artwork, slice_page
from suasor.clients.base import ClientCapabilities, QueryOptions
from suasor.models.client import ClientType
from suasor.models.media import MediaType
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import ExternalIDs, MediaDetails, Movie
from suasor.utils.datetime import parse_date, parse_datetime


class RadarrClient(ArrClient):
    client_type = ClientType.RADARR
    capabilities_template = ClientCapabilities(movies=True, search=True)

    async def get_movies(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        entries = await self._list("/movie")
        return self.convert_entries(slice_page(entries, options.offset, options.limit), MediaType.MOVIE, self._movie)

    def _movie(self, entry: dict[str, Any]) -> MediaRecord[Any]:
        ids = ExternalIDs.from_mapping({"tmdb": entry.get("tmdbId"), "imdb": entry.get("imdbId")})
        runtime = entry.get("runtime")
        release = entry.get("inCinemas") or entry.get("digitalRelease") or entry.get("physicalRelease")
        details = MediaDetails(
            title=entry.get("title") or "",
            description=entry.get("overview"),
            release_date=parse_date(release),
            release_year=entry.get("year") or None,
            added_at=parse_datetime(entry.get("added")),
            genres=list(entry.get("genres") or []),
            studios=[entry["studio"]] if entry.get("studio") else [],
            external_ids=ids,
            content_rating=entry.get("certification"),
            ratings=arr_ratings(entry.get("ratings")),
            duration_seconds=int(runtime) * 60 if runtime else None,
            artwork=images_to_artwork(entry.get("images")),
        )
        trailer = entry.get("youTubeTrailerId")
        data = Movie(
            details=details,
            trailer_url=f"https://www.youtube.com/watch?v={trailer}" if trailer else None,
        )
        return self.make_record(data, str(entry["id"]))
