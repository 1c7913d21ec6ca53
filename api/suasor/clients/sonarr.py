"""Sonarr adapter: the managed series library."""

from __future__ import annotations

from typing import Any

from suasor.clients.arr import ArrClient, arr_ratings, images_to_artwork, slice_page
from suasor.clients.base import ClientCapabilities, QueryOptions
from suasor.models.client import ClientType
from suasor.models.media import MediaType
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import ExternalIDs, MediaDetails, Series
from suasor.utils.datetime import parse_date, parse_datetime


class SonarrClient(ArrClient):
    client_type = ClientType.SONARR
    capabilities_template = ClientCapabilities(series=True, search=True)

    async def get_series(self, options: QueryOptions) -> list[MediaRecord[Any]]:
        entries = await self._list("/series")
        return self.convert_entries(slice_page(entries, options.offset, options.limit), MediaType.SERIES, self._series)

    def _series(self, entry: dict[str, Any]) -> MediaRecord[Any]:
        ids = ExternalIDs.from_mapping(
            {"tvdb": entry.get("tvdbId"), "imdb": entry.get("imdbId"), "tmdb": entry.get("tmdbId")}
        )
        statistics = entry.get("statistics") if isinstance(entry.get("statistics"), dict) else {}
        runtime = entry.get("runtime")
        details = MediaDetails(
            title=entry.get("title") or "",
            description=entry.get("overview"),
            release_date=parse_date(entry.get("firstAired")),
            release_year=entry.get("year") or None,
            added_at=parse_datetime(entry.get("added")),
            genres=list(entry.get("genres") or []),
            external_ids=ids,
            content_rating=entry.get("certification"),
            ratings=arr_ratings(entry.get("ratings")),
            duration_seconds=int(runtime) * 60 if runtime else None,
            artwork=images_to_artwork(entry.get("images")),
        )
        data = Series(
            details=details,
            season_count=int(statistics.get("seasonCount") or len(entry.get("seasons") or [])),
            episode_count=int(statistics.get("episodeCount") or 0),
            network=entry.get("network"),
            status=entry.get("status"),
        )
        return self.make_record(data, str(entry["id"]))
