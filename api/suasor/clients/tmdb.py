"""TMDB metadata adapter; search and lookup only, no library to fetch."""

from __future__ import annotations

from typing import Any

from suasor.clients.base import ClientCapabilities, ClientConfigurationError, MediaClient
from suasor.clients.http import fetch_json
from suasor.models.client import ClientType
from suasor.models.media import MediaType
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import Artwork, ExternalIDs, MediaDetails, Movie, Person, Rating, Series
from suasor.utils.datetime import parse_date

IMAGE_BASE = "https://image.tmdb.org/t/p/original"
SEARCH_KINDS: dict[MediaType, str] = {MediaType.MOVIE: "movie", MediaType.SERIES: "tv"}


class TMDBClient(MediaClient):
    client_type = ClientType.TMDB
    capabilities_template = ClientCapabilities(search=True)

    def validate_config(self) -> None:
        super().validate_config()
        if not (self.config.token or self.config.api_key):
            raise ClientConfigurationError("tmdb client requires an api_key or a read access token")

    def _auth(self) -> tuple[dict[str, str], dict[str, str]]:
        headers: dict[str, str] = {"accept": "application/json"}
        params: dict[str, str] = {}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        else:
            params["api_key"] = self.config.api_key or ""
        return headers, params

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        headers, auth_params = self._auth()
        return await fetch_json(f"{self.config.base_url}{path}", headers=headers, params={**auth_params, **(params or {})})

    async def test_connection(self) -> bool:
        payload = await self._get("/configuration")
        return isinstance(payload, dict) and "images" in payload

    async def search(self, query: str, media_type: MediaType | None = None) -> list[MediaRecord[Any]]:
        """Search movies and TV; other media types have no TMDB equivalent."""
        kinds = [media_type] if media_type else list(SEARCH_KINDS)
        records: list[MediaRecord[Any]] = []
        for kind in kinds:
            if kind not in SEARCH_KINDS:
                continue
            payload = await self._get(f"/search/{SEARCH_KINDS[kind]}", {"query": query, "include_adult": "false"})
            results = payload.get("results", []) if isinstance(payload, dict) else []
            usable = [result for result in results if isinstance(result, dict) and result.get("id")]
            records.extend(self.convert_entries(usable, kind, lambda result, kind=kind: self._record(result, kind)))
        return records

    async def lookup(self, media_type: MediaType, tmdb_id: str) -> MediaRecord[Any]:
        """Fetch full details, credits and external IDs for one title."""
        kind = SEARCH_KINDS.get(media_type)
        if kind is None:
            raise ClientConfigurationError(f"tmdb has no {media_type.value} lookup")
        payload = await self._get(f"/{kind}/{tmdb_id}", {"append_to_response": "credits,external_ids"})
        return self._record(payload, media_type)

    def _record(self, payload: dict[str, Any], media_type: MediaType) -> MediaRecord[Any]:
        tmdb_id = str(payload["id"])
        external = payload.get("external_ids") if isinstance(payload.get("external_ids"), dict) else {}
        ids = ExternalIDs.from_mapping(
            {
                "tmdb": tmdb_id,
                "imdb": payload.get("imdb_id") or external.get("imdb_id"),
                "tvdb": external.get("tvdb_id"),
            }
        )
        poster = payload.get("poster_path")
        backdrop = payload.get("backdrop_path")
        ratings = []
        if payload.get("vote_average") is not None:
            ratings.append(
                Rating(source="tmdb", value=float(payload["vote_average"]), votes=int(payload.get("vote_count") or 0))
            )
        genres = [genre.get("name") for genre in payload.get("genres") or [] if isinstance(genre, dict) and genre.get("name")]
        details = MediaDetails(
            title=payload.get("title") or payload.get("name") or "",
            description=payload.get("overview"),
            release_date=parse_date(payload.get("release_date") or payload.get("first_air_date")),
            genres=genres,
            external_ids=ids,
            language=payload.get("original_language"),
            ratings=ratings,
            artwork=Artwork(
                poster=f"{IMAGE_BASE}{poster}" if poster else None,
                background=f"{IMAGE_BASE}{backdrop}" if backdrop else None,
            ),
        )
        credits = payload.get("credits") if isinstance(payload.get("credits"), dict) else {}
        cast = [
            Person(name=member["name"], role="Actor", character=member.get("character"))
            for member in credits.get("cast", [])[:20]
            if isinstance(member, dict) and member.get("name")
        ]
        if media_type is MediaType.SERIES:
            runtime = (payload.get("episode_run_time") or [None])[0]
            details.duration_seconds = int(runtime) * 60 if runtime else None
            networks = payload.get("networks") or []
            data = Series(
                details=details,
                season_count=int(payload.get("number_of_seasons") or 0),
                episode_count=int(payload.get("number_of_episodes") or 0),
                network=networks[0].get("name") if networks and isinstance(networks[0], dict) else None,
                status=payload.get("status"),
                cast=cast,
            )
        else:
            runtime = payload.get("runtime")
            details.duration_seconds = int(runtime) * 60 if runtime else None
            crew = [
                Person(name=member["name"], role=member.get("job"))
                for member in credits.get("crew", [])
                if isinstance(member, dict) and member.get("name") and member.get("job") in {"Director", "Producer"}
            ]
            data = Movie(details=details, cast=cast, crew=crew)
        return self.make_record(data, tmdb_id)
