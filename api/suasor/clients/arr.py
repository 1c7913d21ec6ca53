"""Shared plumbing for the Radarr, Sonarr and Lidarr APIs."""

from __future__ import annotations

from typing import Any, ClassVar

from suasor.clients.base import ClientConfigurationError, MediaClient
from suasor.clients.http import fetch_json
from suasor.schema.media_data import Artwork, Rating


class ArrClient(MediaClient):
    """Base adapter for *arr automation tools authenticated with ``X-Api-Key``."""
    api_version: ClassVar[str] = "v3"

    def validate_config(self) -> None:
        super().validate_config()
        if not self.config.api_key:
            raise ClientConfigurationError(f"{self.client_type.value} client requires an api_key")

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await fetch_json(
            f"{self.config.base_url}/api/{self.api_version}{path}",
            headers={"accept": "application/json", "X-Api-Key": self.config.api_key or ""},
            params=params,
        )

    async def _list(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        payload = await self._get(path, params)
        if not isinstance(payload, list):
            return []
        return [entry for entry in payload if isinstance(entry, dict) and entry.get("id") is not None]

    async def test_connection(self) -> bool:
        status = await self._get("/system/status")
        return isinstance(status, dict) and bool(status.get("version"))


def slice_page(entries: list[dict[str, Any]], offset: int, limit: int | None) -> list[dict[str, Any]]:
    """The *arr list endpoints are unpaged; apply offset/limit locally."""
    end = offset + limit if limit is not None else None
    return entries[offset:end]


def images_to_artwork(images: Any) -> Artwork:
    by_type: dict[str, str] = {}
    for image in images or []:
        if not isinstance(image, dict):
            continue
        url = image.get("remoteUrl") or image.get("url")
        if image.get("coverType") and url:
            by_type[str(image["coverType"]).lower()] = url
    return Artwork(
        poster=by_type.get("poster") or by_type.get("cover"),
        background=by_type.get("fanart"),
        banner=by_type.get("banner"),
        logo=by_type.get("logo") or by_type.get("clearlogo"),
    )


def arr_ratings(ratings: Any) -> list[Rating]:
    """Normalize both the flat ``{value, votes}`` and the per-source rating shapes."""
    if not isinstance(ratings, dict):
        return []
    if "value" in ratings:
        return [Rating(source="arr", value=float(ratings.get("value") or 0), votes=int(ratings.get("votes") or 0))]
    normalized = []
    for source, rating in ratings.items():
        if isinstance(rating, dict) and rating.get("value") is not None:
            normalized.append(
                Rating(source=str(source), value=float(rating["value"]), votes=int(rating.get("votes") or 0))
            )
    return normalized
