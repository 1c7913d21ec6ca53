"""Adapter tests for Plex GUID parsing and library paging."""

from __future__ import annotations

from typing import Any

import pytest

from suasor.clients.base import ClientConfig, ClientConfigurationError
from suasor.clients.plex import PlexClient, guids_to_external
from suasor.models.media import MediaType

BASE_URL = "http://plex.local:32400"


def _container(**payload: Any) -> dict[str, Any]:
    return {"MediaContainer": payload}


def test_guids_cover_legacy_and_modern_agents() -> None:
    entry = {
        "guid": "plex://movie/5d776b59ad5437001f79c6f8",
        "Guid": [
            {"id": "imdb://tt1160419"},
            {"id": "tmdb://438631"},
            {"id": "tvdb://16609"},
        ],
    }

    ids = guids_to_external(entry)

    assert ids.get_id("plex") == "movie/5d776b59ad5437001f79c6f8"
    assert ids.strong() == {"imdb": "tt1160419", "tmdb": "438631", "tvdb": "16609"}
    legacy = guids_to_external({"guid": "com.plexapp.agents.imdb://tt0133093?lang=en"})
    assert legacy.get_id("imdb") == "tt0133093"


def test_plex_requires_token() -> None:
    with pytest.raises(ClientConfigurationError):
        PlexClient(1, ClientConfig(base_url=BASE_URL))


@pytest.mark.asyncio
async def test_movies_are_read_from_movie_sections(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []

    async def _fetch(url: str, *, headers=None, params=None, **kwargs):
        calls.append({"url": url, "headers": headers, "params": params})
        if url.endswith("/library/sections"):
            return _container(
                Directory=[
                    {"key": "1", "type": "movie", "title": "Movies"},
                    {"key": "2", "type": "artist", "title": "Music"},
                ]
            )
        start = int(params["X-Plex-Container-Start"])
        entries = [
            {
                "ratingKey": "p100",
                "title": "Dune",
                "year": 2021,
                "guid": "plex://movie/abc",
                "Guid": [{"id": "tmdb://438631"}],
                "duration": 9354000,
                "Genre": [{"tag": "Science Fiction"}],
                "Media": [{"Part": [{"key": "/library/parts/9/file.mkv"}]}],
            },
            {"ratingKey": "p101", "title": "Heat", "year": 1995},
            {"title": "No key"},
        ]
        return _container(Metadata=entries[start : start + 2], totalSize=3)

    monkeypatch.setattr("suasor.clients.plex.fetch_json", _fetch)
    client = PlexClient(1, ClientConfig(base_url=BASE_URL, token="plex-token", page_size=2))

    records = await client.fetch_items(MediaType.MOVIE)

    assert [record.client_item_id(1) for record in records] == ["p100", "p101"]
    dune = records[0]
    assert dune.external_ids.get_id("tmdb") == "438631"
    assert dune.data.details.genres == ["Science Fiction"]
    assert dune.data.details.duration_seconds == 9354
    assert dune.stream_url == f"{BASE_URL}/library/parts/9/file.mkv"
    section_calls = [call for call in calls if "/library/sections/" in call["url"]]
    assert {call["url"] for call in section_calls} == {f"{BASE_URL}/library/sections/1/all"}
    assert [call["params"]["X-Plex-Container-Start"] for call in section_calls] == ["0", "2"]
    assert all(call["params"]["type"] == "1" for call in section_calls)
    assert calls[0]["headers"]["X-Plex-Token"] == "plex-token"


@pytest.mark.asyncio
async def test_search_reads_hubs(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _fetch(url: str, *, headers=None, params=None, **kwargs):
        assert url == f"{BASE_URL}/hubs/search"
        return _container(
            Hub=[
                {"type": "movie", "Metadata": [{"ratingKey": "1", "title": "Dune", "year": 2021}]},
                {"type": "album", "Metadata": [{"ratingKey": "2", "title": "Dune OST", "parentTitle": "Hans Zimmer"}]},
            ]
        )

    monkeypatch.setattr("suasor.clients.plex.fetch_json", _fetch)
    client = PlexClient(1, ClientConfig(base_url=BASE_URL, token="t"))

    everything = await client.search("dune")
    albums = await client.search("dune", MediaType.ALBUM)

    assert [record.media_type for record in everything] == [MediaType.MOVIE, MediaType.ALBUM]
    assert [record.data.artist_name for record in albums] == ["Hans Zimmer"]


@pytest.mark.asyncio
async def test_connection_uses_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _fetch(url: str, **kwargs):
        return _container(machineIdentifier="abc123")

    monkeypatch.setattr("suasor.clients.plex.fetch_json", _fetch)
    client = PlexClient(1, ClientConfig(base_url=BASE_URL, api_key="t"))

    assert await client.test_connection() is True
