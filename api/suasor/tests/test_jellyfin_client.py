"""Adapter tests for Jellyfin and Emby item conversion and paging."""

from __future__ import annotations

from typing import Any

import pytest

from suasor.clients.base import ClientConfig, ClientConfigurationError, QueryOptions, UnsupportedMediaTypeError
from suasor.clients.emby import EmbyClient
from suasor.clients.jellyfin import JellyfinClient, provider_ids_to_external
from suasor.clients.radarr import RadarrClient
from suasor.models.client import ClientType
from suasor.models.media import MediaType

BASE_URL = "http://jellyfin.local"

DUNE = {
    "Id": "j55",
    "Name": "Dune",
    "Type": "Movie",
    "ProductionYear": 2021,
    "PremiereDate": "2021-10-22T00:00:00.0000000Z",
    "Overview": "Paul Atreides...",
    "ProviderIds": {"Tmdb": "438631", "Imdb": "tt1160419"},
    "Genres": ["Science Fiction"],
    "People": [
        {"Name": "Timothée Chalamet", "Type": "Actor", "Role": "Paul"},
        {"Name": "Denis Villeneuve", "Type": "Director"},
    ],
    "UserData": {"IsFavorite": True},
    "RunTimeTicks": 93_540_000_000,
    "ImageTags": {"Primary": "abc"},
}


def _fake_fetch(pages: list[dict[str, Any]], calls: list[dict[str, Any]]):
    async def _fetch(url: str, *, headers=None, params=None, **kwargs):
        calls.append({"url": url, "headers": headers, "params": params})
        if url.endswith("/Users"):
            return [{"Id": "user-1", "Name": "admin"}]
        return pages.pop(0)

    return _fetch


@pytest.mark.asyncio
async def test_movies_convert_to_records(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        "suasor.clients.jellyfin.fetch_json",
        _fake_fetch([{"Items": [DUNE], "TotalRecordCount": 1}], calls),
    )
    client = JellyfinClient(2, ClientConfig(base_url=f"{BASE_URL}/", api_key="secret"))

    records = await client.fetch_items(MediaType.MOVIE)

    assert len(records) == 1
    record = records[0]
    assert record.media_type is MediaType.MOVIE
    assert record.title == "Dune"
    assert record.release_year == 2021
    assert record.client_item_id(2) == "j55"
    assert record.sync_clients.get_by_client_id(2).client_type is ClientType.JELLYFIN
    assert record.external_ids.strong() == {"tmdb": "438631", "imdb": "tt1160419"}
    assert record.data.details.is_favorite is True
    assert record.data.details.duration_seconds == 9354
    assert [person.name for person in record.data.cast] == ["Timothée Chalamet"]
    assert [person.name for person in record.data.crew] == ["Denis Villeneuve"]
    assert record.stream_url == f"{BASE_URL}/Videos/j55/stream?static=true"
    assert calls[0]["url"] == f"{BASE_URL}/Users"
    assert calls[1]["url"] == f"{BASE_URL}/Users/user-1/Items"
    assert calls[1]["params"]["IncludeItemTypes"] == "Movie"
    assert 'Token="secret"' in calls[1]["headers"]["Authorization"]


@pytest.mark.asyncio
async def test_items_are_paged_until_total(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    pages = [
        {"Items": [{"Id": "a1", "Name": "Artist A"}, {"Id": "a2", "Name": "Artist B"}], "TotalRecordCount": 3},
        {"Items": [{"Id": "a3", "Name": "Artist C"}], "TotalRecordCount": 3},
    ]
    monkeypatch.setattr("suasor.clients.jellyfin.fetch_json", _fake_fetch(pages, calls))
    client = JellyfinClient(
        2, ClientConfig(base_url=BASE_URL, api_key="secret", user_id="user-9", page_size=2)
    )

    records = await client.fetch_items(MediaType.ARTIST)

    assert [record.client_item_id(2) for record in records] == ["a1", "a2", "a3"]
    assert [call["params"]["StartIndex"] for call in calls] == ["0", "2"]
    assert all(call["url"] == f"{BASE_URL}/Users/user-9/Items" for call in calls)


@pytest.mark.asyncio
async def test_favorites_and_year_filters_are_forwarded(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        "suasor.clients.jellyfin.fetch_json",
        _fake_fetch([{"Items": [DUNE], "TotalRecordCount": 1}], calls),
    )
    client = JellyfinClient(2, ClientConfig(base_url=BASE_URL, api_key="secret", user_id="u"))

    records = await client.fetch_items(MediaType.MOVIE, QueryOptions(year=2021, favorites_only=True))

    assert len(records) == 1
    assert calls[0]["params"]["Years"] == "2021"
    assert calls[0]["params"]["Filters"] == "IsFavorite"


def test_musicbrainz_key_follows_item_level() -> None:
    provider_ids = {"MusicBrainzAlbum": "album-mbid", "MusicBrainzArtist": "artist-mbid"}

    album_ids = provider_ids_to_external(provider_ids, MediaType.ALBUM)
    artist_ids = provider_ids_to_external(provider_ids, MediaType.ARTIST)

    assert album_ids.get_id("musicbrainz") == "album-mbid"
    assert artist_ids.get_id("musicbrainz") == "artist-mbid"


def test_jellyfin_requires_api_key() -> None:
    with pytest.raises(ClientConfigurationError):
        JellyfinClient(1, ClientConfig(base_url=BASE_URL))


@pytest.mark.asyncio
async def test_emby_uses_its_own_token_header(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        "suasor.clients.jellyfin.fetch_json",
        _fake_fetch([{"Items": [DUNE], "TotalRecordCount": 1}], calls),
    )
    client = EmbyClient(5, ClientConfig(base_url="http://emby.local", api_key="emby-key", user_id="u"))

    records = await client.fetch_items(MediaType.MOVIE)

    assert calls[0]["headers"]["X-Emby-Token"] == "emby-key"
    assert records[0].sync_clients.get_by_client_id(5).client_type is ClientType.EMBY


@pytest.mark.asyncio
async def test_search_filters_by_requested_type(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    song = {"Id": "t1", "Name": "Dune Theme", "Type": "Audio"}
    monkeypatch.setattr(
        "suasor.clients.jellyfin.fetch_json",
        _fake_fetch([{"Items": [DUNE, song]}], calls),
    )
    client = JellyfinClient(2, ClientConfig(base_url=BASE_URL, api_key="secret", user_id="u"))

    records = await client.search("dune", MediaType.TRACK)

    assert [record.media_type for record in records] == [MediaType.TRACK]
    assert calls[0]["params"]["SearchTerm"] == "dune"
    assert calls[0]["params"]["IncludeItemTypes"] == "Audio"


@pytest.mark.asyncio
async def test_unsupported_media_type_raises() -> None:
    client = RadarrClient(3, ClientConfig(base_url="http://radarr.local", api_key="k"))
    with pytest.raises(UnsupportedMediaTypeError):
        await client.fetch_items(MediaType.TRACK)


@pytest.mark.asyncio
async def test_malformed_item_is_skipped_and_the_page_survives(monkeypatch: pytest.MonkeyPatch) -> None:
    heat = {"Id": "j3", "Name": "Heat", "Type": "Movie", "ProductionYear": 1995}
    broken = {"Id": "j2", "Name": "Broken", "Type": "Movie", "CommunityRating": "N/A"}
    monkeypatch.setattr(
        "suasor.clients.jellyfin.fetch_json",
        _fake_fetch([{"Items": [DUNE, broken, heat], "TotalRecordCount": 3}], []),
    )
    client = JellyfinClient(2, ClientConfig(base_url=BASE_URL, api_key="secret"))

    records = await client.fetch_items(MediaType.MOVIE)

    assert [record.client_item_id(2) for record in records] == ["j55", "j3"]
    assert [skip.item_id for skip in client.conversion_skips] == ["j2"]
    assert client.conversion_skips[0].media_type is MediaType.MOVIE


@pytest.mark.asyncio
async def test_conversion_skips_reset_between_fetches(monkeypatch: pytest.MonkeyPatch) -> None:
    broken = {"Id": "j9", "Name": "Broken", "Type": "Movie", "Genres": 5}
    pages = [
        {"Items": [broken], "TotalRecordCount": 1},
        {"Items": [DUNE], "TotalRecordCount": 1},
    ]
    monkeypatch.setattr("suasor.clients.jellyfin.fetch_json", _fake_fetch(pages, []))
    client = JellyfinClient(2, ClientConfig(base_url=BASE_URL, api_key="secret", user_id="user-1"))

    assert await client.fetch_items(MediaType.MOVIE) == []
    assert len(client.conversion_skips) == 1

    assert len(await client.fetch_items(MediaType.MOVIE)) == 1
    assert client.conversion_skips == []
