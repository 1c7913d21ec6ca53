"""Adapter tests for Subsonic token auth and response unwrapping."""

from __future__ import annotations

import hashlib
from typing import Any

import pytest

from suasor.clients.base import ClientConfig, ClientConfigurationError, QueryOptions
from suasor.clients.http import ClientAuthError, ExternalAPIError
from suasor.clients.subsonic import SubsonicClient, token_params
from suasor.models.media import MediaType

BASE_URL = "http://navidrome.local"


def _ok(**payload: Any) -> dict[str, Any]:
    return {"subsonic-response": {"status": "ok", "version": "1.16.1", **payload}}


def _client(**overrides: Any) -> SubsonicClient:
    config = {"base_url": BASE_URL, "username": "alice", "password": "sesame", **overrides}
    return SubsonicClient(7, ClientConfig(**config))


def test_token_params_hash_password_with_salt() -> None:
    params = token_params("alice", "sesame", salt="c19b2d")

    assert params["u"] == "alice"
    assert params["s"] == "c19b2d"
    assert params["t"] == hashlib.md5(b"sesamec19b2d").hexdigest()
    assert params["f"] == "json"
    assert "p" not in params


def test_subsonic_requires_username_and_password() -> None:
    with pytest.raises(ClientConfigurationError):
        SubsonicClient(7, ClientConfig(base_url=BASE_URL, username="alice"))


@pytest.mark.asyncio
async def test_artists_are_flattened_from_indexes(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []

    async def _fetch(url: str, *, params=None, **kwargs):
        calls.append({"url": url, "params": params})
        return _ok(
            artists={
                "index": [
                    {"name": "B", "artist": [{"id": "ar-1", "name": "Björk", "albumCount": 9, "musicBrainzId": "mb-1"}]},
                    {"name": "R", "artist": [{"id": "ar-2", "name": "Radiohead", "albumCount": 12}]},
                ]
            }
        )

    monkeypatch.setattr("suasor.clients.subsonic.fetch_json", _fetch)

    records = await _client().fetch_items(MediaType.ARTIST)

    assert [record.title for record in records] == ["Björk", "Radiohead"]
    assert records[0].external_ids.get_id("musicbrainz") == "mb-1"
    assert records[0].client_item_id(7) == "ar-1"
    assert calls[0]["url"] == f"{BASE_URL}/rest/getArtists"
    assert calls[0]["params"]["u"] == "alice"


@pytest.mark.asyncio
async def test_tracks_page_through_search3(monkeypatch: pytest.MonkeyPatch) -> None:
    offsets: list[int] = []
    songs = [{"id": f"s{i}", "title": f"Song {i}", "album": "Kid A", "track": i} for i in range(3)]

    async def _fetch(url: str, *, params=None, **kwargs):
        offset = params["songOffset"]
        offsets.append(offset)
        return _ok(searchResult3={"song": songs[offset : offset + params["songCount"]]})

    monkeypatch.setattr("suasor.clients.subsonic.fetch_json", _fetch)

    records = await _client(page_size=2).fetch_items(MediaType.TRACK)

    assert [record.client_item_id(7) for record in records] == ["s0", "s1", "s2"]
    assert offsets == [0, 2]
    assert records[0].stream_url == f"{BASE_URL}/rest/stream?id=s0"
    assert records[2].data.number == 2


@pytest.mark.asyncio
async def test_starred_albums_when_favorites_only(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[str] = []

    async def _fetch(url: str, *, params=None, **kwargs):
        seen.append(params["type"])
        return _ok(albumList2={"album": [{"id": "al-1", "name": "OK Computer", "starred": "2024-01-01T00:00:00Z"}]})

    monkeypatch.setattr("suasor.clients.subsonic.fetch_json", _fetch)

    records = await _client().fetch_items(MediaType.ALBUM, QueryOptions(favorites_only=True))

    assert seen == ["starred"]
    assert records[0].data.details.is_favorite is True


@pytest.mark.asyncio
async def test_failed_status_maps_to_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    responses = [
        {"subsonic-response": {"status": "failed", "error": {"code": 40, "message": "Wrong username or password"}}},
        {"subsonic-response": {"status": "failed", "error": {"code": 70, "message": "Not found"}}},
    ]

    async def _fetch(url: str, **kwargs):
        return responses.pop(0)

    monkeypatch.setattr("suasor.clients.subsonic.fetch_json", _fetch)
    client = _client()

    with pytest.raises(ClientAuthError):
        await client.test_connection()
    with pytest.raises(ExternalAPIError):
        await client.fetch_items(MediaType.PLAYLIST)


def test_subsonic_does_not_serve_video() -> None:
    client = _client()

    assert client.supports(MediaType.TRACK) is True
    assert client.supports(MediaType.MOVIE) is False
