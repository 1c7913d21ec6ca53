from __future__ import annotations

import pytest

from suasor.clients.http import ClientAuthError, ExternalAPIError

JELLYFIN = {
    "name": "Living room",
    "client_type": "jellyfin",
    "base_url": "http://jellyfin.local:8096/",
    "api_key": "jf-secret",
    "user_id": "user-1",
}

ITEMS = [
    {"Id": "j1", "Name": "Dune", "ProductionYear": 2021, "ProviderIds": {"Tmdb": "438631"}},
    {"Id": "j2", "Name": "Heat", "ProductionYear": 1995},
]


async def _create(client, payload=None) -> dict:
    res = await client.post("/api/clients", json=payload or JELLYFIN)
    assert res.status_code == 201, res.text
    return res.json()


@pytest.mark.asyncio
async def test_create_client_hides_secrets(client) -> None:
    created = await _create(client)

    assert created["base_url"] == "http://jellyfin.local:8096"
    assert created["category"] == "media"
    assert created["has_credentials"] is True
    assert "api_key" not in created
    assert "jf-secret" not in str(created)

    listed = await client.get("/api/clients", params={"client_type": "jellyfin"})
    assert [entry["id"] for entry in listed.json()] == [created["id"]]


@pytest.mark.asyncio
async def test_create_client_validation(client) -> None:
    await _create(client)

    duplicate = await client.post("/api/clients", json=JELLYFIN)
    missing_key = await client.post("/api/clients", json={**JELLYFIN, "name": "Other", "api_key": None})
    bad_url = await client.post("/api/clients", json={**JELLYFIN, "name": "Bad", "base_url": "jellyfin.local"})

    assert duplicate.status_code == 409
    assert missing_key.status_code == 400
    assert bad_url.status_code == 422


@pytest.mark.asyncio
async def test_update_and_delete_client(client) -> None:
    created = await _create(client)

    res = await client.patch(f"/api/clients/{created['id']}", json={"name": "Bedroom", "enabled": False})
    assert res.status_code == 200
    assert res.json()["name"] == "Bedroom"
    assert res.json()["enabled"] is False
    assert res.json()["has_credentials"] is True

    res = await client.delete(f"/api/clients/{created['id']}")
    assert res.status_code == 204
    assert (await client.get(f"/api/clients/{created['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_client_types_list_capabilities(client) -> None:
    res = await client.get("/api/clients/types")

    assert res.status_code == 200
    types = res.json()
    assert types["subsonic"]["tracks"] is True
    assert types["subsonic"]["movies"] is False
    assert "episode" in types["plex"]["media_types"]
    assert types["tmdb"]["media_types"] == []


@pytest.mark.asyncio
async def test_connection_check_reports_failures(client, monkeypatch) -> None:
    created = await _create(client)

    async def _info(url: str, **kwargs):
        return {"Id": "server", "Version": "10.9.0"}

    monkeypatch.setattr("suasor.clients.jellyfin.fetch_json", _info)
    ok = await client.post(f"/api/clients/{created['id']}/test")
    assert ok.json() == {"client_id": created["id"], "ok": True, "detail": None}

    async def _denied(url: str, **kwargs):
        raise ClientAuthError("Authentication failed (401)", status_code=401)

    monkeypatch.setattr("suasor.clients.jellyfin.fetch_json", _denied)
    failed = await client.post(f"/api/clients/{created['id']}/test")
    assert failed.status_code == 200
    assert failed.json()["ok"] is False
    assert "401" in failed.json()["detail"]
    assert "401" in (await client.get(f"/api/clients/{created['id']}")).json()["last_error"]


@pytest.mark.asyncio
async def test_live_items_do_not_touch_catalog(client, monkeypatch) -> None:
    created = await _create(client)

    async def _items(url: str, **kwargs):
        return {"Items": ITEMS, "TotalRecordCount": 2}

    monkeypatch.setattr("suasor.clients.jellyfin.fetch_json", _items)
    res = await client.get(f"/api/clients/{created['id']}/items", params={"media_type": "movie", "limit": 1})

    assert res.status_code == 200
    assert res.json() == [
        {
            "client_item_id": "j1",
            "media_type": "movie",
            "title": "Dune",
            "release_year": 2021,
            "external_ids": [{"source": "tmdb", "id": "438631"}],
            "data": res.json()[0]["data"],
        }
    ]
    assert (await client.get("/api/media")).json()["total"] == 0


@pytest.mark.asyncio
async def test_unsupported_media_type_is_bad_request(client) -> None:
    created = await _create(
        client,
        {
            "name": "Navidrome",
            "client_type": "subsonic",
            "base_url": "http://navidrome.local",
            "username": "alice",
            "password": "sesame",
        },
    )

    res = await client.get(f"/api/clients/{created['id']}/items", params={"media_type": "movie"})
    sync = await client.post(f"/api/clients/{created['id']}/sync", json={"media_type": "movie"})

    assert res.status_code == 400
    assert sync.status_code == 400


@pytest.mark.asyncio
async def test_sync_endpoint_reconciles_into_catalog(client, monkeypatch) -> None:
    created = await _create(client)

    async def _items(url: str, **kwargs):
        return {"Items": ITEMS, "TotalRecordCount": 2}

    monkeypatch.setattr("suasor.clients.jellyfin.fetch_json", _items)
    res = await client.post(f"/api/clients/{created['id']}/sync", json={"media_type": "movie"})

    assert res.status_code == 200, res.text
    run = res.json()
    assert run["status"] == "synced"
    assert run["created"] == 2

    catalog = (await client.get("/api/media", params={"client_id": created["id"]})).json()
    assert catalog["total"] == 2
    assert {item["sync_clients"][0]["item_id"] for item in catalog["items"]} == {"j1", "j2"}

    runs = (await client.get(f"/api/clients/{created['id']}/sync-runs")).json()
    assert [entry["id"] for entry in runs] == [run["id"]]


@pytest.mark.asyncio
async def test_sync_fetch_failure_is_bad_gateway(client, monkeypatch) -> None:
    created = await _create(client)

    async def _broken(url: str, **kwargs):
        raise ExternalAPIError("Server error 500")

    monkeypatch.setattr("suasor.clients.jellyfin.fetch_json", _broken)
    res = await client.post(f"/api/clients/{created['id']}/sync", json={"media_type": "movie"})

    assert res.status_code == 502
    runs = (await client.get(f"/api/clients/{created['id']}/sync-runs")).json()
    assert runs[0]["status"] == "failed"


@pytest.mark.asyncio
async def test_unknown_client_is_not_found(client) -> None:
    assert (await client.get("/api/clients/999")).status_code == 404
    assert (await client.post("/api/clients/999/test")).status_code == 404
    assert (await client.post("/api/clients/999/sync", json={"media_type": "movie"})).status_code == 404
    assert (await client.get("/api/clients/999/sync-runs")).status_code == 404
