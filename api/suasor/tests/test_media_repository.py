from __future__ import annotations

import pytest

from suasor.models.client import ClientType
from suasor.models.media import MediaType
from suasor.repositories.media_items import MediaItemNotFoundError, MediaItemRepository, repository_for
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import Album, ExternalIDs, Movie
from suasor.schema.sync_clients import SyncClients


def _movie(title: str, year: int, *, client_id: int = 1, item_id: str = "m1", **ids: str) -> MediaRecord[Movie]:
    return MediaRecord[Movie](
        data=Movie.model_validate({"details": {"title": title, "release_year": year}}),
        sync_clients=SyncClients.single(client_id, ClientType.PLEX, item_id),
        external_ids=ExternalIDs.from_mapping(ids),
    )


@pytest.mark.asyncio
async def test_create_and_lookup_by_client_item(session) -> None:
    repo = MediaItemRepository(session, Movie)
    created = await repo.create(_movie("Arrival", 2016, item_id="p42", tmdb="329865"))

    assert created.id is not None
    assert created.uuid
    fetched = await repo.get_by_client_item_id(1, "p42")
    assert fetched.id == created.id
    assert fetched.data.details.title == "Arrival"
    assert (await repo.get_by_uuid(created.uuid)).id == created.id

    with pytest.raises(MediaItemNotFoundError):
        await repo.get_by_client_item_id(1, "missing")
    with pytest.raises(MediaItemNotFoundError):
        await repo.get_by_client_item_id(2, "p42")


@pytest.mark.asyncio
async def test_external_id_lookup_ignores_weak_sources(session) -> None:
    repo = MediaItemRepository(session, Movie)
    await repo.create(_movie("Arrival", 2016, item_id="a", tmdb="329865", plex="abc"))
    await repo.create(_movie("Sicario", 2015, item_id="b", imdb="tt3397884"))

    matches = await repo.get_by_external_ids(ExternalIDs.from_mapping({"tmdb": "329865"}))
    assert [match.title for match in matches] == ["Arrival"]
    assert await repo.get_by_external_ids(ExternalIDs.from_mapping({"plex": "abc"})) == []


@pytest.mark.asyncio
async def test_repository_is_scoped_to_its_media_type(session) -> None:
    movies = MediaItemRepository(session, Movie)
    albums = repository_for(session, MediaType.ALBUM)
    movie = await movies.create(_movie("Blue", 1993, item_id="x"))
    await albums.create(
        MediaRecord[Album](
            data=Album.model_validate({"details": {"title": "Blue", "release_year": 1993}}),
            sync_clients=SyncClients.single(1, ClientType.PLEX, "x"),
        )
    )

    assert [item.title for item in await movies.find_by_match_key("blue", 1993)] == ["Blue"]
    assert await albums.count() == 1
    with pytest.raises(MediaItemNotFoundError):
        await albums.get_by_id(movie.id)
    with pytest.raises(ValueError):
        await movies.get_by_type(MediaType.ALBUM)


@pytest.mark.asyncio
async def test_link_client_adds_identity_entry(session) -> None:
    repo = MediaItemRepository(session, Movie)
    created = await repo.create(_movie("Heat", 1995, item_id="p7"))

    linked = await repo.link_client(created.id, 2, ClientType.JELLYFIN, "j7", source_client_id=1)

    assert linked.client_item_id(1) == "p7"
    assert linked.client_item_id(2) == "j7"
    assert [item.id for item in await repo.get_by_client(2)] == [created.id]
    with pytest.raises(MediaItemNotFoundError):
        await repo.link_client(created.id, 3, ClientType.EMBY, "e7", source_client_id=99)


@pytest.mark.asyncio
async def test_search_escapes_wildcards(session) -> None:
    repo = MediaItemRepository(session, Movie)
    await repo.create(_movie("100% Wolf", 2020, item_id="w"))
    await repo.create(_movie("1000 Wolves", 2021, item_id="v"))

    results = await repo.search("100%")
    assert [item.title for item in results] == ["100% Wolf"]
    assert await repo.search("   ") == []


@pytest.mark.asyncio
async def test_update_and_delete(session) -> None:
    repo = MediaItemRepository(session, Movie)
    created = await repo.create(_movie("Ronin", 1998, item_id="r"))

    created.title = "Ronin (Director's Cut)"
    updated = await repo.update(created)
    assert updated.title == "Ronin (Director's Cut)"
    assert updated.data.details.title == "Ronin"

    await repo.delete(created.id)
    with pytest.raises(MediaItemNotFoundError):
        await repo.get_by_id(created.id)
