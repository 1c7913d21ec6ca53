from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import func, select

from suasor.models.client import ClientType
from suasor.models.media import MediaItem, MediaType
from suasor.repositories.media_items import MediaItemRepository, RepositoryError, repository_for
from suasor.schema.media import MediaRecord
from suasor.schema.media_data import Movie, Track
from suasor.schema.sync_clients import SyncClients
from suasor.services.reconciliation_service import MediaReconciler

PLEX = 1
JELLYFIN = 2


def _movie(
    client_id: int,
    item_id: str,
    title: str,
    *,
    year: int | None = 2021,
    overview: str | None = None,
    ids: dict[str, Any] | None = None,
    client_type: ClientType = ClientType.PLEX,
) -> MediaRecord[Movie]:
    details: dict[str, Any] = {"title": title, "release_year": year, "description": overview}
    if ids:
        details["external_ids"] = [{"source": source, "id": value} for source, value in ids.items()]
    sync_clients = SyncClients.single(client_id, client_type, item_id) if item_id else SyncClients()
    return MediaRecord[Movie](data=Movie.model_validate({"details": details}), sync_clients=sync_clients)


async def _row_count(session) -> int:
    return int(await session.scalar(select(func.count()).select_from(MediaItem)))


@pytest.mark.asyncio
async def test_same_movie_from_two_clients_shares_one_row(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))

    first = await reconciler.reconcile(
        PLEX, ClientType.PLEX, [_movie(PLEX, "p100", "Dune", ids={"tmdb": "438631"})]
    )
    second = await reconciler.reconcile(
        JELLYFIN,
        ClientType.JELLYFIN,
        [_movie(JELLYFIN, "j55", "Dune", ids={"tmdb": "438631"}, client_type=ClientType.JELLYFIN)],
    )

    assert first.created == 1
    assert second.linked == 1
    assert await _row_count(session) == 1
    record = second.items[0]
    assert record.id == first.items[0].id
    assert record.client_item_id(PLEX) == "p100"
    assert record.client_item_id(JELLYFIN) == "j55"
    assert record.sync_clients.get_by_client_id(JELLYFIN).client_type is ClientType.JELLYFIN


@pytest.mark.asyncio
async def test_repeat_sync_updates_instead_of_duplicating(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))

    await reconciler.reconcile(PLEX, ClientType.PLEX, [_movie(PLEX, "p100", "Dune", overview="first")])
    result = await reconciler.reconcile(PLEX, ClientType.PLEX, [_movie(PLEX, "p100", "Dune", overview="second")])

    assert result.updated == 1
    assert result.created == 0
    assert await _row_count(session) == 1
    assert result.items[0].data.details.description == "second"
    assert result.status == "synced"


@pytest.mark.asyncio
async def test_title_and_year_link_items_without_external_ids(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))

    await reconciler.reconcile(PLEX, ClientType.PLEX, [_movie(PLEX, "p1", "The Matrix", year=1999)])
    result = await reconciler.reconcile(
        JELLYFIN,
        ClientType.JELLYFIN,
        [_movie(JELLYFIN, "j1", "  the   MATRIX ", year=1999, client_type=ClientType.JELLYFIN)],
    )

    assert result.linked == 1
    assert await _row_count(session) == 1


@pytest.mark.asyncio
async def test_same_title_different_year_creates_new_row(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))

    await reconciler.reconcile(PLEX, ClientType.PLEX, [_movie(PLEX, "p1", "Dune", year=1984)])
    result = await reconciler.reconcile(
        JELLYFIN, ClientType.JELLYFIN, [_movie(JELLYFIN, "j1", "Dune", year=2021, client_type=ClientType.JELLYFIN)]
    )

    assert result.created == 1
    assert await _row_count(session) == 2


@pytest.mark.asyncio
async def test_conflicting_external_ids_block_title_match(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))

    await reconciler.reconcile(PLEX, ClientType.PLEX, [_movie(PLEX, "p1", "Dune", ids={"tmdb": "1"})])
    result = await reconciler.reconcile(
        JELLYFIN,
        ClientType.JELLYFIN,
        [_movie(JELLYFIN, "j1", "Dune", ids={"tmdb": "2"}, client_type=ClientType.JELLYFIN)],
    )

    assert result.created == 1
    assert result.linked == 0
    assert await _row_count(session) == 2


@pytest.mark.asyncio
async def test_external_id_links_across_different_titles(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))

    await reconciler.reconcile(PLEX, ClientType.PLEX, [_movie(PLEX, "p1", "Dune", ids={"imdb": "tt1160419"})])
    result = await reconciler.reconcile(
        JELLYFIN,
        ClientType.JELLYFIN,
        [_movie(JELLYFIN, "j1", "Dune: Part One", ids={"imdb": "tt1160419"}, client_type=ClientType.JELLYFIN)],
    )

    assert result.linked == 1
    assert await _row_count(session) == 1
    assert result.items[0].title == "Dune: Part One"


@pytest.mark.asyncio
async def test_items_without_client_item_id_are_skipped(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))

    result = await reconciler.reconcile(
        PLEX,
        ClientType.PLEX,
        [_movie(PLEX, "", "Untracked"), _movie(JELLYFIN, "j9", "Other client")],
    )

    assert [skip.reason for skip in result.skipped] == ["missing_client_item_id", "missing_client_item_id"]
    assert result.status == "empty"
    assert await _row_count(session) == 0


@pytest.mark.asyncio
async def test_mismatched_media_type_is_skipped(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))
    track = MediaRecord[Track](
        data=Track.model_validate({"details": {"title": "Song"}}),
        sync_clients=SyncClients.single(PLEX, ClientType.PLEX, "t1"),
    )

    result = await reconciler.reconcile(PLEX, ClientType.PLEX, [track, _movie(PLEX, "p1", "Heat", year=1995)])

    assert [skip.reason for skip in result.skipped] == ["type_mismatch"]
    assert result.created == 1


class FlakyRepository(MediaItemRepository[Movie]):
    """Fails writes for one title."""

    async def create(self, record: MediaRecord[Movie]) -> MediaRecord[Movie]:
        if record.title == "Broken":
            raise RepositoryError("disk full")
        return await super().create(record)


@pytest.mark.asyncio
async def test_write_failure_is_recorded_and_batch_continues(session) -> None:
    reconciler = MediaReconciler(FlakyRepository(session, Movie))

    result = await reconciler.reconcile(
        PLEX,
        ClientType.PLEX,
        [
            _movie(PLEX, "p1", "Alien", year=1979),
            _movie(PLEX, "p2", "Broken", year=2000),
            _movie(PLEX, "p3", "Aliens", year=1986),
        ],
    )

    assert result.created == 2
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert (failure.position, failure.client_item_id, failure.stage) == (1, "p2", "create")
    assert "disk full" in failure.error
    assert result.status == "partial"
    assert result.summary()["failed"] == 1
    assert await _row_count(session) == 2


@pytest.mark.asyncio
async def test_title_matching_can_be_disabled(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE), match_title_year=False)

    await reconciler.reconcile(PLEX, ClientType.PLEX, [_movie(PLEX, "p1", "Heat", year=1995)])
    result = await reconciler.reconcile(
        JELLYFIN, ClientType.JELLYFIN, [_movie(JELLYFIN, "j1", "Heat", year=1995, client_type=ClientType.JELLYFIN)]
    )

    assert result.created == 1
    assert await _row_count(session) == 2


@pytest.mark.asyncio
async def test_title_match_records_both_clients_in_order(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))

    await reconciler.reconcile(PLEX, ClientType.PLEX, [_movie(PLEX, "p100", "Dune")])
    result = await reconciler.reconcile(
        JELLYFIN, ClientType.JELLYFIN, [_movie(JELLYFIN, "j55", "Dune", client_type=ClientType.JELLYFIN)]
    )

    assert result.linked == 1
    assert [(entry.client_id, entry.item_id) for entry in result.items[0].sync_clients] == [
        (PLEX, "p100"),
        (JELLYFIN, "j55"),
    ]


@pytest.mark.asyncio
async def test_same_client_items_with_equal_title_and_year_stay_separate(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))
    batch = [_movie(PLEX, "p1", "Halloween", year=2018), _movie(PLEX, "p2", "Halloween", year=2018)]

    first = await reconciler.reconcile(PLEX, ClientType.PLEX, batch)

    assert first.created == 2
    assert await _row_count(session) == 2
    assert first.items[0].id != first.items[1].id

    again = await reconciler.reconcile(
        PLEX,
        ClientType.PLEX,
        [_movie(PLEX, "p1", "Halloween", year=2018), _movie(PLEX, "p2", "Halloween", year=2018)],
    )

    assert (again.created, again.updated, again.linked) == (0, 2, 0)
    assert await _row_count(session) == 2


@pytest.mark.asyncio
async def test_title_match_prefers_the_oldest_row(session) -> None:
    reconciler = MediaReconciler(repository_for(session, MediaType.MOVIE))
    first = await reconciler.reconcile(
        PLEX,
        ClientType.PLEX,
        [_movie(PLEX, "p1", "Halloween", year=2018), _movie(PLEX, "p2", "Halloween", year=2018)],
    )
    oldest = min(item.id for item in first.items)

    result = await reconciler.reconcile(
        3, ClientType.EMBY, [_movie(3, "e1", "Halloween", year=2018, client_type=ClientType.EMBY)]
    )

    assert result.linked == 1
    assert result.items[0].id == oldest
    assert await _row_count(session) == 2
