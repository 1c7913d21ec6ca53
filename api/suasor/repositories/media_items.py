"""Typed persistence for media items.

``MediaItemRepository[T]`` reads and writes rows of one media type and converts
them to ``MediaRecord[T]``. Every SQLAlchemy failure rolls the session back and
surfaces as ``RepositoryError``; lookups by ID raise ``MediaItemNotFoundError``.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Sequence

from sqlalchemy import cast, func, or_, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from suasor.models.client import ClientType
from suasor.models.media import MediaItem, MediaType
from suasor.schema.media import MediaRecord, T
from suasor.schema.media_data import ExternalIDs, media_data_for
from suasor.schema.sync_clients import SyncClients, SyncStatus

logger = logging.getLogger("suasor.repositories.media_items")


class MediaItemNotFoundError(LookupError):
    """Raised when no media item matches the lookup."""


class RepositoryError(Exception):
    """Raised when the database rejects a media item read or write."""


def normalize_title(value: str) -> str:
    """Normalize titles for match-key comparisons."""
    return " ".join(value.casefold().split())


class MediaItemRepository(Generic[T]):
    """CRUD over ``media_items`` rows of a single media type."""

    def __init__(self, session: AsyncSession, data_type: type[T]) -> None:
        self.session = session
        self.data_type = data_type
        self.media_type: MediaType = data_type.media_type

    @property
    def _is_postgres(self) -> bool:
        bind = self.session.bind
        return bool(bind and bind.dialect.name == "postgresql")

    def _select(self) -> Select:
        return select(MediaItem).where(MediaItem.media_type == self.media_type)

    async def _scalars(self, stmt: Select) -> Sequence[MediaItem]:
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise RepositoryError(f"Failed to query {self.media_type.value} items") from exc
        return result.scalars().all()

    async def _commit(self, action: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise RepositoryError(f"Failed to {action} {self.media_type.value} item") from exc

    def to_record(self, row: MediaItem) -> MediaRecord[T]:
        return MediaRecord[self.data_type].model_validate(
            {
                "id": row.id,
                "uuid": row.uuid,
                "media_type": row.media_type,
                "title": row.title,
                "release_date": row.release_date,
                "release_year": row.release_year,
                "data": row.data or {},
                "sync_clients": row.sync_clients or [],
                "external_ids": row.external_ids or [],
                "stream_url": row.stream_url,
                "download_url": row.download_url,
                "created_at": row.created_at,
                "updated_at": row.updated_at,
            }
        )

    def _apply(self, row: MediaItem, record: MediaRecord[T]) -> None:
        """Copy record fields onto the row, assigning fresh JSON values."""
        row.media_type = self.media_type
        row.title = record.title
        row.release_date = record.release_date
        row.release_year = record.release_year
        row.stream_url = record.stream_url
        row.download_url = record.download_url
        row.sync_clients = record.sync_clients.model_dump(mode="json")
        row.external_ids = record.external_ids.model_dump(mode="json")
        row.data = record.data.model_dump(mode="json")

    async def _get_row(self, item_id: int) -> MediaItem:
        rows = await self._scalars(self._select().where(MediaItem.id == item_id))
        if not rows:
            raise MediaItemNotFoundError(f"{self.media_type.value} item {item_id} not found")
        return rows[0]

    async def get_by_id(self, item_id: int) -> MediaRecord[T]:
        return self.to_record(await self._get_row(item_id))

    async def get_by_uuid(self, item_uuid: str) -> MediaRecord[T]:
        rows = await self._scalars(self._select().where(MediaItem.uuid == item_uuid))
        if not rows:
            raise MediaItemNotFoundError(f"{self.media_type.value} item {item_uuid} not found")
        return self.to_record(rows[0])

    async def get_by_client_item_id(self, client_id: int, item_id: str) -> MediaRecord[T]:
        """Return the item whose identity map names ``item_id`` for ``client_id``.

        Postgres uses JSONB containment; other engines scan rows of this type.
        """
        stmt = self._select().order_by(MediaItem.id)
        if self._is_postgres:
            stmt = stmt.where(
                cast(MediaItem.sync_clients, JSONB).contains([{"client_id": client_id, "item_id": item_id}])
            )
            rows = await self._scalars(stmt.limit(1))
        else:
            rows = [
                row
                for row in await self._scalars(stmt)
                if SyncClients.model_validate(row.sync_clients or []).get_client_item_id(client_id) == item_id
            ]
        if not rows:
            raise MediaItemNotFoundError(
                f"No {self.media_type.value} item for client {client_id} item {item_id}"
            )
        return self.to_record(rows[0])

    async def get_by_external_ids(self, external_ids: ExternalIDs) -> list[MediaRecord[T]]:
        """Return items sharing at least one strong external ID, ordered by id."""
        strong = external_ids.strong()
        if not strong:
            return []
        stmt = self._select().order_by(MediaItem.id)
        if self._is_postgres:
            stmt = stmt.where(
                or_(
                    *(
                        cast(MediaItem.external_ids, JSONB).contains([{"source": source, "id": value}])
                        for source, value in strong.items()
                    )
                )
            )
            return [self.to_record(row) for row in await self._scalars(stmt)]
        matches = []
        for row in await self._scalars(stmt):
            stored = ExternalIDs.model_validate(row.external_ids or []).strong()
            if any(stored.get(source) == value for source, value in strong.items()):
                matches.append(self.to_record(row))
        return matches

    async def find_by_match_key(self, title: str, release_year: int | None) -> list[MediaRecord[T]]:
        """Return items with the same normalized title and release year, ordered by id."""
        normalized = normalize_title(title)
        if not normalized:
            return []
        stmt = self._select()
        if release_year is None:
            stmt = stmt.where(MediaItem.release_year.is_(None))
        else:
            stmt = stmt.where(MediaItem.release_year == release_year)
        return [
            self.to_record(row)
            for row in await self._scalars(stmt.order_by(MediaItem.id))
            if normalize_title(row.title) == normalized
        ]

    async def get_by_type(
        self,
        media_type: MediaType | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[MediaRecord[T]]:
        if media_type is not None and media_type != self.media_type:
            raise ValueError(f"Repository holds {self.media_type.value} items, not {media_type.value}")
        stmt = self._select().order_by(MediaItem.id).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self.to_record(row) for row in await self._scalars(stmt)]

    async def get_by_client(self, client_id: int) -> list[MediaRecord[T]]:
        """Return every item with an identity-map entry for ``client_id``."""
        stmt = self._select().order_by(MediaItem.id)
        if self._is_postgres:
            stmt = stmt.where(cast(MediaItem.sync_clients, JSONB).contains([{"client_id": client_id}]))
            return [self.to_record(row) for row in await self._scalars(stmt)]
        return [
            self.to_record(row)
            for row in await self._scalars(stmt)
            if SyncClients.model_validate(row.sync_clients or []).is_client_present(client_id)
        ]

    async def search(self, query: str, *, limit: int = 20, offset: int = 0) -> list[MediaRecord[T]]:
        cleaned = query.strip()
        if not cleaned:
            return []
        escaped = cleaned.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        stmt = (
            self._select()
            .where(MediaItem.title.ilike(f"%{escaped}%", escape="\\"))
            .order_by(func.lower(MediaItem.title), MediaItem.id)
            .offset(offset)
            .limit(limit)
        )
        return [self.to_record(row) for row in await self._scalars(stmt)]

    async def create(self, record: MediaRecord[T]) -> MediaRecord[T]:
        row = MediaItem()
        if record.uuid:
            row.uuid = record.uuid
        self._apply(row, record)
        self.session.add(row)
        await self._commit("create")
        await self.session.refresh(row)
        logger.debug("Created %s item %s (%s)", self.media_type.value, row.id, row.title)
        return self.to_record(row)

    async def update(self, record: MediaRecord[T]) -> MediaRecord[T]:
        if record.id is None:
            raise MediaItemNotFoundError("Cannot update a media item without an id")
        row = await self._get_row(record.id)
        self._apply(row, record)
        await self._commit("update")
        await self.session.refresh(row)
        return self.to_record(row)

    async def delete(self, item_id: int) -> None:
        row = await self._get_row(item_id)
        await self.session.delete(row)
        await self._commit("delete")

    async def link_client(
        self,
        item_id: int,
        client_id: int,
        client_type: ClientType,
        client_item_id: str,
        *,
        source_client_id: int | None = None,
    ) -> MediaRecord[T]:
        """Record that ``client_item_id`` on ``client_id`` is this item.

        When ``source_client_id`` is given the item must already be known to
        that client.
        """
        record = await self.get_by_id(item_id)
        if source_client_id is not None and not record.sync_clients.is_client_present(source_client_id):
            raise MediaItemNotFoundError(
                f"{self.media_type.value} item {item_id} is not linked to client {source_client_id}"
            )
        record.sync_clients.add_client(client_id, client_type, client_item_id, status=SyncStatus.SUCCESS)
        return await self.update(record)

    async def count(self) -> int:
        try:
            result = await self.session.execute(
                select(func.count()).select_from(MediaItem).where(MediaItem.media_type == self.media_type)
            )
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise RepositoryError(f"Failed to count {self.media_type.value} items") from exc
        return int(result.scalar_one())


def repository_for(session: AsyncSession, media_type: MediaType | str) -> MediaItemRepository[Any]:
    """Build a repository for a media type chosen at runtime."""
    return MediaItemRepository(session, media_data_for(media_type))
