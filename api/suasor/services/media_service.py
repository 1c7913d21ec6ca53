"""Media catalog operations exposed through the API."""

from __future__ import annotations

import logging
from time import monotonic
from typing import Any

from sqlalchemy import cast, func, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession

from suasor.models.media import MediaItem, MediaType
from suasor.repositories.media_items import MediaItemNotFoundError, repository_for
from suasor.schema.media import LinkClientRequest, MediaItemCreate, MediaItemUpdate, MediaRecord
from suasor.schema.media_data import media_data_for
from suasor.schema.sync_clients import SyncClients
from suasor.services import client_service

logger = logging.getLogger("suasor.services.media")

MAX_QUERY_LENGTH = 256


class MediaLinkConflictError(ValueError):
    """Raised when a client item ID already belongs to another media item."""


async def _get_row(session: AsyncSession, item_id: int) -> MediaItem:
    row = await session.get(MediaItem, item_id)
    if row is None:
        raise MediaItemNotFoundError(f"Media item {item_id} not found")
    return row


def _to_record(session: AsyncSession, row: MediaItem) -> MediaRecord[Any]:
    return repository_for(session, row.media_type).to_record(row)


async def get_media(session: AsyncSession, item_id: int) -> MediaRecord[Any]:
    return _to_record(session, await _get_row(session, item_id))


async def list_media(
    session: AsyncSession,
    *,
    media_type: MediaType | None = None,
    client_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[MediaRecord[Any]], int]:
    """List catalog items, optionally narrowed to a type or to items known to a client."""
    stmt = select(MediaItem).order_by(MediaItem.id)
    if media_type is not None:
        stmt = stmt.where(MediaItem.media_type == media_type)
    dialect_name = session.bind.dialect.name if session.bind else None
    if client_id is not None and dialect_name == "postgresql":
        stmt = stmt.where(cast(MediaItem.sync_clients, JSONB).contains([{"client_id": client_id}]))
        total = await session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
        result = await session.execute(stmt.offset(offset).limit(limit))
        rows = list(result.scalars().all())
        return [_to_record(session, row) for row in rows], int(total or 0)
    if client_id is not None:
        result = await session.execute(stmt)
        matching = [
            row
            for row in result.scalars().all()
            if SyncClients.model_validate(row.sync_clients or []).is_client_present(client_id)
        ]
        return [_to_record(session, row) for row in matching[offset : offset + limit]], len(matching)
    total = await session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery()))
    result = await session.execute(stmt.offset(offset).limit(limit))
    return [_to_record(session, row) for row in result.scalars().all()], int(total or 0)


async def search_media(
    session: AsyncSession,
    *,
    query: str,
    media_type: MediaType | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[MediaRecord[Any]]:
    """Case-insensitive title search across the catalog."""
    search_start = monotonic()
    normalized_query = query.strip()[:MAX_QUERY_LENGTH]
    if not normalized_query:
        return []
    escaped = normalized_query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    stmt = select(MediaItem).where(MediaItem.title.ilike(f"%{escaped}%", escape="\\"))
    if media_type is not None:
        stmt = stmt.where(MediaItem.media_type == media_type)
    stmt = stmt.order_by(func.lower(MediaItem.title), MediaItem.id).offset(offset).limit(limit)
    result = await session.execute(stmt)
    items = [_to_record(session, row) for row in result.scalars().all()]
    logger.info(
        "Catalog search completed",
        extra={
            "query_length": len(normalized_query),
            "media_type": media_type.value if media_type else None,
            "offset": offset,
            "limit": limit,
            "returned": len(items),
            "search_ms": round((monotonic() - search_start) * 1000, 2),
        },
    )
    return items


async def create_media(session: AsyncSession, payload: MediaItemCreate) -> MediaRecord[Any]:
    """Create an item directly; the payload ``data`` is validated against the media type."""
    repository = repository_for(session, payload.media_type)
    record = MediaRecord[repository.data_type].model_validate(
        {
            "media_type": payload.media_type,
            "title": payload.title or "",
            "release_date": payload.release_date,
            "release_year": payload.release_year,
            "data": payload.data,
            "sync_clients": [entry.model_dump() for entry in payload.sync_clients],
            "external_ids": [entry.model_dump() for entry in payload.external_ids],
            "stream_url": payload.stream_url,
            "download_url": payload.download_url,
        }
    )
    for entry in record.sync_clients:
        await _ensure_unclaimed(session, payload.media_type, entry.client_id, entry.item_id, owner_id=None)
    created = await repository.create(record)
    logger.info("Media item created", extra={"media_item_id": created.id, "media_type": payload.media_type.value})
    return created


async def update_media(session: AsyncSession, item_id: int, payload: MediaItemUpdate) -> MediaRecord[Any]:
    """Apply a partial update; the media type and identity map are left untouched."""
    row = await _get_row(session, item_id)
    repository = repository_for(session, row.media_type)
    current = repository.to_record(row).model_dump()
    changes = payload.model_dump(exclude_unset=True)
    if "data" in changes and changes["data"] is None:
        changes.pop("data")
    if changes.get("external_ids") is None:
        changes.pop("external_ids", None)
    if "release_date" in changes and "release_year" not in changes:
        current["release_year"] = None
    current.update(changes)
    record = MediaRecord[repository.data_type].model_validate(current)
    return await repository.update(record)


async def delete_media(session: AsyncSession, item_id: int) -> None:
    row = await _get_row(session, item_id)
    await repository_for(session, row.media_type).delete(item_id)
    logger.info("Media item deleted", extra={"media_item_id": item_id})


async def link_media_client(session: AsyncSession, item_id: int, payload: LinkClientRequest) -> MediaRecord[Any]:
    """Attach a client's item ID to an existing media item."""
    row = await _get_row(session, item_id)
    media_type = row.media_type
    client = await client_service.get_client(session, payload.client_id)
    await _ensure_unclaimed(session, media_type, client.id, payload.item_id, owner_id=item_id)
    return await repository_for(session, media_type).link_client(
        item_id,
        client.id,
        client.client_type,
        payload.item_id,
        source_client_id=payload.source_client_id,
    )


async def _ensure_unclaimed(
    session: AsyncSession,
    media_type: MediaType,
    client_id: int,
    client_item_id: str,
    *,
    owner_id: int | None,
) -> None:
    try:
        existing = await repository_for(session, media_type).get_by_client_item_id(client_id, client_item_id)
    except MediaItemNotFoundError:
        return
    if existing.id != owner_id:
        raise MediaLinkConflictError(
            f"Client {client_id} item {client_item_id} already belongs to media item {existing.id}"
        )


def media_data_schema(media_type: MediaType) -> dict[str, Any]:
    """JSON schema of the payload accepted for ``media_type``."""
    return media_data_for(media_type).model_json_schema()
