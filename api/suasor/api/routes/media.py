"""Catalog endpoints for reconciled media items."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from suasor.api.deps import get_db
from suasor.models.media import MediaType
from suasor.repositories.media_items import MediaItemNotFoundError
from suasor.schema.media import (
    LinkClientRequest,
    MediaItemCreate,
    MediaItemList,
    MediaItemRead,
    MediaItemUpdate,
    MediaRecord,
)
from suasor.services import client_service, media_service

router = APIRouter()


def _read(record: MediaRecord[Any]) -> MediaItemRead:
    return MediaItemRead.model_validate(record.model_dump(mode="json"))


def _invalid_payload(exc: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=exc.errors(include_url=False, include_context=False),
    )


@router.get("", response_model=MediaItemList)
async def list_media(
    media_type: MediaType | None = None,
    client_id: int | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_db),
) -> MediaItemList:
    """List catalog items, optionally narrowed to a media type or a client."""
    records, total = await media_service.list_media(
        session, media_type=media_type, client_id=client_id, limit=limit, offset=offset
    )
    return MediaItemList(items=[_read(record) for record in records], total=total, limit=limit, offset=offset)


@router.get("/search", response_model=list[MediaItemRead])
async def search_media(
    q: str = Query(min_length=1, max_length=256),
    media_type: MediaType | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_db),
) -> list[MediaItemRead]:
    """Search the catalog by title."""
    records = await media_service.search_media(
        session, query=q, media_type=media_type, limit=limit, offset=offset
    )
    return [_read(record) for record in records]


@router.get("/schema/{media_type}")
async def get_media_schema(media_type: MediaType) -> dict:
    """Return the JSON schema for a media type's ``data`` payload."""
    return media_service.media_data_schema(media_type)


@router.post("", response_model=MediaItemRead, status_code=status.HTTP_201_CREATED)
async def create_media(payload: MediaItemCreate, session: AsyncSession = Depends(get_db)) -> MediaItemRead:
    """Create a catalog item by hand."""
    try:
        record = await media_service.create_media(session, payload)
    except ValidationError as exc:
        raise _invalid_payload(exc) from exc
    except media_service.MediaLinkConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _read(record)


@router.get("/{item_id}", response_model=MediaItemRead)
async def get_media(item_id: int, session: AsyncSession = Depends(get_db)) -> MediaItemRead:
    try:
        record = await media_service.get_media(session, item_id)
    except MediaItemNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media item not found") from exc
    return _read(record)


@router.put("/{item_id}", response_model=MediaItemRead)
async def update_media(
    item_id: int,
    payload: MediaItemUpdate,
    session: AsyncSession = Depends(get_db),
) -> MediaItemRead:
    """Update catalog fields of an item; its identity map is only changed by linking or syncing."""
    try:
        record = await media_service.update_media(session, item_id, payload)
    except MediaItemNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media item not found") from exc
    except ValidationError as exc:
        raise _invalid_payload(exc) from exc
    return _read(record)


@router.delete(
    "/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    response_model=None,
)
async def delete_media(item_id: int, session: AsyncSession = Depends(get_db)) -> None:
    try:
        await media_service.delete_media(session, item_id)
    except MediaItemNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media item not found") from exc


@router.post("/{item_id}/clients", response_model=MediaItemRead)
async def link_media_client(
    item_id: int,
    payload: LinkClientRequest,
    session: AsyncSession = Depends(get_db),
) -> MediaItemRead:
    """Record that a client item is this catalog item."""
    try:
        record = await media_service.link_media_client(session, item_id, payload)
    except (MediaItemNotFoundError, client_service.ClientNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except media_service.MediaLinkConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _read(record)
