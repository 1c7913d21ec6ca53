"""Client configuration, live browsing and sync endpoints."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from suasor.api.deps import get_client_registry, get_db
from suasor.clients.base import ClientConfigurationError, MediaClient, QueryOptions, UnsupportedMediaTypeError
from suasor.clients.http import ClientAuthError, ExternalAPIError
from suasor.clients.observability import CircuitOpenError, client_monitor, monitor_key
from suasor.clients.registry import ClientRegistry
from suasor.models.client import Client, ClientType
from suasor.models.media import MediaType
from suasor.schema.clients import (
    ClientCapabilitiesRead,
    ClientCreate,
    ClientItemRead,
    ClientRead,
    ClientSyncRequest,
    ClientTestResult,
    ClientUpdate,
)
from suasor.schema.media import MediaRecord, SyncRunRead
from suasor.services import client_service, sync_service
from suasor.services.task_queue import task_queue
from suasor.utils.redaction import redact_secrets

router = APIRouter()

VENDOR_ERRORS = (ExternalAPIError, ClientAuthError, httpx.HTTPError)


def _vendor_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, CircuitOpenError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=redact_secrets(str(exc) or exc.__class__.__name__),
    )


async def _load_adapter(
    session: AsyncSession, client_id: int, registry: ClientRegistry
) -> tuple[Client, MediaClient]:
    try:
        return await client_service.build_media_client(session, client_id, registry)
    except client_service.ClientNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found") from exc
    except ClientConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _client_item(record: MediaRecord[Any], client_id: int) -> ClientItemRead:
    return ClientItemRead(
        client_item_id=record.client_item_id(client_id) or "",
        media_type=record.media_type,
        title=record.title,
        release_year=record.release_year,
        external_ids=record.external_ids.model_dump(mode="json"),
        data=record.data.model_dump(mode="json"),
    )


@router.get("/types", response_model=dict[str, ClientCapabilitiesRead])
async def list_client_types(
    registry: ClientRegistry = Depends(get_client_registry),
) -> dict[str, ClientCapabilitiesRead]:
    """List supported client types with the media each can serve."""
    return {
        client_type.value: ClientCapabilitiesRead(**registry.capabilities_for(client_type).as_dict())
        for client_type in registry.supported_types()
    }


@router.get("", response_model=list[ClientRead])
async def list_clients(
    client_type: ClientType | None = None,
    session: AsyncSession = Depends(get_db),
) -> list[ClientRead]:
    """List configured clients."""
    clients = await client_service.list_clients(session, client_type=client_type)
    return [client_service.serialize_client(client) for client in clients]


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreate,
    session: AsyncSession = Depends(get_db),
    registry: ClientRegistry = Depends(get_client_registry),
) -> ClientRead:
    """Register an external client; its credentials are stored encrypted."""
    try:
        client = await client_service.create_client(session, payload, registry=registry)
    except ClientConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except client_service.ClientAlreadyExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return client_service.serialize_client(client)


@router.get("/{client_id}", response_model=ClientRead)
async def get_client(client_id: int, session: AsyncSession = Depends(get_db)) -> ClientRead:
    try:
        client = await client_service.get_client(session, client_id)
    except client_service.ClientNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found") from exc
    return client_service.serialize_client(client)


@router.patch("/{client_id}", response_model=ClientRead)
async def update_client(
    client_id: int,
    payload: ClientUpdate,
    session: AsyncSession = Depends(get_db),
) -> ClientRead:
    """Update client settings; omitted secrets are kept."""
    try:
        client = await client_service.update_client(session, client_id, payload)
    except client_service.ClientNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found") from exc
    except client_service.ClientAlreadyExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return client_service.serialize_client(client)


@router.delete(
    "/{client_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    response_model=None,
)
async def delete_client(client_id: int, session: AsyncSession = Depends(get_db)) -> None:
    """Remove a client and its sync history; catalog items keep their identity entries."""
    try:
        await client_service.delete_client(session, client_id)
    except client_service.ClientNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found") from exc


@router.get("/{client_id}/capabilities", response_model=ClientCapabilitiesRead)
async def get_client_capabilities(
    client_id: int,
    session: AsyncSession = Depends(get_db),
    registry: ClientRegistry = Depends(get_client_registry),
) -> ClientCapabilitiesRead:
    _, adapter = await _load_adapter(session, client_id, registry)
    return ClientCapabilitiesRead(**adapter.capabilities.as_dict())


@router.post("/{client_id}/test", response_model=ClientTestResult)
async def test_client_connection(
    client_id: int,
    session: AsyncSession = Depends(get_db),
    registry: ClientRegistry = Depends(get_client_registry),
) -> ClientTestResult:
    """Check that the client answers with its stored credentials."""
    client, adapter = await _load_adapter(session, client_id, registry)
    try:
        ok = await client_monitor.track(
            monitor_key(client.client_type, client.id), "test_connection", adapter.test_connection
        )
    except CircuitOpenError as exc:
        return ClientTestResult(client_id=client_id, ok=False, detail=str(exc))
    except VENDOR_ERRORS as exc:
        detail = redact_secrets(str(exc) or exc.__class__.__name__)
        await client_service.note_error(session, client, detail)
        return ClientTestResult(client_id=client_id, ok=False, detail=detail)
    if ok:
        await client_service.clear_error(session, client)
    return ClientTestResult(client_id=client_id, ok=bool(ok), detail=None if ok else "Client rejected the check")


@router.get("/{client_id}/items", response_model=list[ClientItemRead])
async def list_client_items(
    client_id: int,
    media_type: MediaType,
    query: str | None = Query(default=None, max_length=256),
    year: int | None = None,
    favorites_only: bool = False,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_db),
    registry: ClientRegistry = Depends(get_client_registry),
) -> list[ClientItemRead]:
    """Fetch items live from a client without touching the catalog."""
    client, adapter = await _load_adapter(session, client_id, registry)
    options = QueryOptions(query=query, year=year, favorites_only=favorites_only)
    try:
        records = await client_monitor.track(
            monitor_key(client.client_type, client.id),
            f"browse_{media_type.value}",
            lambda: adapter.fetch_items(media_type, options),
        )
    except UnsupportedMediaTypeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (CircuitOpenError, *VENDOR_ERRORS) as exc:
        raise _vendor_http_error(exc) from exc
    return [_client_item(record, client_id) for record in records[offset : offset + limit]]


@router.get("/{client_id}/search", response_model=list[ClientItemRead])
async def search_client(
    client_id: int,
    q: str = Query(min_length=1, max_length=256),
    media_type: MediaType | None = None,
    session: AsyncSession = Depends(get_db),
    registry: ClientRegistry = Depends(get_client_registry),
) -> list[ClientItemRead]:
    """Search a client's own catalog."""
    client, adapter = await _load_adapter(session, client_id, registry)
    try:
        records = await client_monitor.track(
            monitor_key(client.client_type, client.id),
            "search",
            lambda: adapter.search(q, media_type),
        )
    except UnsupportedMediaTypeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (CircuitOpenError, *VENDOR_ERRORS) as exc:
        raise _vendor_http_error(exc) from exc
    return [_client_item(record, client_id) for record in records]


@router.post("/{client_id}/sync", response_model=SyncRunRead)
async def sync_client(
    client_id: int,
    payload: ClientSyncRequest,
    session: AsyncSession = Depends(get_db),
    registry: ClientRegistry = Depends(get_client_registry),
) -> SyncRunRead:
    """Fetch one media type from the client and reconcile it into the catalog."""
    try:
        run = await sync_service.sync_client_media(session, client_id, payload.media_type, registry)
    except client_service.ClientNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found") from exc
    except (ClientConfigurationError, UnsupportedMediaTypeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except CircuitOpenError as exc:
        raise _vendor_http_error(exc) from exc
    except sync_service.ClientFetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc
    return SyncRunRead.model_validate(run)


@router.post("/{client_id}/sync/queue")
async def queue_client_sync(
    client_id: int,
    payload: ClientSyncRequest,
    session: AsyncSession = Depends(get_db),
) -> dict:
    """Run a sync through the worker queue and return its job summary."""
    try:
        await client_service.get_client(session, client_id)
    except client_service.ClientNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found") from exc
    return await task_queue.enqueue_sync_task(client_id=client_id, media_type=payload.media_type)


@router.get("/{client_id}/sync-runs", response_model=list[SyncRunRead])
async def list_sync_runs(
    client_id: int,
    limit: int = Query(default=20, ge=1, le=200),
    session: AsyncSession = Depends(get_db),
) -> list[SyncRunRead]:
    """List recent sync runs for a client, newest first."""
    try:
        runs = await sync_service.list_sync_runs(session, client_id, limit=limit)
    except client_service.ClientNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found") from exc
    return [SyncRunRead.model_validate(run) for run in runs]
