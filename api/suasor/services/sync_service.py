"""Fetch items from a client, reconcile them and record the run.

Invariants:
- A fetch failure aborts the whole pass before anything is written to
  ``media_items``; the run is recorded as ``failed``.
- Per-item reconciliation failures never abort the pass; they are counted on
  the run and sampled into ``sync_runs.errors``.
- Vendor items the adapter could not convert are counted as skipped.
- Once created, a run always ends as ``synced``, ``partial``, ``empty`` or
  ``failed``; an unexpected error or cancellation marks it ``failed``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from suasor.clients.base import ClientConfigurationError, MediaClient, UnsupportedMediaTypeError
from suasor.clients.http import ClientAuthError, ExternalAPIError
from suasor.clients.observability import CircuitOpenError, ClientMonitor, client_monitor, monitor_key
from suasor.clients.registry import ClientRegistry
from suasor.core.config import settings
from suasor.models.client import Client
from suasor.models.media import MediaType
from suasor.models.sync_run import SyncRun, SyncRunStatus
from suasor.repositories.media_items import repository_for
from suasor.services import client_service
from suasor.services.reconciliation_service import MediaReconciler
from suasor.utils.redaction import redact_secrets

logger = logging.getLogger("suasor.services.sync")

FETCH_ERRORS = (ExternalAPIError, ClientAuthError, httpx.HTTPError, ValueError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClientFetchError(RuntimeError):
    """Raised when a client could not return its items; nothing was reconciled."""

    def __init__(self, message: str, *, run_id: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.run_id = run_id


@dataclass(slots=True)
class SyncTask:
    """Structured payload describing a sync request."""
    client_id: int
    media_type: MediaType
    requested_at: datetime = field(default_factory=_utcnow)


async def sync_client_media(
    session: AsyncSession,
    client_id: int,
    media_type: MediaType,
    registry: ClientRegistry,
    *,
    monitor: ClientMonitor = client_monitor,
) -> SyncRun:
    """Fetch ``media_type`` items from a client and reconcile them into the catalog."""
    client, adapter = await client_service.build_media_client(session, client_id, registry)
    if not adapter.supports(media_type):
        raise UnsupportedMediaTypeError(client.client_type, media_type)

    run = SyncRun(client_id=client_id, media_type=media_type, status=SyncRunStatus.RUNNING, errors=[])
    session.add(run)
    await session.commit()
    await session.refresh(run)
    run_id = run.id

    try:
        return await _run_pass(session, run, client, adapter, media_type, monitor)
    except BaseException as exc:
        await _abandon_run(session, run_id, exc)
        raise


async def _run_pass(
    session: AsyncSession,
    run: SyncRun,
    client: Client,
    adapter: MediaClient,
    media_type: MediaType,
    monitor: ClientMonitor,
) -> SyncRun:
    client_id = client.id
    client_type = client.client_type
    run_id = run.id
    key = monitor_key(client_type, client_id)
    try:
        items = await monitor.track(
            key,
            f"fetch_{media_type.value}",
            lambda: adapter.fetch_items(media_type),
            context={"run_id": run_id},
        )
    except CircuitOpenError as exc:
        await _finish_failed(session, run, str(exc))
        raise
    except FETCH_ERRORS as exc:
        error = redact_secrets(str(exc) or exc.__class__.__name__)
        await _finish_failed(session, run, error)
        await client_service.note_error(session, client, error)
        raise ClientFetchError(f"Fetching {media_type.value} from client {client_id} failed: {error}", run_id=run_id) from exc

    reconciler = MediaReconciler(repository_for(session, media_type))
    result = await reconciler.reconcile(client_id, client_type, items)
    summary = result.summary(settings.sync_error_sample_size)
    conversion_skips = list(adapter.conversion_skips)

    # Per-item rollbacks expire loaded instances.
    await session.refresh(run)
    await session.refresh(client)
    run.status = SyncRunStatus(result.status)
    run.fetched = len(items)
    run.created = result.created
    run.updated = result.updated
    run.linked = result.linked
    run.skipped = len(result.skipped) + len(conversion_skips)
    run.failed = len(result.failures)
    run.errors = summary["errors"] + [skip.as_dict() for skip in conversion_skips[: settings.sync_error_sample_size]]
    run.finished_at = _utcnow()
    client.last_synced_at = run.finished_at
    client.last_error = None
    await session.commit()
    await session.refresh(run)
    logger.info(
        "Client sync finished",
        extra={
            "client_id": client_id,
            "media_type": media_type.value,
            "run_id": run_id,
            "status": run.status.value,
            "fetched": run.fetched,
            "skipped_count": run.skipped,
            "failed_count": run.failed,
        },
    )
    return run


async def _abandon_run(session: AsyncSession, run_id: int, exc: BaseException) -> None:
    """Mark a run that is still ``running`` as failed after an unexpected error."""
    try:
        await session.rollback()
        run = await session.get(SyncRun, run_id)
        if run is None or run.status is not SyncRunStatus.RUNNING:
            return
        await _finish_failed(session, run, redact_secrets(str(exc) or exc.__class__.__name__))
    except Exception:
        logger.exception("Could not mark sync run %s as failed", run_id)


async def _finish_failed(session: AsyncSession, run: SyncRun, error: str) -> None:
    run.status = SyncRunStatus.FAILED
    run.error = error[:490]
    run.finished_at = _utcnow()
    await session.commit()
    logger.warning(
        "Client sync failed",
        extra={"client_id": run.client_id, "run_id": run.id, "error": run.error},
    )


async def list_sync_runs(session: AsyncSession, client_id: int, *, limit: int = 20) -> list[SyncRun]:
    await client_service.get_client(session, client_id)
    result = await session.execute(
        select(SyncRun).where(SyncRun.client_id == client_id).order_by(SyncRun.id.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def process_sync_task(session: AsyncSession, task: SyncTask, registry: ClientRegistry) -> dict[str, Any]:
    """Run a sync task and return a job summary; fatal errors become ``failed`` summaries."""
    base = {
        "client_id": task.client_id,
        "media_type": task.media_type.value,
        "requested_at": task.requested_at.isoformat(),
    }
    try:
        run = await sync_client_media(session, task.client_id, task.media_type, registry)
    except (
        client_service.ClientNotFoundError,
        ClientConfigurationError,
        UnsupportedMediaTypeError,
        CircuitOpenError,
        ClientFetchError,
    ) as exc:
        logger.warning("Sync task failed for client %s: %s", task.client_id, exc)
        return {**base, "status": "failed", "error": redact_secrets(str(exc))}
    except Exception as exc:
        logger.exception("Sync task crashed for client %s", task.client_id)
        return {**base, "status": "failed", "error": redact_secrets(str(exc) or exc.__class__.__name__)}
    return {
        **base,
        "status": run.status.value,
        "run_id": run.id,
        "fetched": run.fetched,
        "created": run.created,
        "updated": run.updated,
        "linked": run.linked,
        "skipped": run.skipped,
        "failed": run.failed,
        "errors": run.errors or [],
    }
