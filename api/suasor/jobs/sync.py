from __future__ import annotations

import asyncio
import logging
from typing import Any

from suasor.clients.registry import build_client_registry
from suasor.db.session import async_session
from suasor.models.media import MediaType
from suasor.services.sync_service import SyncTask, process_sync_task

logger = logging.getLogger("suasor.jobs.sync")


async def sync_client_job(*, client_id: int, media_type: str) -> dict[str, Any]:
    """Run one client sync with a fresh session and adapter registry."""
    async with async_session() as session:
        task = SyncTask(client_id=client_id, media_type=MediaType(media_type))
        return await process_sync_task(session, task, build_client_registry())


def run_sync_job(*, client_id: int, media_type: str) -> dict[str, Any]:
    """RQ-friendly client sync hook."""
    summary = asyncio.run(sync_client_job(client_id=client_id, media_type=media_type))
    logger.info("Sync job complete for client %s (%s): %s", client_id, media_type, summary["status"])
    return summary
