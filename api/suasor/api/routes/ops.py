from __future__ import annotations

from fastapi import APIRouter

from suasor.services.task_queue import task_queue

router = APIRouter()


@router.get("/queues")
async def queue_health() -> dict:
    """Minimal operations dashboard for Redis/RQ health."""
    return task_queue.snapshot()
