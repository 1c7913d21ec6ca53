"""RQ task queue wrapper with inline fallback for local/test runs."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry
from rq.registry import DeferredJobRegistry, FailedJobRegistry, ScheduledJobRegistry, StartedJobRegistry
from rq.worker import Worker

from suasor.core.config import settings
from suasor.models.media import MediaType
from suasor.services.credential_vault import credential_vault
from suasor.utils.redaction import redact_secrets

logger = logging.getLogger("suasor.services.task_queue")

# Vendor outages get a few chances with backoff before the job is marked failed.
DEFAULT_RETRY = Retry(max=3, interval=[5, 15, 30])
SYNC_QUEUE = "sync"


class TaskQueue:
    """Thin wrapper around RQ that can fall back to inline execution."""

    def __init__(self) -> None:
        self.queue_names: list[str] = settings.worker_queue_names or ["default"]
        self._connection: Redis | None = None
        self._enabled = False
        self._bootstrap()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def connection(self) -> Redis | None:
        return self._connection

    def _bootstrap(self) -> None:
        """Initialize Redis connectivity unless disabled for tests."""
        if settings.environment.lower() == "test":
            logger.info("Task queue disabled in test environment")
            return
        try:
            connection = Redis.from_url(settings.redis_url)
            connection.ping()
        except RedisError as exc:
            logger.warning("Redis unavailable; running jobs inline: %s", redact_secrets(str(exc)))
            return
        self._connection = connection
        self._enabled = True
        logger.info("Task queue ready (queues: %s)", ", ".join(self.queue_names))

    def get_queue(self, queue_name: str | None = None) -> Queue:
        if not self._connection:
            raise RuntimeError("Queue connection not initialized")
        target = queue_name or (self.queue_names[0] if self.queue_names else "default")
        return Queue(target, connection=self._connection)

    async def enqueue_sync_task(self, *, client_id: int, media_type: MediaType) -> Any:
        """Dispatch a client sync through the worker queue and wait for its summary."""
        from suasor.jobs.sync import run_sync_job, sync_client_job

        return await self.enqueue_or_run(
            run_sync_job,
            fallback=lambda: sync_client_job(client_id=client_id, media_type=media_type.value),
            queue_name=SYNC_QUEUE if SYNC_QUEUE in self.queue_names else None,
            timeout_seconds=600,
            description=f"sync:{client_id}:{media_type.value}",
            client_id=client_id,
            media_type=media_type.value,
        )

    async def enqueue_or_run(
        self,
        func: Callable[..., Any],
        *,
        fallback: Callable[[], Any] | None = None,
        queue_name: str | None = None,
        timeout_seconds: int = 60,
        retry: Retry | None = DEFAULT_RETRY,
        description: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Enqueue a job and wait for the result; run it inline when Redis is unavailable."""

        async def _run_fallback() -> Any:
            target = fallback or (lambda: func(**kwargs))
            result = target()
            if asyncio.iscoroutine(result):
                return await result
            return result

        if not self._enabled or not self._connection:
            return await _run_fallback()

        def _enqueue_and_wait() -> Any:
            queue = self.get_queue(queue_name)
            enqueue_kwargs: dict[str, Any] = {
                "kwargs": kwargs,
                "job_timeout": timeout_seconds,
                "description": description,
            }
            if retry:
                enqueue_kwargs["retry"] = retry
            job = queue.enqueue(func, **enqueue_kwargs)
            return _wait_for_result(job, timeout_seconds)

        try:
            return await asyncio.to_thread(_enqueue_and_wait)
        except RedisError as exc:
            logger.warning("Falling back to inline execution after queue failure: %s", redact_secrets(str(exc)))
            return await _run_fallback()

    def snapshot(self) -> dict[str, Any]:
        """Return a diagnostic snapshot of queue and worker state."""
        if not self._connection:
            return {
                "status": "offline",
                "queues": [],
                "workers": [],
                "error": "queue connection not initialized",
                "vault": credential_vault.health(),
            }

        queues: list[dict[str, Any]] = []
        for name in self.queue_names:
            queue = Queue(name, connection=self._connection)
            queues.append(
                {
                    "name": name,
                    "size": queue.count,
                    "deferred": len(DeferredJobRegistry(queue=queue)),
                    "scheduled": len(ScheduledJobRegistry(queue=queue)),
                    "started": len(StartedJobRegistry(queue=queue)),
                    "failed": len(FailedJobRegistry(queue=queue)),
                }
            )

        workers: list[dict[str, Any]] = []
        try:
            for worker in Worker.all(connection=self._connection):
                workers.append(
                    {
                        "name": worker.name,
                        "state": getattr(worker, "state", "unknown"),
                        "queues": list(worker.queue_names()),
                        "current_job_id": worker.get_current_job_id(),
                    }
                )
        except RedisError as exc:
            logger.warning("Unable to list workers: %s", exc)

        warnings = [] if workers else ["no_workers"]
        return {
            "status": "online" if not warnings else "degraded",
            "queues": queues,
            "workers": workers,
            "warnings": warnings,
            "checked_at": datetime.now(timezone.utc).isoformat(),
            "vault": credential_vault.health(),
        }


def _wait_for_result(job: Any, timeout_seconds: int) -> Any:
    """Poll a job until it finishes; failed jobs raise RuntimeError."""
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        status = job.get_status(refresh=True)
        if status == "finished":
            return job.return_value()
        if status in {"failed", "stopped", "canceled"}:
            raise RuntimeError(f"Job {job.id} {status}")
        time.sleep(0.5)
    raise TimeoutError(f"Job {job.id} did not finish within {timeout_seconds}s")


task_queue = TaskQueue()
