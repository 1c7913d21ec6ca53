"""Persisted outcome of a client reconciliation pass."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from suasor.db.base_class import JSON_COMPATIBLE, Base, utcnow, value_enum
from suasor.models.media import MediaType


class SyncRunStatus(str, enum.Enum):
    """Lifecycle states for a sync run."""
    RUNNING = "running"
    SYNCED = "synced"
    PARTIAL = "partial"
    EMPTY = "empty"
    FAILED = "failed"


class SyncRun(Base):
    """Counts and sampled errors for one fetch-and-reconcile pass."""

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    media_type: Mapped[MediaType] = mapped_column(
        value_enum(MediaType, "media_type"),
        nullable=False,
    )
    status: Mapped[SyncRunStatus] = mapped_column(
        value_enum(SyncRunStatus, "sync_run_status"),
        default=SyncRunStatus.RUNNING,
        nullable=False,
    )
    fetched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    linked: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list | None] = mapped_column(JSON_COMPATIBLE, default=list)
    error: Mapped[str | None] = mapped_column(String(500))
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
