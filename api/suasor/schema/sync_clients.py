"""Client identity map embedded in every media item.

Invariants:
- At most one entry per ``client_id``; adding a client that is already present
  updates its ``item_id`` in place.
- ``item_id`` is only meaningful inside that client's namespace.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Iterator

from pydantic import BaseModel, Field, RootModel, model_validator

from suasor.models.client import ClientType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncStatus(str, enum.Enum):
    """Last known sync state of an item on one client."""
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    UNKNOWN = "unknown"


class SyncClient(BaseModel):
    """One client's local identifier for a media item."""
    client_id: int
    client_type: ClientType
    item_id: str
    last_synced: datetime | None = None
    sync_status: SyncStatus = SyncStatus.PENDING


class SyncClients(RootModel[list[SyncClient]]):
    """Ordered per-item list of client identities."""

    root: list[SyncClient] = Field(default_factory=list)

    @model_validator(mode="after")
    def _dedupe_clients(self) -> "SyncClients":
        """Collapse duplicate client IDs, keeping the most recent item ID."""
        seen: dict[int, int] = {}
        deduped: list[SyncClient] = []
        for entry in self.root:
            if entry.client_id in seen:
                deduped[seen[entry.client_id]] = entry
                continue
            seen[entry.client_id] = len(deduped)
            deduped.append(entry)
        self.root = deduped
        return self

    def __iter__(self) -> Iterator[SyncClient]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __bool__(self) -> bool:
        return bool(self.root)

    @classmethod
    def single(
        cls,
        client_id: int,
        client_type: ClientType,
        item_id: str,
        *,
        status: SyncStatus = SyncStatus.PENDING,
    ) -> "SyncClients":
        clients = cls()
        clients.add_client(client_id, client_type, item_id, status=status)
        return clients

    def add_client(
        self,
        client_id: int,
        client_type: ClientType,
        item_id: str,
        *,
        status: SyncStatus = SyncStatus.PENDING,
    ) -> SyncClient:
        """Add a client entry, or update the existing entry for ``client_id``."""
        existing = self.get_by_client_id(client_id)
        if existing is not None:
            existing.client_type = client_type
            existing.item_id = item_id
            existing.sync_status = status
            existing.last_synced = _utcnow()
            return existing
        entry = SyncClient(
            client_id=client_id,
            client_type=client_type,
            item_id=item_id,
            last_synced=_utcnow(),
            sync_status=status,
        )
        self.root.append(entry)
        return entry

    def get_by_client_id(self, client_id: int) -> SyncClient | None:
        for entry in self.root:
            if entry.client_id == client_id:
                return entry
        return None

    def get_client_item_id(self, client_id: int) -> str:
        """Return the item ID for ``client_id`` or an empty string."""
        entry = self.get_by_client_id(client_id)
        return entry.item_id if entry else ""

    def is_client_present(self, client_id: int) -> bool:
        return self.get_by_client_id(client_id) is not None

    def remove_client(self, client_id: int) -> bool:
        before = len(self.root)
        self.root = [entry for entry in self.root if entry.client_id != client_id]
        return len(self.root) != before

    def merge(self, other: "SyncClients") -> None:
        """Fold another identity map into this one; an entry for a known client replaces it."""
        for entry in other:
            existing = self.get_by_client_id(entry.client_id)
            if existing is None:
                self.root.append(entry.model_copy())
                continue
            existing.client_type = entry.client_type
            existing.item_id = entry.item_id
            existing.sync_status = entry.sync_status
            existing.last_synced = entry.last_synced

    def update_sync_status(self, client_id: int, status: SyncStatus) -> None:
        entry = self.get_by_client_id(client_id)
        if entry is None:
            return
        entry.sync_status = status
        entry.last_synced = _utcnow()

    def get_sync_status(self, client_id: int) -> tuple[SyncStatus, bool]:
        entry = self.get_by_client_id(client_id)
        if entry is None:
            return SyncStatus.UNKNOWN, False
        return entry.sync_status, True

    def client_ids(self) -> list[int]:
        return [entry.client_id for entry in self.root]
