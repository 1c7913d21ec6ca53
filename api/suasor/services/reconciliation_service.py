"""Match fetched client items against the catalog and persist the result.

Invariants:
- Items are processed one at a time in the order the client returned them.
- A fetched item with a usable client item ID ends up in exactly one row; a
  second pass over the same ``(client_id, client_item_id)`` updates that row.
- Each item is committed on its own. A persistence failure is recorded in
  ``ReconcileResult.failures`` and the batch moves on; cancellation propagates
  and leaves already-committed items in place.

Match order: client item ID, then strong external IDs, then the
``(normalized title, release year, media type)`` key. The title key is a
heuristic; candidates with a conflicting strong external ID, or already mapped
to a different item on the same client, are never linked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable

from suasor.core.config import settings
from suasor.models.client import ClientType
from suasor.repositories.media_items import MediaItemNotFoundError, MediaItemRepository
from suasor.schema.media import MediaRecord, T
from suasor.schema.media_data import ExternalIDs
from suasor.schema.sync_clients import SyncClients, SyncStatus

logger = logging.getLogger("suasor.services.reconciliation")


@dataclass(slots=True)
class ReconcileFailure:
    """An item dropped from the batch because a lookup or write failed."""
    position: int
    client_item_id: str
    title: str
    stage: str
    error: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "client_item_id": self.client_item_id,
            "title": self.title,
            "stage": self.stage,
            "error": self.error,
        }


@dataclass(slots=True)
class SkippedItem:
    position: int
    title: str
    reason: str


@dataclass
class ReconcileResult(Generic[T]):
    """Records written by a reconciliation pass plus everything that was not."""
    items: list[MediaRecord[T]] = field(default_factory=list)
    failures: list[ReconcileFailure] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    linked: int = 0

    @property
    def status(self) -> str:
        if self.failures and self.items:
            return "partial"
        if self.failures:
            return "failed"
        if not self.items:
            return "empty"
        return "synced"

    def summary(self, sample_size: int | None = None) -> dict[str, Any]:
        limit = settings.sync_error_sample_size if sample_size is None else sample_size
        return {
            "status": self.status,
            "processed": len(self.items),
            "created": self.created,
            "updated": self.updated,
            "linked": self.linked,
            "skipped": len(self.skipped),
            "failed": len(self.failures),
            "errors": [failure.as_dict() for failure in self.failures[:limit]],
        }


class MediaReconciler(Generic[T]):
    """Reconcile items from one client into a typed repository."""

    def __init__(
        self,
        repository: MediaItemRepository[T],
        *,
        match_external_ids: bool | None = None,
        match_title_year: bool | None = None,
    ) -> None:
        self.repository = repository
        self.match_external_ids = (
            settings.reconcile_match_external_ids if match_external_ids is None else match_external_ids
        )
        self.match_title_year = (
            settings.reconcile_match_title_year if match_title_year is None else match_title_year
        )

    async def reconcile(
        self,
        client_id: int,
        client_type: ClientType,
        items: Iterable[MediaRecord[T]],
    ) -> ReconcileResult[T]:
        result: ReconcileResult[T] = ReconcileResult()
        media_type = self.repository.media_type
        for position, item in enumerate(items):
            if item.media_type != media_type:
                logger.warning(
                    "Skipping item with mismatched media type",
                    extra={
                        "client_id": client_id,
                        "position": position,
                        "expected": media_type.value,
                        "actual": item.media_type.value if item.media_type else None,
                    },
                )
                result.skipped.append(SkippedItem(position, item.title, "type_mismatch"))
                continue
            client_item_id = item.client_item_id(client_id)
            if not client_item_id:
                logger.warning(
                    "Skipping item without a client item ID",
                    extra={"client_id": client_id, "position": position, "title": item.title},
                )
                result.skipped.append(SkippedItem(position, item.title, "missing_client_item_id"))
                continue

            stage = "lookup_client_item"
            try:
                existing = await self._find_by_client_item(client_id, client_item_id)
                if existing is not None:
                    stage = "update"
                    saved = await self.repository.update(
                        _merge_fetched(existing, item, client_id, client_type, client_item_id)
                    )
                    result.updated += 1
                    result.items.append(saved)
                    continue

                stage = "lookup_external_ids"
                candidate = await self._find_by_external_ids(item, client_id, client_item_id)
                if candidate is None:
                    stage = "lookup_title_year"
                    candidate = await self._find_by_match_key(item, client_id, client_item_id)
                if candidate is not None:
                    stage = "link"
                    saved = await self.repository.update(
                        _merge_fetched(candidate, item, client_id, client_type, client_item_id)
                    )
                    result.linked += 1
                    result.items.append(saved)
                    continue

                stage = "create"
                saved = await self.repository.create(_new_record(item, client_id, client_type, client_item_id))
                result.created += 1
                result.items.append(saved)
            except Exception as exc:
                logger.warning(
                    "Failed to reconcile item",
                    extra={
                        "client_id": client_id,
                        "position": position,
                        "client_item_id": client_item_id,
                        "stage": stage,
                        "error": str(exc),
                    },
                )
                result.failures.append(
                    ReconcileFailure(
                        position=position,
                        client_item_id=client_item_id,
                        title=item.title,
                        stage=stage,
                        error=str(exc) or exc.__class__.__name__,
                    )
                )

        logger.info(
            "Reconciliation completed",
            extra={
                "client_id": client_id,
                "media_type": media_type.value,
                "status": result.status,
                "created_count": result.created,
                "updated_count": result.updated,
                "linked_count": result.linked,
                "skipped_count": len(result.skipped),
                "failed_count": len(result.failures),
            },
        )
        return result

    async def _find_by_client_item(self, client_id: int, client_item_id: str) -> MediaRecord[T] | None:
        try:
            return await self.repository.get_by_client_item_id(client_id, client_item_id)
        except MediaItemNotFoundError:
            return None

    async def _find_by_external_ids(
        self, item: MediaRecord[T], client_id: int, client_item_id: str
    ) -> MediaRecord[T] | None:
        if not self.match_external_ids or not item.external_ids.strong():
            return None
        for candidate in await self.repository.get_by_external_ids(item.external_ids):
            if _can_link(candidate, item, client_id, client_item_id):
                return candidate
        return None

    async def _find_by_match_key(
        self, item: MediaRecord[T], client_id: int, client_item_id: str
    ) -> MediaRecord[T] | None:
        if not self.match_title_year or not item.title:
            return None
        for candidate in await self.repository.find_by_match_key(item.title, item.release_year):
            if _can_link(candidate, item, client_id, client_item_id):
                return candidate
        return None


def _can_link(candidate: MediaRecord[Any], item: MediaRecord[Any], client_id: int, client_item_id: str) -> bool:
    """Reject candidates that are provably a different work."""
    if candidate.external_ids.conflicts_with(item.external_ids):
        return False
    mapped = candidate.sync_clients.get_client_item_id(client_id)
    return not mapped or mapped == client_item_id


def _merge_fetched(
    existing: MediaRecord[T],
    fetched: MediaRecord[T],
    client_id: int,
    client_type: ClientType,
    client_item_id: str,
) -> MediaRecord[T]:
    """Overwrite ``existing`` with fetched values and register the client entry."""
    sync_clients = SyncClients.model_validate(existing.sync_clients.model_dump())
    sync_clients.add_client(client_id, client_type, client_item_id, status=SyncStatus.SUCCESS)
    external_ids = ExternalIDs.model_validate(existing.external_ids.model_dump())
    external_ids.merge(fetched.external_ids)
    return type(existing)(
        id=existing.id,
        uuid=existing.uuid,
        media_type=existing.media_type,
        title=fetched.title or existing.title,
        release_date=fetched.release_date if fetched.release_date is not None else existing.release_date,
        release_year=fetched.release_year if fetched.release_year is not None else existing.release_year,
        data=fetched.data,
        sync_clients=sync_clients,
        external_ids=external_ids,
        stream_url=fetched.stream_url or existing.stream_url,
        download_url=fetched.download_url or existing.download_url,
        created_at=existing.created_at,
    )


def _new_record(
    fetched: MediaRecord[T],
    client_id: int,
    client_type: ClientType,
    client_item_id: str,
) -> MediaRecord[T]:
    """Build a fresh record whose identity map holds only this client."""
    return type(fetched)(
        media_type=fetched.media_type,
        title=fetched.title,
        release_date=fetched.release_date,
        release_year=fetched.release_year,
        data=fetched.data,
        sync_clients=SyncClients.single(client_id, client_type, client_item_id, status=SyncStatus.SUCCESS),
        external_ids=ExternalIDs.model_validate(fetched.external_ids.model_dump()),
        stream_url=fetched.stream_url,
        download_url=fetched.download_url,
    )
