"""Client configuration records and adapter construction."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from suasor.clients.base import ClientConfig, ClientConfigurationError, MediaClient
from suasor.clients.registry import ClientRegistry
from suasor.models.client import Client, ClientType
from suasor.models.sync_run import SyncRun
from suasor.schema.clients import ClientCreate, ClientRead, ClientUpdate
from suasor.services.credential_vault import SECRET_FIELDS, credential_vault
from suasor.utils.redaction import redact_secrets

logger = logging.getLogger("suasor.services.clients")


class ClientNotFoundError(LookupError):
    """Raised when a client ID does not exist."""


class ClientAlreadyExistsError(ValueError):
    """Raised when a client with the same type and name is already configured."""


async def list_clients(session: AsyncSession, *, client_type: ClientType | None = None) -> list[Client]:
    stmt = select(Client).order_by(Client.id)
    if client_type is not None:
        stmt = stmt.where(Client.client_type == client_type)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_client(session: AsyncSession, client_id: int) -> Client:
    client = await session.get(Client, client_id)
    if client is None:
        raise ClientNotFoundError(f"Client {client_id} not found")
    return client


async def create_client(
    session: AsyncSession, payload: ClientCreate, *, registry: ClientRegistry | None = None
) -> Client:
    """Store a client; with a registry, the adapter must accept the configuration first."""
    secrets = payload.model_dump(include=set(SECRET_FIELDS))
    if registry is not None:
        registry.create(
            0,
            payload.client_type,
            ClientConfig(base_url=payload.base_url, user_id=payload.user_id, **secrets),
        )
    client = Client(
        name=payload.name,
        client_type=payload.client_type,
        category=payload.client_type.category,
        base_url=payload.base_url,
        user_id=payload.user_id,
        enabled=payload.enabled,
        encrypted_secret=credential_vault.encrypt(secrets),
    )
    session.add(client)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ClientAlreadyExistsError(
            f"A {payload.client_type.value} client named {payload.name!r} already exists"
        ) from exc
    await session.refresh(client)
    logger.info("Client created", extra={"client_id": client.id, "client_type": client.client_type.value})
    return client


async def update_client(session: AsyncSession, client_id: int, payload: ClientUpdate) -> Client:
    """Apply a partial update; secrets given in the payload replace the stored ones field by field."""
    client = await get_client(session, client_id)
    changes = payload.model_dump(exclude_unset=True)
    secret_changes = {key: changes.pop(key) for key in SECRET_FIELDS if key in changes}
    for key, value in changes.items():
        if value is not None or key == "user_id":
            setattr(client, key, value)
    if secret_changes:
        current = credential_vault.decrypt(client.encrypted_secret) or {}
        current.update(secret_changes)
        client.encrypted_secret = credential_vault.encrypt(current)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ClientAlreadyExistsError(f"A client named {client.name!r} already exists") from exc
    await session.refresh(client)
    return client


async def delete_client(session: AsyncSession, client_id: int) -> None:
    client = await get_client(session, client_id)
    await session.execute(delete(SyncRun).where(SyncRun.client_id == client_id))
    await session.delete(client)
    await session.commit()
    logger.info("Client deleted", extra={"client_id": client_id})


def serialize_client(client: Client) -> ClientRead:
    read = ClientRead.model_validate(client)
    read.has_credentials = bool(client.encrypted_secret)
    return read


def client_config(client: Client) -> ClientConfig:
    """Decrypt a client's secrets into adapter configuration."""
    secrets: dict[str, Any] | None = credential_vault.decrypt(client.encrypted_secret)
    if secrets is None:
        raise ClientConfigurationError(f"Stored credentials for client {client.id} cannot be decrypted")
    return ClientConfig(
        base_url=client.base_url,
        api_key=secrets.get("api_key"),
        username=secrets.get("username"),
        password=secrets.get("password"),
        token=secrets.get("token"),
        user_id=client.user_id,
    )


async def build_media_client(
    session: AsyncSession, client_id: int, registry: ClientRegistry
) -> tuple[Client, MediaClient]:
    """Load a client record and build its adapter through ``registry``."""
    client = await get_client(session, client_id)
    if not client.enabled:
        raise ClientConfigurationError(f"Client {client_id} is disabled")
    return client, registry.create(client.id, client.client_type, client_config(client))


async def note_error(session: AsyncSession, client: Client, error: str) -> None:
    client.last_error = redact_secrets(error)[:490]
    await session.commit()


async def clear_error(session: AsyncSession, client: Client) -> None:
    if client.last_error is None:
        return
    client.last_error = None
    await session.commit()
