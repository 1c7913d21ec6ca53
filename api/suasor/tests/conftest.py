"""Shared pytest fixtures for API tests and database isolation."""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "test")

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from suasor.api.deps import get_db
from suasor.clients.observability import client_monitor
from suasor.core.config import settings
from suasor.db.base import Base
from suasor.main import app
from suasor.models.client import Client, ClientType
from suasor.services.credential_vault import credential_vault


@pytest_asyncio.fixture(autouse=True)
async def _reset_client_monitor():
    await client_monitor.reset()
    yield
    await client_monitor.reset()


@pytest_asyncio.fixture()
async def session() -> AsyncSession:
    database_url = settings.test_database_url or "sqlite+aiosqlite://"
    url = make_url(database_url)
    schema_name: str | None = None
    if url.drivername.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(database_url, future=True)
    if url.drivername.startswith("postgresql"):
        # Isolate each test run in its own schema for parallel-friendly cleanup.
        schema_name = f"test_{uuid.uuid4().hex}"
        engine = engine.execution_options(schema_translate_map={None: schema_name})
    async with engine.begin() as conn:
        if schema_name:
            await conn.exec_driver_sql(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"')
        await conn.run_sync(Base.metadata.create_all)
    TestingSession = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    try:
        async with TestingSession() as session:
            yield session
    finally:
        async with engine.begin() as conn:
            if schema_name:
                await conn.exec_driver_sql(f'DROP SCHEMA IF EXISTS "{schema_name}" CASCADE')
            else:
                await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture()
async def client(session: AsyncSession) -> AsyncClient:
    async def _get_test_db():
        yield session

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as async_client:
        yield async_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def make_client(session: AsyncSession):
    """Insert a configured client row directly, bypassing adapter validation."""

    async def _make(
        client_type: ClientType = ClientType.JELLYFIN,
        *,
        name: str | None = None,
        base_url: str = "http://media.local",
        enabled: bool = True,
        **secrets: str,
    ) -> Client:
        row = Client(
            name=name or f"{client_type.value}-{uuid.uuid4().hex[:6]}",
            client_type=client_type,
            category=client_type.category,
            base_url=base_url,
            enabled=enabled,
            encrypted_secret=credential_vault.encrypt(secrets or {"api_key": "secret-key"}),
        )
        session.add(row)
        await session.commit()
        await session.refresh(row)
        return row

    return _make
