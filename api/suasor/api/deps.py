from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from suasor.clients.registry import ClientRegistry
from suasor.db.session import get_session


async def get_db() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


def get_client_registry(request: Request) -> ClientRegistry:
    """Return the adapter registry built at application startup."""
    return request.app.state.client_registry
