"""API router composition for all route groups."""

from fastapi import APIRouter

from .routes import clients, media, ops

api_router = APIRouter()
api_router.include_router(clients.router, prefix="/clients", tags=["clients"])
api_router.include_router(media.router, prefix="/media", tags=["media"])
api_router.include_router(ops.router, prefix="/ops", tags=["ops"])
