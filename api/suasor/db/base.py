"""Import all models here for Alembic autogenerate."""

from suasor.db.base_class import Base
from suasor.models import client, media, sync_run  # noqa: F401

__all__ = ["Base"]
