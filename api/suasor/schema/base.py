"""Shared schema base classes for API responses."""

from datetime import datetime

from pydantic import BaseModel


class ORMModel(BaseModel):
    """Response model that reads attributes straight off SQLAlchemy rows."""

    model_config = {"from_attributes": True}


class Timestamped(ORMModel):
    """Integer-keyed resource with creation and update times."""
    id: int
    created_at: datetime
    updated_at: datetime
