"""Project Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProjectOut(BaseModel):
    """Response schema for a project."""

    id: UUID
    name: str
    user_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectNameRequest(BaseModel):
    """Request body for creating or renaming a project.

    ``name`` is trimmed and checked by the service so an empty value gets the
    product error message.
    """

    name: str | None = None
