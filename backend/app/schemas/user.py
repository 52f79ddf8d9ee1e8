"""User Pydantic schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class BuildingRoleResponse(BaseModel):
    building_id: UUID
    role: str

    model_config = {"from_attributes": True}


class CurrentUserResponse(BaseModel):
    """The authenticated user as seen by the frontend."""

    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    is_super_user: bool
    building_roles: list[BuildingRoleResponse] = []
