"""Pydantic schemas for building-scoped admin permissions."""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.models.building import Role
from app.utils.datetime_utils import to_naive_utc, utc_now
from app.utils.permission_catalog import Permission, is_known_permission


def _user_id_field():
    return Field(..., validation_alias=AliasChoices("user_id", "userId"))


def _building_id_field():
    return Field(..., validation_alias=AliasChoices("building_id", "buildingId"))


def _validate_permissions(v: list[str]) -> list[Permission]:
    invalid = [p for p in v if not is_known_permission(p)]
    if invalid:
        raise ValueError(f"Unknown permissions: {invalid}")
    return [Permission(p) for p in v]


def _validate_expiry(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    v = to_naive_utc(v)
    if v <= utc_now():
        raise ValueError("expires_at must be in the future")
    return v


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class GrantPermissionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = _user_id_field()
    building_id: UUID = _building_id_field()
    permissions: list[str] = Field(..., min_length=1)
    expires_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("expires_at", "expiresAt")
    )

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: list[str]) -> list[Permission]:
        return _validate_permissions(v)

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _validate_expiry(v)


class RevokePermissionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = _user_id_field()
    building_id: UUID = _building_id_field()
    permissions: list[str] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=1000)

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: list[str]) -> list[Permission]:
        return _validate_permissions(v)


class ApplyTemplateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = _user_id_field()
    building_id: UUID = _building_id_field()
    template: str = Field(..., validation_alias=AliasChoices("template", "templateName"))
    expires_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("expires_at", "expiresAt")
    )

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _validate_expiry(v)


class RoleChangeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID = _user_id_field()
    building_id: UUID = _building_id_field()
    role: Role


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class PermissionChangeResponse(BaseModel):
    success: bool = True
    changed: list[str] = []


class GrantResponse(BaseModel):
    id: UUID
    user_id: UUID
    building_id: UUID
    permission: str
    granted_at: datetime
    expires_at: Optional[datetime]
    granted_by: Optional[UUID]

    model_config = {"from_attributes": True}


class AuditUserSummary(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None


class AuditLogResponse(BaseModel):
    id: UUID
    user_id: UUID
    building_id: UUID
    permission: str
    action: Literal["granted", "revoked"]
    performed_by: UUID
    reason: Optional[str]
    created_at: datetime
    # Populated in the endpoint layer
    user: Optional[AuditUserSummary] = None
    performer: Optional[AuditUserSummary] = None

    model_config = {"from_attributes": True}


class PermissionInfo(BaseModel):
    name: str
    description: str


class CategoryResponse(BaseModel):
    name: str
    permissions: list[PermissionInfo]


class TemplateResponse(BaseModel):
    name: str
    title: str
    description: str
    permissions: list[str]


class MyPermissionsResponse(BaseModel):
    building_id: UUID
    permissions: list[str]
    roles: list[str]
    is_super_user: bool
    is_current_tenant: bool
