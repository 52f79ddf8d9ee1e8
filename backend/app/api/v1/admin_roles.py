"""Admin endpoints for building roles (TENANT / ASSOCIATION_ADMIN / BUILDING_ADMIN).

BUILDING_ADMIN implies every permission in the building, so changing roles
requires both MANAGE_PERMISSIONS and MANAGE_ADMINS.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.permission import PermissionChangeResponse, RoleChangeRequest
from app.services.authorization_service import authorization_service
from app.services.role_service import role_service
from app.utils.permission_catalog import Permission

router = APIRouter()


async def _require_role_admin(db: AsyncSession, user: User, body: RoleChangeRequest) -> None:
    await authorization_service.require_permission(
        db,
        user,
        body.building_id,
        Permission.MANAGE_PERMISSIONS,
        Permission.MANAGE_ADMINS,
        require_all=True,
    )


@router.post("/grant", response_model=PermissionChangeResponse)
async def grant_role(
    body: RoleChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _require_role_admin(db, current_user, body)
    created = await role_service.grant_role(
        db,
        user_id=body.user_id,
        building_id=body.building_id,
        role=body.role,
        granted_by=current_user.id,
    )
    return PermissionChangeResponse(changed=[body.role.value] if created else [])


@router.post("/revoke", response_model=PermissionChangeResponse)
async def revoke_role(
    body: RoleChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _require_role_admin(db, current_user, body)
    removed = await role_service.revoke_role(
        db,
        user_id=body.user_id,
        building_id=body.building_id,
        role=body.role,
        revoked_by=current_user.id,
    )
    return PermissionChangeResponse(changed=[body.role.value] if removed else [])
