"""Read-only permission endpoints for the signed-in user."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import get_building_id, get_current_user
from app.models.user import User
from app.schemas.permission import (
    CategoryResponse,
    MyPermissionsResponse,
    PermissionInfo,
    TemplateResponse,
)
from app.services.authorization_service import authorization_service
from app.services.role_service import role_service
from app.services.tenancy_service import tenancy_service
from app.utils.permission_catalog import categories_of, describe, list_templates

router = APIRouter()


@router.get("", response_model=MyPermissionsResponse)
async def get_my_permissions(
    building_id: UUID = Depends(get_building_id),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Effective permissions, roles and tenancy of the current user in a building."""
    permissions = await authorization_service.get_user_permissions(db, current_user, building_id)
    roles = await role_service.list_roles(db, current_user.id, building_id)
    is_tenant = await tenancy_service.is_current_tenant(db, current_user.id, building_id)
    return MyPermissionsResponse(
        building_id=building_id,
        permissions=[p.value for p in permissions],
        roles=[r.value for r in roles],
        is_super_user=authorization_service.is_super_user(current_user),
        is_current_tenant=is_tenant,
    )


@router.get("/catalog", response_model=list[CategoryResponse])
async def get_catalog(current_user: User = Depends(get_current_user)):
    """Every permission with its description, grouped by category."""
    return [
        CategoryResponse(
            name=name,
            permissions=[PermissionInfo(name=p.value, description=describe(p)) for p in perms],
        )
        for name, perms in categories_of().items()
    ]


@router.get("/templates", response_model=list[TemplateResponse])
async def get_templates(current_user: User = Depends(get_current_user)):
    """Role templates available for bulk provisioning."""
    return [
        TemplateResponse(
            name=t.name,
            title=t.title,
            description=t.description,
            permissions=[p.value for p in t.permissions],
        )
        for t in list_templates()
    ]
