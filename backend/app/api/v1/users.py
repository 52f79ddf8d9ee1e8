"""Current-user endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import get_current_user
from app.crud.building import building_crud
from app.models.user import User
from app.schemas.user import BuildingRoleResponse, CurrentUserResponse
from app.services.authorization_service import authorization_service

router = APIRouter()


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Profile, super-user status and building roles of the signed-in user."""
    roles = await building_crud.list_roles(db, current_user.id)
    return CurrentUserResponse(
        id=current_user.id,
        email=current_user.email,
        first_name=current_user.first_name,
        last_name=current_user.last_name,
        display_name=current_user.display_name,
        is_super_user=authorization_service.is_super_user(current_user),
        building_roles=[
            BuildingRoleResponse(building_id=r.building_id, role=r.role.value) for r in roles
        ],
    )
