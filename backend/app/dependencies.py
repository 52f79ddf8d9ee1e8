"""FastAPI dependencies for authentication and authorization."""

from typing import Optional, Union
from uuid import UUID

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User
from app.services.authentication_service import authentication_service
from app.services.authorization_service import authorization_service
from app.utils.permission_catalog import Permission, parse_permission

# HTTP Bearer token scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from the bearer token.

    Raises:
        HTTPException: 401 if the token is invalid or the user is unknown,
            403 if the account is inactive
    """
    return await authentication_service.authenticate(db, credentials.credentials)


async def get_building_id(
    building_id: Optional[UUID] = Query(None, description="Building ID"),
    building_id_camel: Optional[UUID] = Query(None, alias="buildingId", include_in_schema=False),
) -> UUID:
    """Building scope from the query string (`building_id` or `buildingId`)."""
    value = building_id or building_id_camel
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Building ID is required",
        )
    return value


def require_building_permission(
    *permissions: Union[str, Permission], require_all: bool = False
):
    """
    Build a dependency that admits users holding any of *permissions* (all of
    them with ``require_all``) in the building named by the ``building_id``
    query parameter.

    Usage::

        @router.get("/audit")
        async def audit(
            building_id: UUID = Depends(get_building_id),
            current_user: User = Depends(
                require_building_permission(Permission.VIEW_AUDIT_LOGS)
            ),
        ): ...

    Raises:
        UnknownCatalogEntryError: at route definition time, for a typo'd permission.
    """
    required = tuple(parse_permission(p) for p in permissions)
    if not required:
        raise ValueError("require_building_permission needs at least one permission")

    async def _check(
        building_id: UUID = Depends(get_building_id),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        await authorization_service.require_permission(
            db, current_user, building_id, *required, require_all=require_all
        )
        return current_user

    return _check
