"""Authorization query layer: the single place permission checks are decided.

``has_permission`` short-circuits in order:
  1. global super-user (``users.is_super_user`` or SUPER_USER_EMAILS) → allow
  2. BUILDING_ADMIN role in the building → allow (implies every permission)
  3. active (unrevoked, unexpired) grant of exactly this permission → allow
  4. otherwise → deny

Checks fail closed: any error while looking up roles or grants is logged
and treated as a denial.
"""

from __future__ import annotations

import logging
from typing import Iterable, Union
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.crud.permission import permission_grant_crud
from app.models.building import Role
from app.models.user import User
from app.services.error_logging_service import error_logging_service
from app.services.role_service import role_service
from app.utils.datetime_utils import utc_now
from app.utils.permission_catalog import (
    Permission,
    is_known_permission,
    list_permissions,
    parse_permission,
)

logger = logging.getLogger(__name__)

PermissionLike = Union[str, Permission]


class AuthorizationService:
    """Answers "may this user do X in this building"."""

    def is_super_user(self, user: User) -> bool:
        if user.is_super_user:
            return True
        return bool(user.email) and user.email.lower() in settings.SUPER_USER_EMAILS

    async def is_building_admin(
        self, db: AsyncSession, user_id: UUID, building_id: UUID
    ) -> bool:
        return await role_service.has_role(db, user_id, building_id, Role.BUILDING_ADMIN)

    async def has_permission(
        self,
        db: AsyncSession,
        user: User,
        building_id: UUID,
        permission: PermissionLike,
    ) -> bool:
        """Return True if *user* holds *permission* in the building.

        Raises:
            UnknownCatalogEntryError: *permission* is not in the catalog.
        """
        permission = parse_permission(permission)

        if self.is_super_user(user):
            return True

        try:
            if await self.is_building_admin(db, user.id, building_id):
                return True

            grant = await permission_grant_crud.find_active(
                db, user.id, building_id, permission.value, utc_now()
            )
        except Exception:
            logger.exception(
                "[authz.check] DENY, lookup failed | user=%s building=%s permission=%s",
                user.id, building_id, permission.value,
            )
            return False

        if grant is None:
            logger.debug(
                "[authz.check] DENY, no active grant | user=%s building=%s permission=%s",
                user.id, building_id, permission.value,
            )
            return False
        return True

    async def has_any_permission(
        self,
        db: AsyncSession,
        user: User,
        building_id: UUID,
        permissions: Iterable[PermissionLike],
    ) -> bool:
        """True iff at least one permission is held. Empty input → False."""
        for permission in permissions:
            if await self.has_permission(db, user, building_id, permission):
                return True
        return False

    async def has_all_permissions(
        self,
        db: AsyncSession,
        user: User,
        building_id: UUID,
        permissions: Iterable[PermissionLike],
    ) -> bool:
        """True iff every permission is held. Empty input → False."""
        checked = False
        for permission in permissions:
            checked = True
            if not await self.has_permission(db, user, building_id, permission):
                return False
        return checked

    async def get_user_permissions(
        self, db: AsyncSession, user: User, building_id: UUID
    ) -> list[Permission]:
        """Effective permissions in catalog order (whole catalog for admins)."""
        if self.is_super_user(user):
            return list_permissions()

        try:
            if await self.is_building_admin(db, user.id, building_id):
                return list_permissions()
            grants = await permission_grant_crud.list_active(
                db, user.id, building_id, utc_now()
            )
        except Exception:
            logger.exception(
                "[authz.list] lookup failed, returning none | user=%s building=%s",
                user.id, building_id,
            )
            return []

        held: set[Permission] = set()
        for grant in grants:
            if not is_known_permission(grant.permission):
                logger.warning(
                    "[authz.list] ignoring grant for retired permission %r | grant=%s",
                    grant.permission, grant.id,
                )
                continue
            held.add(Permission(grant.permission))
        return [p for p in list_permissions() if p in held]

    async def require_permission(
        self,
        db: AsyncSession,
        user: User,
        building_id: UUID,
        *permissions: PermissionLike,
        require_all: bool = False,
    ) -> None:
        """Like *has_any_permission* (or *has_all_permissions* when
        ``require_all``), but raises HTTP 403 on denial."""
        check = self.has_all_permissions if require_all else self.has_any_permission
        if not await check(db, user, building_id, permissions):
            error_logging_service.log_security_event(
                logger,
                event_type="AUTHORIZATION_DENIED",
                message=f"required {'all' if require_all else 'any'} of "
                f"{[parse_permission(p).value for p in permissions]}",
                user_id=str(user.id),
                building_id=str(building_id),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )


authorization_service = AuthorizationService()
