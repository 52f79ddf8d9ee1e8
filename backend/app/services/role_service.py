"""Building role management (TENANT / ASSOCIATION_ADMIN / BUILDING_ADMIN)."""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import unit_of_work
from app.crud.building import building_crud
from app.models.building import BuildingRole, Role
from app.services.permission_audit_service import permission_audit_service
from app.services.permission_service import PermissionUpdateError

logger = logging.getLogger(__name__)


class RoleService:
    """Reads and writes BuildingRole rows; writes are audited."""

    async def has_role(
        self, db: AsyncSession, user_id: UUID, building_id: UUID, role: Role
    ) -> bool:
        return await building_crud.find_role(db, user_id, building_id, role) is not None

    async def list_roles(
        self, db: AsyncSession, user_id: UUID, building_id: UUID
    ) -> list[Role]:
        rows = await building_crud.list_roles(db, user_id, building_id)
        return [r.role for r in rows]

    async def grant_role(
        self,
        db: AsyncSession,
        user_id: UUID,
        building_id: UUID,
        role: Role,
        granted_by: UUID,
    ) -> bool:
        """Give *user_id* the role in the building.

        Returns:
            True if a new row was created, False if the user already held it.

        Raises:
            PermissionUpdateError: the write failed and was rolled back.
        """
        try:
            async with unit_of_work(db):
                if await building_crud.find_role(db, user_id, building_id, role) is not None:
                    return False
                db.add(BuildingRole(user_id=user_id, building_id=building_id, role=role))
                await db.flush()
                await permission_audit_service.record_admin_action(
                    db,
                    actor_id=granted_by,
                    action="GRANT_ROLE",
                    entity_type="BuildingRole",
                    entity_id=f"{user_id}-{building_id}",
                    details={
                        "target_user_id": str(user_id),
                        "building_id": str(building_id),
                        "role": role.value,
                    },
                )
        except SQLAlchemyError as exc:
            logger.exception(
                "[role.grant] FAILED, rolled back | user=%s building=%s role=%s",
                user_id, building_id, role.value,
            )
            raise PermissionUpdateError("Failed to update role") from exc

        logger.info(
            "[role.grant] user=%s building=%s role=%s by=%s",
            user_id, building_id, role.value, granted_by,
        )
        return True

    async def revoke_role(
        self,
        db: AsyncSession,
        user_id: UUID,
        building_id: UUID,
        role: Role,
        revoked_by: UUID,
    ) -> bool:
        """Remove the role. Returns False (and audits nothing) if it was not held."""
        try:
            async with unit_of_work(db):
                row = await building_crud.find_role(db, user_id, building_id, role)
                if row is None:
                    return False
                await db.delete(row)
                await db.flush()
                await permission_audit_service.record_admin_action(
                    db,
                    actor_id=revoked_by,
                    action="REVOKE_ROLE",
                    entity_type="BuildingRole",
                    entity_id=f"{user_id}-{building_id}",
                    details={
                        "target_user_id": str(user_id),
                        "building_id": str(building_id),
                        "role": role.value,
                    },
                )
        except SQLAlchemyError as exc:
            logger.exception(
                "[role.revoke] FAILED, rolled back | user=%s building=%s role=%s",
                user_id, building_id, role.value,
            )
            raise PermissionUpdateError("Failed to update role") from exc

        logger.info(
            "[role.revoke] user=%s building=%s role=%s by=%s",
            user_id, building_id, role.value, revoked_by,
        )
        return True


role_service = RoleService()
