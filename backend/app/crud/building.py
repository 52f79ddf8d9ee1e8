"""CRUD operations for buildings, roles and tenancies."""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.building import BuildingRole, Role, Tenancy, Unit


class BuildingCRUD:
    """Role and tenancy lookups scoped to a building."""

    @staticmethod
    async def find_role(
        db: AsyncSession, user_id: UUID, building_id: UUID, role: Role
    ) -> Optional[BuildingRole]:
        result = await db.execute(
            select(BuildingRole).where(
                BuildingRole.user_id == user_id,
                BuildingRole.building_id == building_id,
                BuildingRole.role == role,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_roles(
        db: AsyncSession, user_id: UUID, building_id: Optional[UUID] = None
    ) -> list[BuildingRole]:
        stmt = select(BuildingRole).where(BuildingRole.user_id == user_id)
        if building_id is not None:
            stmt = stmt.where(BuildingRole.building_id == building_id)
        result = await db.execute(stmt.order_by(BuildingRole.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def find_current_tenancy(
        db: AsyncSession, user_id: UUID, building_id: UUID
    ) -> Optional[Tenancy]:
        """Return the user's current tenancy in any unit of the building."""
        result = await db.execute(
            select(Tenancy)
            .join(Unit, Unit.id == Tenancy.unit_id)
            .where(
                Tenancy.user_id == user_id,
                Tenancy.is_current.is_(True),
                Unit.building_id == building_id,
            )
        )
        return result.scalars().first()


building_crud = BuildingCRUD()
