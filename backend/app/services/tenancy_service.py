"""Tenancy lookups used as context for permission checks."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.building import building_crud


class TenancyService:
    async def is_current_tenant(
        self, db: AsyncSession, user_id: UUID, building_id: UUID
    ) -> bool:
        """Does the user currently occupy a unit in this building?"""
        tenancy = await building_crud.find_current_tenancy(db, user_id, building_id)
        return tenancy is not None


tenancy_service = TenancyService()
