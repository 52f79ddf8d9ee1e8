"""CRUD operations for permission grants and their audit log."""

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.permission import PermissionAuditLog, PermissionGrant
from app.models.user import User


def _active_clause(now: datetime):
    return (
        PermissionGrant.revoked_at.is_(None),
        or_(PermissionGrant.expires_at.is_(None), PermissionGrant.expires_at > now),
    )


def _escape_like(term: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PermissionGrantCRUD:
    """CRUD helpers for PermissionGrant and PermissionAuditLog."""

    @staticmethod
    async def find_active(
        db: AsyncSession,
        user_id: UUID,
        building_id: UUID,
        permission: str,
        now: datetime,
    ) -> Optional[PermissionGrant]:
        """Return the unrevoked, unexpired grant for this exact triple, if any."""
        result = await db.execute(
            select(PermissionGrant).where(
                PermissionGrant.user_id == user_id,
                PermissionGrant.building_id == building_id,
                PermissionGrant.permission == permission,
                *_active_clause(now),
            )
        )
        return result.scalars().first()

    @staticmethod
    async def find_unrevoked(
        db: AsyncSession,
        user_id: UUID,
        building_id: UUID,
        permissions: Iterable[str],
    ) -> dict[str, PermissionGrant]:
        """Map permission → unrevoked row (expired rows included)."""
        permissions = list(permissions)
        if not permissions:
            return {}
        result = await db.execute(
            select(PermissionGrant).where(
                PermissionGrant.user_id == user_id,
                PermissionGrant.building_id == building_id,
                PermissionGrant.permission.in_(permissions),
                PermissionGrant.revoked_at.is_(None),
            )
        )
        return {g.permission: g for g in result.scalars().all()}

    @staticmethod
    async def list_active(
        db: AsyncSession, user_id: UUID, building_id: UUID, now: datetime
    ) -> list[PermissionGrant]:
        result = await db.execute(
            select(PermissionGrant)
            .where(
                PermissionGrant.user_id == user_id,
                PermissionGrant.building_id == building_id,
                *_active_clause(now),
            )
            .order_by(PermissionGrant.permission)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_history(
        db: AsyncSession, user_id: UUID, building_id: UUID
    ) -> list[PermissionGrant]:
        """Every grant row for (user, building), newest first, including inert ones.

        Expired rows closed out by a re-grant have revoked_at set and
        revoked_by NULL.
        """
        result = await db.execute(
            select(PermissionGrant)
            .where(
                PermissionGrant.user_id == user_id,
                PermissionGrant.building_id == building_id,
            )
            .order_by(PermissionGrant.granted_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_audit(
        db: AsyncSession,
        building_id: UUID,
        search: Optional[str] = None,
        action: Optional[str] = None,
        user_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PermissionAuditLog]:
        """Audit entries for a building, newest first.

        ``search`` is a case-insensitive substring match over the target
        user's and performer's email/name and the permission name.
        """
        stmt = select(PermissionAuditLog).where(PermissionAuditLog.building_id == building_id)

        if action:
            stmt = stmt.where(PermissionAuditLog.action == action)
        if user_id is not None:
            stmt = stmt.where(PermissionAuditLog.user_id == user_id)

        if search:
            target = aliased(User)
            performer = aliased(User)
            pattern = f"%{_escape_like(search.strip())}%"
            stmt = (
                stmt.outerjoin(target, target.id == PermissionAuditLog.user_id)
                .outerjoin(performer, performer.id == PermissionAuditLog.performed_by)
                .where(
                    or_(
                        *(
                            column.ilike(pattern, escape="\\")
                            for column in (
                                PermissionAuditLog.permission,
                                target.email,
                                target.first_name,
                                target.last_name,
                                performer.email,
                                performer.first_name,
                                performer.last_name,
                            )
                        )
                    )
                )
            )

        stmt = (
            stmt.order_by(PermissionAuditLog.created_at.desc(), PermissionAuditLog.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())


permission_grant_crud = PermissionGrantCRUD()
