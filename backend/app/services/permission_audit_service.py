"""Append-only audit trail for permission grants, revokes and role changes.

``record`` never commits: it writes into the caller's unit of work so the
audit row and the grant/revoke it describes succeed or fail together.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.permission import permission_grant_crud
from app.models.audit_log import AuditLog
from app.models.permission import AUDIT_ACTIONS, PermissionAuditLog
from app.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class PermissionAuditService:
    """Writes and reads permission audit entries."""

    async def record(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        building_id: UUID,
        permission: str,
        action: str,
        performed_by: UUID,
        reason: Optional[str] = None,
    ) -> PermissionAuditLog:
        """Append one entry inside the current transaction.

        Flushes immediately so a failed write aborts the caller's batch.
        """
        if action not in AUDIT_ACTIONS:
            raise ValueError(f"Invalid audit action {action!r}")

        entry = PermissionAuditLog(
            user_id=user_id,
            building_id=building_id,
            permission=permission,
            action=action,
            performed_by=performed_by,
            reason=reason,
            created_at=utc_now(),
        )
        db.add(entry)
        await db.flush()
        logger.debug(
            "[permission.audit] %s %s | user=%s building=%s by=%s",
            action, permission, user_id, building_id, performed_by,
        )
        return entry

    async def record_admin_action(
        self,
        db: AsyncSession,
        *,
        actor_id: UUID,
        action: str,
        entity_type: str,
        entity_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        """Append a general admin-action entry (e.g. GRANT_ROLE) inside the current transaction."""
        entry = AuditLog(
            user_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
            created_at=utc_now(),
        )
        db.add(entry)
        await db.flush()
        return entry

    async def query(
        self,
        db: AsyncSession,
        building_id: UUID,
        search: Optional[str] = None,
        action: Optional[str] = None,
        user_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PermissionAuditLog]:
        """Audit entries for a building, newest first."""
        if action is not None and action not in AUDIT_ACTIONS:
            raise ValueError(f"Invalid audit action {action!r}")
        return await permission_grant_crud.list_audit(
            db,
            building_id=building_id,
            search=search or None,
            action=action,
            user_id=user_id,
            limit=limit,
            offset=offset,
        )


permission_audit_service = PermissionAuditService()
