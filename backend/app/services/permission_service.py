"""Permission service: the grant store for building-scoped admin permissions.

Usage::

    # Grant (idempotent per permission):
    added = await permission_service.grant(
        db, user_id=staff.id, building_id=building.id,
        permissions=[Permission.MANAGE_ISSUES], granted_by=current_user.id,
    )

    # Provision from a role template:
    await permission_service.apply_template(
        db, user_id=staff.id, building_id=building.id,
        template_name="MAINTENANCE_STAFF", granted_by=current_user.id,
    )

    # Revoke (no-op for permissions not currently held):
    await permission_service.revoke(
        db, user_id=staff.id, building_id=building.id,
        permissions=[Permission.MANAGE_ISSUES], revoked_by=current_user.id,
    )

Each batch is one transaction: grant/revoke rows and their audit entries
commit together or not at all. Revoked rows are marked, never deleted.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional, Union
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import unit_of_work
from app.core.logging_config import get_logger, log_permission_change
from app.crud.permission import permission_grant_crud
from app.models.permission import PermissionGrant
from app.services.permission_audit_service import permission_audit_service
from app.utils.datetime_utils import to_naive_utc, utc_now
from app.utils.permission_catalog import Permission, parse_permission, template_of

logger = logging.getLogger(__name__)
event_logger = get_logger("app.permissions.events")


class PermissionUpdateError(Exception):
    """A grant/revoke batch failed and was rolled back."""


class PermissionService:
    """Service layer for permission grant lifecycle management."""

    # -------------------------------------------------------------------------
    # Write operations
    # -------------------------------------------------------------------------

    async def grant(
        self,
        db: AsyncSession,
        user_id: UUID,
        building_id: UUID,
        permissions: Iterable[Union[str, Permission]],
        granted_by: UUID,
        expires_at: Optional[datetime] = None,
    ) -> list[Permission]:
        """Grant each permission that is not already active.

        An already-active grant is left untouched (its expiry included) and
        produces no audit entry. An expired row for the same triple is closed
        out before the fresh row is inserted.

        Returns:
            The permissions actually newly granted, in request order.

        Raises:
            UnknownCatalogEntryError: a permission is not in the catalog.
            PermissionUpdateError: the batch failed and was rolled back.
        """
        requested = _dedupe(parse_permission(p) for p in permissions)
        expires_at = to_naive_utc(expires_at)
        now = utc_now()
        added: list[Permission] = []

        try:
            async with unit_of_work(db):
                existing = await permission_grant_crud.find_unrevoked(
                    db, user_id, building_id, [p.value for p in requested]
                )
                for permission in requested:
                    row = existing.get(permission.value)
                    if row is not None and row.is_active_at(now):
                        continue
                    if row is not None:
                        # Expired but never revoked: retire it so the new row
                        # is the only unrevoked one. revoked_by stays NULL.
                        row.revoked_at = now
                        await db.flush()

                    try:
                        async with db.begin_nested():
                            db.add(
                                PermissionGrant(
                                    user_id=user_id,
                                    building_id=building_id,
                                    permission=permission.value,
                                    granted_at=now,
                                    expires_at=expires_at,
                                    granted_by=granted_by,
                                )
                            )
                            await db.flush()
                    except IntegrityError:
                        # A concurrent grant may have committed the same
                        # permission after find_unrevoked ran.
                        held = await permission_grant_crud.find_unrevoked(
                            db, user_id, building_id, [permission.value]
                        )
                        if permission.value not in held:
                            raise
                        logger.info(
                            "[permission.grant] already held (concurrent) | user=%s building=%s perm=%s",
                            user_id, building_id, permission.value,
                        )
                        continue

                    await permission_audit_service.record(
                        db,
                        user_id=user_id,
                        building_id=building_id,
                        permission=permission.value,
                        action="granted",
                        performed_by=granted_by,
                    )
                    added.append(permission)
        except SQLAlchemyError as exc:
            logger.exception(
                "[permission.grant] FAILED, rolled back | user=%s building=%s by=%s",
                user_id, building_id, granted_by,
            )
            raise PermissionUpdateError("Failed to update permissions") from exc

        logger.info(
            "[permission.grant] user=%s building=%s by=%s added=%s skipped=%d",
            user_id, building_id, granted_by,
            [p.value for p in added], len(requested) - len(added),
        )
        if added:
            log_permission_change(
                event_logger, "granted", str(building_id), str(user_id), str(granted_by),
                [p.value for p in added],
            )
        return added

    async def revoke(
        self,
        db: AsyncSession,
        user_id: UUID,
        building_id: UUID,
        permissions: Iterable[Union[str, Permission]],
        revoked_by: UUID,
        reason: Optional[str] = None,
    ) -> list[Permission]:
        """Mark each currently-active grant as revoked.

        Permissions the user does not currently hold (never granted, already
        revoked, or expired) are skipped without an audit entry.

        Returns:
            The permissions actually revoked, in request order.

        Raises:
            UnknownCatalogEntryError: a permission is not in the catalog.
            PermissionUpdateError: the batch failed and was rolled back.
        """
        requested = _dedupe(parse_permission(p) for p in permissions)
        now = utc_now()
        removed: list[Permission] = []

        try:
            async with unit_of_work(db):
                existing = await permission_grant_crud.find_unrevoked(
                    db, user_id, building_id, [p.value for p in requested]
                )
                for permission in requested:
                    row = existing.get(permission.value)
                    if row is None or not row.is_active_at(now):
                        continue
                    row.revoked_at = now
                    row.revoked_by = revoked_by
                    await db.flush()
                    await permission_audit_service.record(
                        db,
                        user_id=user_id,
                        building_id=building_id,
                        permission=permission.value,
                        action="revoked",
                        performed_by=revoked_by,
                        reason=reason,
                    )
                    removed.append(permission)
        except SQLAlchemyError as exc:
            logger.exception(
                "[permission.revoke] FAILED, rolled back | user=%s building=%s by=%s",
                user_id, building_id, revoked_by,
            )
            raise PermissionUpdateError("Failed to update permissions") from exc

        logger.info(
            "[permission.revoke] user=%s building=%s by=%s removed=%s",
            user_id, building_id, revoked_by, [p.value for p in removed],
        )
        if removed:
            log_permission_change(
                event_logger, "revoked", str(building_id), str(user_id), str(revoked_by),
                [p.value for p in removed], reason=reason,
            )
        return removed

    async def apply_template(
        self,
        db: AsyncSession,
        user_id: UUID,
        building_id: UUID,
        template_name: str,
        granted_by: UUID,
        expires_at: Optional[datetime] = None,
    ) -> list[Permission]:
        """Grant every permission bundled by a role template."""
        return await self.grant(
            db,
            user_id=user_id,
            building_id=building_id,
            permissions=template_of(template_name),
            granted_by=granted_by,
            expires_at=expires_at,
        )

    # -------------------------------------------------------------------------
    # Read operations
    # -------------------------------------------------------------------------

    async def list_active(
        self, db: AsyncSession, user_id: UUID, building_id: UUID
    ) -> list[PermissionGrant]:
        """Grants with no revocation and expires_at NULL or in the future."""
        return await permission_grant_crud.list_active(db, user_id, building_id, utc_now())

    async def list_history(
        self, db: AsyncSession, user_id: UUID, building_id: UUID
    ) -> list[PermissionGrant]:
        """Every grant row for (user, building), newest first.

        A row with ``revoked_at`` set and ``revoked_by`` NULL was not revoked
        by anyone: it had already expired and was closed out when the same
        permission was granted again. Explicit revocations always carry
        ``revoked_by``.
        """
        return await permission_grant_crud.list_history(db, user_id, building_id)


def _dedupe(permissions: Iterable[Permission]) -> list[Permission]:
    seen: set[Permission] = set()
    out: list[Permission] = []
    for p in permissions:
        if p not in seen:
            seen.add(p)
            out.append(p)
    return out


permission_service = PermissionService()
