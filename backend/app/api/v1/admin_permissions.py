"""Admin endpoints for granting, revoking and auditing building permissions.

Security rules enforced here:
  - every write requires MANAGE_PERMISSIONS in the target building
  - the audit trail additionally requires VIEW_AUDIT_LOGS
  - authorization is decided before any lookup of the target user, so a
    denied caller learns nothing about who exists
"""

from typing import Iterable, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.crud.user import user_crud
from app.dependencies import get_building_id, get_current_user, require_building_permission
from app.models.permission import PermissionAuditLog
from app.models.user import User
from app.schemas.permission import (
    ApplyTemplateRequest,
    AuditLogResponse,
    AuditUserSummary,
    GrantPermissionsRequest,
    GrantResponse,
    PermissionChangeResponse,
    RevokePermissionsRequest,
)
from app.services.authorization_service import authorization_service
from app.services.permission_audit_service import permission_audit_service
from app.services.permission_service import permission_service
from app.utils.permission_catalog import Permission, UnknownCatalogEntryError, get_template

router = APIRouter()

DEFAULT_REVOKE_REASON = "Permission removed via admin interface"


def _summary(user: Optional[User]) -> Optional[AuditUserSummary]:
    if user is None:
        return None
    return AuditUserSummary(id=user.id, email=user.email, name=user.full_name)


async def _enrich_audit(
    entries: Iterable[PermissionAuditLog], db: AsyncSession
) -> list[AuditLogResponse]:
    """Attach target-user and performer summaries to each audit entry."""
    entries = list(entries)
    user_ids = set()
    for e in entries:
        user_ids.add(e.user_id)
        user_ids.add(e.performed_by)
    users = await user_crud.get_many(db, user_ids)

    out = []
    for e in entries:
        r = AuditLogResponse.model_validate(e)
        r.user = _summary(users.get(e.user_id))
        r.performer = _summary(users.get(e.performed_by))
        out.append(r)
    return out


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get("/audit", response_model=list[AuditLogResponse])
async def list_audit(
    building_id: UUID = Depends(get_building_id),
    search: Optional[str] = Query(None, max_length=255),
    action: Optional[Literal["granted", "revoked"]] = Query(None),
    limit: int = Query(settings.AUDIT_LOG_DEFAULT_LIMIT, ge=1, le=settings.AUDIT_LOG_MAX_LIMIT),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(
        require_building_permission(
            Permission.MANAGE_PERMISSIONS, Permission.VIEW_AUDIT_LOGS, require_all=True
        )
    ),
    db: AsyncSession = Depends(get_db),
):
    """Grant/revoke history for a building, newest first."""
    entries = await permission_audit_service.query(
        db,
        building_id=building_id,
        search=search,
        action=action,
        limit=limit,
        offset=offset,
    )
    return await _enrich_audit(entries, db)


@router.get("/users/{user_id}", response_model=list[GrantResponse])
async def list_user_grants(
    user_id: UUID = Path(..., description="Target user ID"),
    building_id: UUID = Depends(get_building_id),
    current_user: User = Depends(require_building_permission(Permission.MANAGE_PERMISSIONS)),
    db: AsyncSession = Depends(get_db),
):
    """Active grants a user holds in the building."""
    grants = await permission_service.list_active(db, user_id, building_id)
    return [GrantResponse.model_validate(g) for g in grants]


# ---------------------------------------------------------------------------
# Write endpoints
# ---------------------------------------------------------------------------


@router.post("/grant", response_model=PermissionChangeResponse)
async def grant_permissions(
    body: GrantPermissionsRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Grant permissions in a building. Already-held permissions are skipped."""
    await authorization_service.require_permission(
        db, current_user, body.building_id, Permission.MANAGE_PERMISSIONS
    )

    added = await permission_service.grant(
        db,
        user_id=body.user_id,
        building_id=body.building_id,
        permissions=body.permissions,
        granted_by=current_user.id,
        expires_at=body.expires_at,
    )
    return PermissionChangeResponse(changed=[p.value for p in added])


@router.post("/revoke", response_model=PermissionChangeResponse)
async def revoke_permissions(
    body: RevokePermissionsRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Revoke permissions. Permissions the user does not hold are ignored."""
    await authorization_service.require_permission(
        db, current_user, body.building_id, Permission.MANAGE_PERMISSIONS
    )

    removed = await permission_service.revoke(
        db,
        user_id=body.user_id,
        building_id=body.building_id,
        permissions=body.permissions,
        revoked_by=current_user.id,
        reason=body.reason or DEFAULT_REVOKE_REASON,
    )
    return PermissionChangeResponse(changed=[p.value for p in removed])


@router.post("/templates/apply", response_model=PermissionChangeResponse)
async def apply_template(
    body: ApplyTemplateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Grant every permission bundled by a role template."""
    await authorization_service.require_permission(
        db, current_user, body.building_id, Permission.MANAGE_PERMISSIONS
    )

    try:
        template = get_template(body.template)
    except UnknownCatalogEntryError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    added = await permission_service.apply_template(
        db,
        user_id=body.user_id,
        building_id=body.building_id,
        template_name=template.name,
        granted_by=current_user.id,
        expires_at=body.expires_at,
    )
    return PermissionChangeResponse(changed=[p.value for p in added])
