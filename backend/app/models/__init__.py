"""SQLAlchemy models package."""

from app.models.user import User
from app.models.identity import UserIdentity
from app.models.building import Building, BuildingRole, Role, Tenancy, Unit
from app.models.permission import PermissionAuditLog, PermissionGrant
from app.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserIdentity",
    "Building",
    "BuildingRole",
    "Role",
    "Tenancy",
    "Unit",
    "PermissionGrant",
    "PermissionAuditLog",
    "AuditLog",
]
