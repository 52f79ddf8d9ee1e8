"""Building-scoped admin permission grant models."""

import uuid
from typing import Final

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.db_types import UUID
from app.utils.datetime_utils import utc_now_lambda

AUDIT_ACTIONS: Final[tuple] = ("granted", "revoked")


class PermissionGrant(Base):
    """One user's entitlement to one catalog permission within one building.

    A row is active while ``revoked_at`` is NULL and ``expires_at`` is NULL or
    in the future. Expired and revoked rows are kept; the history of a
    (user, building, permission) triple is the sequence of its rows.
    """

    __tablename__ = "admin_permissions"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    building_id = Column(
        UUID,
        ForeignKey("buildings.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Value of app.utils.permission_catalog.Permission
    permission = Column(String(64), nullable=False)

    granted_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    granted_by = Column(
        UUID,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    revoked_at = Column(DateTime, nullable=True)
    revoked_by = Column(
        UUID,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    user = relationship("User", foreign_keys=[user_id])
    granted_by_user = relationship("User", foreign_keys=[granted_by])

    __table_args__ = (
        # Fast lookup: "what can this user do in this building?"
        Index("ix_admin_permissions_user_building", "user_id", "building_id"),
    )

    def is_active_at(self, now) -> bool:
        if self.revoked_at is not None:
            return False
        return self.expires_at is None or self.expires_at > now

    def __repr__(self) -> str:
        return f"<PermissionGrant {self.user_id!s} {self.permission} @ {self.building_id!s}>"


# At most one unrevoked row per (user, building, permission)
Index(
    "uq_admin_permissions_unrevoked",
    PermissionGrant.user_id,
    PermissionGrant.building_id,
    PermissionGrant.permission,
    unique=True,
    postgresql_where=PermissionGrant.revoked_at.is_(None),
    sqlite_where=PermissionGrant.revoked_at.is_(None),
)


class PermissionAuditLog(Base):
    """Immutable record of a grant or revoke.

    Rows are never updated or deleted. User IDs are plain columns (no FK) so
    the history survives user deletion.
    """

    __tablename__ = "permission_audit_logs"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID, nullable=False)
    building_id = Column(UUID, nullable=False)
    permission = Column(String(64), nullable=False)
    # 'granted' | 'revoked'
    action = Column(String(20), nullable=False)
    performed_by = Column(UUID, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "action IN ('granted', 'revoked')", name="ck_permission_audit_logs_action"
        ),
        Index("ix_permission_audit_building_created", "building_id", "created_at"),
        Index("ix_permission_audit_user_building", "user_id", "building_id"),
    )

    def __repr__(self) -> str:
        return f"<PermissionAuditLog {self.action!r} {self.permission} user={self.user_id!s}>"
