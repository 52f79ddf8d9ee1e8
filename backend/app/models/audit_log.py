"""General-purpose audit log for admin actions outside the permission grant table."""

import uuid

from sqlalchemy import JSON, Column, DateTime, Index, String

from app.core.database import Base
from app.core.db_types import UUID
from app.utils.datetime_utils import utc_now_lambda


class AuditLog(Base):
    """Append-only record of an admin action, e.g. a building role change."""

    __tablename__ = "audit_logs"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    # Who performed the action
    user_id = Column(UUID, nullable=False)
    # e.g. 'GRANT_ROLE', 'REVOKE_ROLE'
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(100), nullable=False)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id"),)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action!r} {self.entity_type}:{self.entity_id}>"
