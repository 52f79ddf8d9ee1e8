"""User model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.db_types import UUID
from app.utils.datetime_utils import utc_now_lambda


class User(Base):
    """Application user.

    Authentication is owned by the identity provider; this row only carries
    profile data and the platform-wide super-user flag.
    """

    __tablename__ = "users"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    display_name = Column(String(255))

    is_active = Column(Boolean, default=True, nullable=False)
    # Platform-wide override, independent of any building
    is_super_user = Column(Boolean, default=False, nullable=False)

    last_login_at = Column(DateTime)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    # Relationships
    building_roles = relationship(
        "BuildingRole", back_populates="user", cascade="all, delete-orphan"
    )
    tenancies = relationship("Tenancy", back_populates="user")
    identities = relationship(
        "UserIdentity", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        if self.display_name:
            return self.display_name
        parts = [p for p in [self.first_name, self.last_name] if p]
        return " ".join(parts) if parts else self.email

    def __repr__(self):
        return f"<User {self.email}>"
