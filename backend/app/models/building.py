"""Building, Unit, Tenancy and BuildingRole models."""

import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.db_types import UUID
from app.utils.datetime_utils import utc_now_lambda


class Role(str, enum.Enum):
    """Coarse structural role scoped to one building."""

    TENANT = "TENANT"
    ASSOCIATION_ADMIN = "ASSOCIATION_ADMIN"
    BUILDING_ADMIN = "BUILDING_ADMIN"


class Building(Base):
    """A residential building (the tenant of this multi-tenant app)."""

    __tablename__ = "buildings"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    address = Column(String(500))
    city = Column(String(100))
    state = Column(String(50))
    zip_code = Column(String(20))
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)

    units = relationship("Unit", back_populates="building", cascade="all, delete-orphan")
    roles = relationship("BuildingRole", back_populates="building", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Building {self.name}>"


class Unit(Base):
    """An apartment inside a building."""

    __tablename__ = "units"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    building_id = Column(
        UUID, ForeignKey("buildings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    unit_number = Column(String(20), nullable=False)
    floor = Column(Integer)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    building = relationship("Building", back_populates="units")
    tenancies = relationship("Tenancy", back_populates="unit", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("building_id", "unit_number", name="uq_units_building_number"),
    )

    def __repr__(self):
        return f"<Unit {self.unit_number}>"


class Tenancy(Base):
    """Links a user to a unit for a time range."""

    __tablename__ = "tenancies"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    unit_id = Column(UUID, ForeignKey("units.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_current = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    unit = relationship("Unit", back_populates="tenancies")
    user = relationship("User", back_populates="tenancies")

    __table_args__ = (Index("ix_tenancies_user_current", "user_id", "is_current"),)


# At most one current tenancy per unit
Index(
    "uq_tenancies_current_unit",
    Tenancy.unit_id,
    unique=True,
    postgresql_where=Tenancy.is_current.is_(True),
    sqlite_where=Tenancy.is_current.is_(True),
)


class BuildingRole(Base):
    """Structural role a user holds in a building."""

    __tablename__ = "building_roles"

    id = Column(UUID, primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    building_id = Column(UUID, ForeignKey("buildings.id", ondelete="CASCADE"), nullable=False)
    role = Column(SQLEnum(Role, name="building_role"), nullable=False)
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)

    user = relationship("User", back_populates="building_roles")
    building = relationship("Building", back_populates="roles")

    __table_args__ = (
        UniqueConstraint("user_id", "building_id", "role", name="uq_building_roles_user_building_role"),
        Index("ix_building_roles_building", "building_id"),
    )

    def __repr__(self) -> str:
        return f"<BuildingRole {self.user_id!s} {self.role} @ {self.building_id!s}>"
