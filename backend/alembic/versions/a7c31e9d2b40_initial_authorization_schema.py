"""Initial schema: users, buildings, roles and building-scoped admin permissions.

Revision ID: a7c31e9d2b40
Revises:
Create Date: 2026-10-17

- users / user_identities: app users and their external IdP subjects
- buildings / units / tenancies: who lives where
- building_roles: TENANT / ASSOCIATION_ADMIN / BUILDING_ADMIN per building
- admin_permissions: fine-grained grants; revoked rows are kept
- permission_audit_logs: immutable grant/revoke history
- audit_logs: other admin actions (role changes)
"""

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "a7c31e9d2b40"
down_revision: Union[str, None] = None
branch_labels = None
depends_on = None

building_role = postgresql.ENUM(
    "TENANT", "ASSOCIATION_ADMIN", "BUILDING_ADMIN", name="building_role", create_type=False
)


def upgrade() -> None:
    building_role.create(op.get_bind(), checkfirst=True)

    # ------------------------------------------------------------------
    # users / user_identities
    # ------------------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("is_super_user", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_identities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_subject", sa.String(255), nullable=False),
        sa.Column("provider_email", sa.String(255), nullable=True),
        sa.Column("linked_at", sa.DateTime(), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            "provider", "provider_subject", name="uq_user_identities_provider_subject"
        ),
    )
    op.create_index("ix_user_identities_user_id", "user_identities", ["user_id"])

    # ------------------------------------------------------------------
    # buildings / units / tenancies
    # ------------------------------------------------------------------
    op.create_table(
        "buildings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(50), nullable=True),
        sa.Column("zip_code", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "units",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "building_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("buildings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("unit_number", sa.String(20), nullable=False),
        sa.Column("floor", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("building_id", "unit_number", name="uq_units_building_number"),
    )
    op.create_index("ix_units_building_id", "units", ["building_id"])

    op.create_table(
        "tenancies",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "unit_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("units.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tenancies_user_current", "tenancies", ["user_id", "is_current"])
    op.create_index(
        "uq_tenancies_current_unit",
        "tenancies",
        ["unit_id"],
        unique=True,
        postgresql_where=sa.text("is_current"),
    )

    # ------------------------------------------------------------------
    # building_roles
    # ------------------------------------------------------------------
    op.create_table(
        "building_roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "building_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("buildings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", building_role, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "building_id", "role", name="uq_building_roles_user_building_role"
        ),
    )
    op.create_index("ix_building_roles_building", "building_roles", ["building_id"])

    # ------------------------------------------------------------------
    # admin_permissions
    # ------------------------------------------------------------------
    op.create_table(
        "admin_permissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "building_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("buildings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("permission", sa.String(64), nullable=False),
        sa.Column("granted_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column(
            "granted_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column(
            "revoked_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index(
        "ix_admin_permissions_user_building", "admin_permissions", ["user_id", "building_id"]
    )
    op.create_index(
        "uq_admin_permissions_unrevoked",
        "admin_permissions",
        ["user_id", "building_id", "permission"],
        unique=True,
        postgresql_where=sa.text("revoked_at IS NULL"),
    )

    # ------------------------------------------------------------------
    # permission_audit_logs (no FKs: history outlives users)
    # ------------------------------------------------------------------
    op.create_table(
        "permission_audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("building_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("permission", sa.String(64), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("performed_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "action IN ('granted', 'revoked')", name="ck_permission_audit_logs_action"
        ),
    )
    op.create_index(
        "ix_permission_audit_building_created",
        "permission_audit_logs",
        ["building_id", "created_at"],
    )
    op.create_index(
        "ix_permission_audit_user_building",
        "permission_audit_logs",
        ["user_id", "building_id"],
    )

    # ------------------------------------------------------------------
    # audit_logs
    # ------------------------------------------------------------------
    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(100), nullable=False),
        sa.Column("metadata", postgresql.JSON, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_permission_audit_user_building", table_name="permission_audit_logs")
    op.drop_index("ix_permission_audit_building_created", table_name="permission_audit_logs")
    op.drop_table("permission_audit_logs")

    op.drop_index("uq_admin_permissions_unrevoked", table_name="admin_permissions")
    op.drop_index("ix_admin_permissions_user_building", table_name="admin_permissions")
    op.drop_table("admin_permissions")

    op.drop_index("ix_building_roles_building", table_name="building_roles")
    op.drop_table("building_roles")

    op.drop_index("uq_tenancies_current_unit", table_name="tenancies")
    op.drop_index("ix_tenancies_user_current", table_name="tenancies")
    op.drop_table("tenancies")
    op.drop_index("ix_units_building_id", table_name="units")
    op.drop_table("units")
    op.drop_table("buildings")

    op.drop_index("ix_user_identities_user_id", table_name="user_identities")
    op.drop_table("user_identities")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    building_role.drop(op.get_bind(), checkfirst=True)
