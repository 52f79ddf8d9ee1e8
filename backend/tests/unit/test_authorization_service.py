"""Tests for AuthorizationService (the permission query layer)."""

from datetime import timedelta
from unittest.mock import AsyncMock, Mock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.models.building import Role
from app.models.permission import PermissionAuditLog, PermissionGrant
from app.models.user import User
from app.services.authorization_service import AuthorizationService, authorization_service
from app.services.permission_service import permission_service
from app.utils.datetime_utils import utc_now
from app.utils.permission_catalog import (
    Permission,
    UnknownCatalogEntryError,
    list_permissions,
    template_of,
)


def _make_user(*, is_super_user=False, email=None):
    u = Mock(spec=User)
    u.id = uuid4()
    u.email = email or f"{uuid4().hex[:8]}@example.com"
    u.is_super_user = is_super_user
    return u


# ---------------------------------------------------------------------------
# Mocked
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestHasPermission:
    @pytest.fixture
    def db(self):
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_super_user_always_allowed(self, db):
        """Super-user bypasses role and grant lookups entirely."""
        user = _make_user(is_super_user=True)
        svc = AuthorizationService()
        for permission in list_permissions():
            assert await svc.has_permission(db, user, uuid4(), permission) is True
        db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_super_user_by_configured_email(self, db):
        user = _make_user(email="Owner@TenantHub.org")
        svc = AuthorizationService()
        with patch(
            "app.services.authorization_service.settings.SUPER_USER_EMAILS",
            ["owner@tenanthub.org"],
        ):
            assert await svc.has_permission(db, user, uuid4(), Permission.BULK_OPERATIONS) is True
        db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_building_admin_allowed_without_grants(self, db):
        user = _make_user()
        svc = AuthorizationService()
        find_active = AsyncMock(return_value=None)
        with patch(
            "app.services.authorization_service.role_service.has_role",
            new=AsyncMock(return_value=True),
        ), patch(
            "app.services.authorization_service.permission_grant_crud.find_active",
            new=find_active,
        ):
            assert await svc.has_permission(db, user, uuid4(), Permission.MANAGE_ADMINS) is True
        find_active.assert_not_called()

    @pytest.mark.asyncio
    async def test_active_grant_allows(self, db):
        user = _make_user()
        svc = AuthorizationService()
        with patch(
            "app.services.authorization_service.role_service.has_role",
            new=AsyncMock(return_value=False),
        ), patch(
            "app.services.authorization_service.permission_grant_crud.find_active",
            new=AsyncMock(return_value=Mock(spec=PermissionGrant)),
        ):
            assert await svc.has_permission(db, user, uuid4(), "manage_issues") is True

    @pytest.mark.asyncio
    async def test_no_grant_denies(self, db):
        user = _make_user()
        svc = AuthorizationService()
        with patch(
            "app.services.authorization_service.role_service.has_role",
            new=AsyncMock(return_value=False),
        ), patch(
            "app.services.authorization_service.permission_grant_crud.find_active",
            new=AsyncMock(return_value=None),
        ):
            assert await svc.has_permission(db, user, uuid4(), Permission.MANAGE_ISSUES) is False

    @pytest.mark.asyncio
    async def test_lookup_failure_denies(self, db):
        """Fail closed: a database error is a denial, never an allow."""
        user = _make_user()
        svc = AuthorizationService()
        with patch(
            "app.services.authorization_service.role_service.has_role",
            new=AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down"))),
        ):
            assert await svc.has_permission(db, user, uuid4(), Permission.MANAGE_ISSUES) is False

    @pytest.mark.asyncio
    async def test_grant_lookup_failure_denies(self, db):
        user = _make_user()
        svc = AuthorizationService()
        with patch(
            "app.services.authorization_service.role_service.has_role",
            new=AsyncMock(return_value=False),
        ), patch(
            "app.services.authorization_service.permission_grant_crud.find_active",
            new=AsyncMock(side_effect=RuntimeError("pool exhausted")),
        ):
            assert await svc.has_permission(db, user, uuid4(), Permission.MANAGE_ISSUES) is False

    @pytest.mark.asyncio
    async def test_unknown_permission_raises(self, db):
        user = _make_user()
        svc = AuthorizationService()
        with pytest.raises(UnknownCatalogEntryError):
            await svc.has_permission(db, user, uuid4(), "launch_rockets")

    @pytest.mark.asyncio
    async def test_unknown_permission_raises_even_for_super_user(self, db):
        user = _make_user(is_super_user=True)
        with pytest.raises(UnknownCatalogEntryError):
            await AuthorizationService().has_permission(db, user, uuid4(), "launch_rockets")


@pytest.mark.unit
class TestAnyAllRequire:
    @pytest.fixture
    def db(self):
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_has_any_short_circuits(self, db):
        svc = AuthorizationService()
        svc.has_permission = AsyncMock(side_effect=[False, True, True])
        result = await svc.has_any_permission(
            db, _make_user(), uuid4(),
            [Permission.DELETE_ISSUES, Permission.MANAGE_ISSUES, Permission.EXPORT_ISSUES],
        )
        assert result is True
        assert svc.has_permission.await_count == 2

    @pytest.mark.asyncio
    async def test_has_any_empty_is_false(self, db):
        assert await AuthorizationService().has_any_permission(db, _make_user(), uuid4(), []) is False

    @pytest.mark.asyncio
    async def test_has_all_requires_every_permission(self, db):
        svc = AuthorizationService()
        svc.has_permission = AsyncMock(side_effect=[True, False])
        result = await svc.has_all_permissions(
            db, _make_user(), uuid4(), [Permission.MANAGE_ISSUES, Permission.DELETE_ISSUES]
        )
        assert result is False

    @pytest.mark.asyncio
    async def test_has_all_empty_is_false(self, db):
        assert await AuthorizationService().has_all_permissions(db, _make_user(), uuid4(), []) is False

    @pytest.mark.asyncio
    async def test_require_permission_raises_403(self, db):
        svc = AuthorizationService()
        svc.has_permission = AsyncMock(return_value=False)
        with pytest.raises(HTTPException) as exc_info:
            await svc.require_permission(db, _make_user(), uuid4(), Permission.MANAGE_PERMISSIONS)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_require_permission_denial_is_logged_as_security_event(self, db):
        svc = AuthorizationService()
        svc.has_permission = AsyncMock(return_value=False)
        user = _make_user()
        building_id = uuid4()
        with patch(
            "app.services.authorization_service.error_logging_service"
        ) as mock_logging:
            with pytest.raises(HTTPException):
                await svc.require_permission(db, user, building_id, "manage_admins")

        kwargs = mock_logging.log_security_event.call_args.kwargs
        assert kwargs["event_type"] == "AUTHORIZATION_DENIED"
        assert "manage_admins" in kwargs["message"]
        assert kwargs["user_id"] == str(user.id)
        assert kwargs["building_id"] == str(building_id)

    @pytest.mark.asyncio
    async def test_require_permission_passes(self, db):
        svc = AuthorizationService()
        svc.has_permission = AsyncMock(return_value=True)
        await svc.require_permission(db, _make_user(), uuid4(), Permission.MANAGE_PERMISSIONS)

    @pytest.mark.asyncio
    async def test_require_all_denies_when_one_missing(self, db):
        svc = AuthorizationService()
        svc.has_permission = AsyncMock(side_effect=[True, False])
        with pytest.raises(HTTPException):
            await svc.require_permission(
                db, _make_user(), uuid4(),
                Permission.MANAGE_PERMISSIONS, Permission.MANAGE_ADMINS,
                require_all=True,
            )


# ---------------------------------------------------------------------------
# SQLite integration
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_grant_then_revoke_scenario(db_session, staff_user, building_admin, building):
    """No role, no grants → deny; grant → allow; revoke → deny; two audit entries."""
    P = Permission.MANAGE_BUILDING
    assert await authorization_service.has_permission(db_session, staff_user, building.id, P) is False

    await permission_service.grant(db_session, staff_user.id, building.id, [P], building_admin.id)
    assert await authorization_service.has_permission(db_session, staff_user, building.id, P) is True

    await permission_service.revoke(db_session, staff_user.id, building.id, [P], building_admin.id)
    assert await authorization_service.has_permission(db_session, staff_user, building.id, P) is False

    result = await db_session.execute(
        select(PermissionAuditLog.action)
        .where(
            PermissionAuditLog.user_id == staff_user.id,
            PermissionAuditLog.building_id == building.id,
        )
        .order_by(PermissionAuditLog.created_at)
    )
    assert list(result.scalars().all()) == ["granted", "revoked"]


@pytest.mark.asyncio
async def test_future_expiry_allows_immediately(db_session, staff_user, building_admin, building):
    await permission_service.grant(
        db_session, staff_user.id, building.id, [Permission.EXPORT_ISSUES],
        building_admin.id, expires_at=utc_now() + timedelta(hours=1),
    )
    assert await authorization_service.has_permission(
        db_session, staff_user, building.id, Permission.EXPORT_ISSUES
    ) is True


@pytest.mark.asyncio
async def test_expired_grant_denies_but_history_remains(db_session, staff_user, building_admin, building):
    granted_at = utc_now() - timedelta(days=2)
    db_session.add(
        PermissionGrant(
            id=uuid4(),
            user_id=staff_user.id,
            building_id=building.id,
            permission="view_all_issues",
            granted_at=granted_at,
            expires_at=utc_now() - timedelta(days=1),
            granted_by=building_admin.id,
        )
    )
    db_session.add(
        PermissionAuditLog(
            id=uuid4(),
            user_id=staff_user.id,
            building_id=building.id,
            permission="view_all_issues",
            action="granted",
            performed_by=building_admin.id,
            created_at=granted_at,
        )
    )
    await db_session.commit()

    assert await authorization_service.has_permission(
        db_session, staff_user, building.id, Permission.VIEW_ALL_ISSUES
    ) is False
    assert await permission_service.list_active(db_session, staff_user.id, building.id) == []
    assert len(await permission_service.list_history(db_session, staff_user.id, building.id)) == 1

    result = await db_session.execute(
        select(PermissionAuditLog).where(PermissionAuditLog.user_id == staff_user.id)
    )
    entries = result.scalars().all()
    assert [e.action for e in entries] == ["granted"]


@pytest.mark.asyncio
async def test_building_admin_role_implies_everything(db_session, building_admin, building):
    for permission in list_permissions():
        assert await authorization_service.has_permission(
            db_session, building_admin, building.id, permission
        ) is True


@pytest.mark.asyncio
async def test_building_admin_role_does_not_leak_to_other_building(
    db_session, building_admin, other_building
):
    assert await authorization_service.has_permission(
        db_session, building_admin, other_building.id, Permission.MANAGE_BUILDING
    ) is False


@pytest.mark.asyncio
async def test_tenant_role_grants_nothing(db_session, tenant_user, building):
    assert await authorization_service.get_user_permissions(db_session, tenant_user, building.id) == []


@pytest.mark.asyncio
async def test_super_user_allowed_with_empty_store(db_session, super_user, building):
    assert await authorization_service.has_permission(
        db_session, super_user, building.id, Permission.VIEW_SYSTEM_HEALTH
    ) is True


@pytest.mark.asyncio
async def test_maintenance_template_scenario(db_session, staff_user, building_admin, building):
    added = await permission_service.apply_template(
        db_session, staff_user.id, building.id, "MAINTENANCE_STAFF", building_admin.id
    )

    bundle = template_of("MAINTENANCE_STAFF")
    for permission in bundle:
        assert await authorization_service.has_any_permission(
            db_session, staff_user, building.id, [permission]
        ) is True
    assert await authorization_service.has_all_permissions(
        db_session, staff_user, building.id, bundle
    ) is True

    result = await db_session.execute(
        select(PermissionAuditLog).where(
            PermissionAuditLog.user_id == staff_user.id,
            PermissionAuditLog.action == "granted",
        )
    )
    assert sorted(e.permission for e in result.scalars().all()) == sorted(p.value for p in added)
    assert len(added) == len(set(bundle))


@pytest.mark.asyncio
async def test_get_user_permissions_in_catalog_order(db_session, staff_user, building_admin, building):
    await permission_service.grant(
        db_session, staff_user.id, building.id,
        [Permission.BULK_OPERATIONS, Permission.VIEW_ALL_ISSUES], building_admin.id,
    )
    perms = await authorization_service.get_user_permissions(db_session, staff_user, building.id)
    assert perms == [Permission.VIEW_ALL_ISSUES, Permission.BULK_OPERATIONS]


@pytest.mark.asyncio
async def test_get_user_permissions_skips_retired_values(db_session, staff_user, building):
    db_session.add(
        PermissionGrant(
            id=uuid4(),
            user_id=staff_user.id,
            building_id=building.id,
            permission="manage_parking",
            granted_at=utc_now(),
        )
    )
    await db_session.commit()
    assert await authorization_service.get_user_permissions(db_session, staff_user, building.id) == []


@pytest.mark.asyncio
async def test_get_user_permissions_admin_gets_catalog(db_session, building_admin, building):
    perms = await authorization_service.get_user_permissions(db_session, building_admin, building.id)
    assert perms == list_permissions()


@pytest.mark.asyncio
async def test_is_building_admin(db_session, building_admin, staff_user, give_role, building):
    assert await authorization_service.is_building_admin(db_session, building_admin.id, building.id)
    await give_role(staff_user, building, Role.ASSOCIATION_ADMIN)
    assert not await authorization_service.is_building_admin(db_session, staff_user.id, building.id)
