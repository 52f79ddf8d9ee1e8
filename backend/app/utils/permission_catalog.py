"""
Central registry of building-scoped admin permissions.

The catalog is closed: every permission, category and role template is
defined here and nowhere else. Nothing mutates it at runtime; groups are
tuples/frozensets and the mappings are read-only proxies.

Keep in sync with the frontend permission picker.
"""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Union


class UnknownCatalogEntryError(LookupError):
    """A permission or template name that is not part of the catalog.

    This is a programming error, not a user-facing condition.
    """


class Permission(str, enum.Enum):
    """Fine-grained, building-scoped capability."""

    # Issue management
    VIEW_ALL_ISSUES = "view_all_issues"
    MANAGE_ISSUES = "manage_issues"
    DELETE_ISSUES = "delete_issues"
    EXPORT_ISSUES = "export_issues"

    # Tenant management
    VIEW_ALL_TENANTS = "view_all_tenants"
    MANAGE_TENANTS = "manage_tenants"
    MANAGE_UNIT_REQUESTS = "manage_unit_requests"
    CONTACT_TENANTS = "contact_tenants"

    # Building management
    MANAGE_BUILDING = "manage_building"
    VIEW_BUILDING_ANALYTICS = "view_building_analytics"
    MANAGE_BUILDING_SETTINGS = "manage_building_settings"

    # Communications
    VIEW_ALL_COMMUNICATIONS = "view_all_communications"
    MODERATE_COMMUNICATIONS = "moderate_communications"

    # Administration
    MANAGE_ADMINS = "manage_admins"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    MANAGE_PERMISSIONS = "manage_permissions"

    # Association
    MANAGE_PETITIONS = "manage_petitions"
    MANAGE_MEETINGS = "manage_meetings"
    MANAGE_ASSOCIATION = "manage_association"

    # System
    VIEW_SYSTEM_HEALTH = "view_system_health"
    MANAGE_INTEGRATIONS = "manage_integrations"
    BULK_OPERATIONS = "bulk_operations"


ALL_PERMISSIONS: tuple[Permission, ...] = tuple(Permission)

_VALUES: frozenset[str] = frozenset(p.value for p in Permission)

# ---------------------------------------------------------------------------
# Descriptions (UI)
# ---------------------------------------------------------------------------

PERMISSION_DESCRIPTIONS: Mapping[Permission, str] = MappingProxyType({
    Permission.VIEW_ALL_ISSUES: "View all issues in the building, including private ones",
    Permission.MANAGE_ISSUES: "Change issue status, assign to staff, and moderate content",
    Permission.DELETE_ISSUES: "Permanently delete issues",
    Permission.EXPORT_ISSUES: "Export issue data to CSV or PDF",
    Permission.VIEW_ALL_TENANTS: "Access the complete tenant directory",
    Permission.MANAGE_TENANTS: "Approve tenant requests, transfer units, and manage accounts",
    Permission.MANAGE_UNIT_REQUESTS: "Handle unit assignment and transfer requests",
    Permission.CONTACT_TENANTS: "Send direct messages to tenants",
    Permission.MANAGE_BUILDING: "Edit building information, units, and policies",
    Permission.VIEW_BUILDING_ANALYTICS: "Access detailed building analytics and reports",
    Permission.MANAGE_BUILDING_SETTINGS: "Configure building-wide settings and preferences",
    Permission.VIEW_ALL_COMMUNICATIONS: "View all tenant-landlord communications",
    Permission.MODERATE_COMMUNICATIONS: "Edit or delete inappropriate communications",
    Permission.MANAGE_ADMINS: "Grant or revoke administrative access",
    Permission.VIEW_AUDIT_LOGS: "View security audit logs and admin actions",
    Permission.MANAGE_PERMISSIONS: "Modify permission assignments for users",
    Permission.MANAGE_PETITIONS: "Create, edit, and manage tenant petitions",
    Permission.MANAGE_MEETINGS: "Schedule and manage association meetings",
    Permission.MANAGE_ASSOCIATION: "Overall tenant association management",
    Permission.VIEW_SYSTEM_HEALTH: "Monitor system health and performance",
    Permission.MANAGE_INTEGRATIONS: "Configure third-party integrations",
    Permission.BULK_OPERATIONS: "Perform bulk operations on data",
})

# ---------------------------------------------------------------------------
# Categories (tabbed UI), in display order
# ---------------------------------------------------------------------------

PERMISSION_CATEGORIES: Mapping[str, tuple[Permission, ...]] = MappingProxyType({
    "Issue Management": (
        Permission.VIEW_ALL_ISSUES,
        Permission.MANAGE_ISSUES,
        Permission.DELETE_ISSUES,
        Permission.EXPORT_ISSUES,
    ),
    "Tenant Management": (
        Permission.VIEW_ALL_TENANTS,
        Permission.MANAGE_TENANTS,
        Permission.MANAGE_UNIT_REQUESTS,
        Permission.CONTACT_TENANTS,
    ),
    "Building Management": (
        Permission.MANAGE_BUILDING,
        Permission.VIEW_BUILDING_ANALYTICS,
        Permission.MANAGE_BUILDING_SETTINGS,
    ),
    "Communications": (
        Permission.VIEW_ALL_COMMUNICATIONS,
        Permission.MODERATE_COMMUNICATIONS,
    ),
    "Administration": (
        Permission.MANAGE_ADMINS,
        Permission.VIEW_AUDIT_LOGS,
        Permission.MANAGE_PERMISSIONS,
    ),
    "Association": (
        Permission.MANAGE_PETITIONS,
        Permission.MANAGE_MEETINGS,
        Permission.MANAGE_ASSOCIATION,
    ),
    "System": (
        Permission.VIEW_SYSTEM_HEALTH,
        Permission.MANAGE_INTEGRATIONS,
        Permission.BULK_OPERATIONS,
    ),
})

# ---------------------------------------------------------------------------
# Role templates (bulk provisioning)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleTemplate:
    """Named bundle of permissions used to provision an administrator in one step."""

    name: str
    title: str
    description: str
    permissions: tuple[Permission, ...]


ROLE_TEMPLATES: Mapping[str, RoleTemplate] = MappingProxyType({
    "SUPER_ADMIN": RoleTemplate(
        name="SUPER_ADMIN",
        title="Super Admin",
        description="Complete control over all platform features",
        permissions=ALL_PERMISSIONS,
    ),
    "BUILDING_MANAGER": RoleTemplate(
        name="BUILDING_MANAGER",
        title="Building Manager",
        description="Manage building operations, tenants, and issues",
        permissions=(
            Permission.VIEW_ALL_ISSUES,
            Permission.MANAGE_ISSUES,
            Permission.VIEW_ALL_TENANTS,
            Permission.MANAGE_TENANTS,
            Permission.MANAGE_UNIT_REQUESTS,
            Permission.MANAGE_BUILDING,
            Permission.VIEW_BUILDING_ANALYTICS,
            Permission.VIEW_ALL_COMMUNICATIONS,
            Permission.MANAGE_PETITIONS,
            Permission.MANAGE_MEETINGS,
        ),
    ),
    "OFFICE_STAFF": RoleTemplate(
        name="OFFICE_STAFF",
        title="Office Staff",
        description="Handle tenant requests and view building information",
        permissions=(
            Permission.VIEW_ALL_ISSUES,
            Permission.VIEW_ALL_TENANTS,
            Permission.MANAGE_UNIT_REQUESTS,
            Permission.VIEW_BUILDING_ANALYTICS,
            Permission.CONTACT_TENANTS,
        ),
    ),
    "MAINTENANCE_STAFF": RoleTemplate(
        name="MAINTENANCE_STAFF",
        title="Maintenance Staff",
        description="Manage and resolve maintenance issues",
        permissions=(
            Permission.VIEW_ALL_ISSUES,
            Permission.MANAGE_ISSUES,
            Permission.VIEW_ALL_TENANTS,
        ),
    ),
    "ASSOCIATION_BOARD": RoleTemplate(
        name="ASSOCIATION_BOARD",
        title="Association Board",
        description="Manage community features and tenant association",
        permissions=(
            Permission.VIEW_ALL_ISSUES,
            Permission.VIEW_ALL_TENANTS,
            Permission.MANAGE_PETITIONS,
            Permission.MANAGE_MEETINGS,
            Permission.MANAGE_ASSOCIATION,
            Permission.VIEW_BUILDING_ANALYTICS,
        ),
    ),
})

# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def list_permissions() -> list[Permission]:
    """Every permission in catalog order."""
    return list(ALL_PERMISSIONS)


def parse_permission(value: Union[str, Permission]) -> Permission:
    """Resolve a wire string to a Permission.

    Raises:
        UnknownCatalogEntryError: if *value* is not in the catalog.
    """
    if isinstance(value, Permission):
        return value
    if value not in _VALUES:
        raise UnknownCatalogEntryError(f"Unknown permission {value!r}")
    return Permission(value)


def is_known_permission(value: str) -> bool:
    return value in _VALUES


def describe(permission: Union[str, Permission]) -> str:
    return PERMISSION_DESCRIPTIONS[parse_permission(permission)]


def categories_of() -> dict[str, list[Permission]]:
    """Category name → permissions, in display order."""
    return {name: list(perms) for name, perms in PERMISSION_CATEGORIES.items()}


def category_for(permission: Union[str, Permission]) -> str:
    permission = parse_permission(permission)
    for name, perms in PERMISSION_CATEGORIES.items():
        if permission in perms:
            return name
    # Every permission is categorized; reaching here means the tables drifted
    raise UnknownCatalogEntryError(f"Permission {permission.value!r} has no category")


def template_of(template_name: str) -> list[Permission]:
    """Permissions bundled by the named role template.

    Raises:
        UnknownCatalogEntryError: if the template does not exist.
    """
    return list(get_template(template_name).permissions)


def get_template(template_name: str) -> RoleTemplate:
    try:
        return ROLE_TEMPLATES[template_name]
    except KeyError:
        raise UnknownCatalogEntryError(f"Unknown role template {template_name!r}") from None


def list_templates() -> list[RoleTemplate]:
    return list(ROLE_TEMPLATES.values())
