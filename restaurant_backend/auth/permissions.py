"""Role based access for the dashboard."""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = 'admin'
    MANAGER = 'manager'
    STAFF = 'staff'


MANAGE_TABLES = 'manage_tables'
MANAGE_ZONES = 'manage_zones'
MANAGE_SETTINGS = 'manage_settings'
VIEW_STATISTICS = 'view_statistics'
EDIT_STATISTICS = 'edit_statistics'
MANAGE_USERS = 'manage_users'

ROLE_PERMISSIONS: dict[UserRole, frozenset[str]] = {
    UserRole.ADMIN: frozenset({
        MANAGE_TABLES, MANAGE_ZONES, MANAGE_SETTINGS, VIEW_STATISTICS, EDIT_STATISTICS, MANAGE_USERS,
    }),
    UserRole.MANAGER: frozenset({
        MANAGE_TABLES, MANAGE_ZONES, MANAGE_SETTINGS, VIEW_STATISTICS, EDIT_STATISTICS,
    }),
    UserRole.STAFF: frozenset({VIEW_STATISTICS}),
}


def parse_role(value: str | None) -> UserRole | None:
    try:
        return UserRole((value or '').strip().lower())
    except ValueError:
        return None


def permissions_for(role: str | None) -> frozenset[str]:
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS[parsed]


def has_permission(role: str | None, permission: str) -> bool:
    return permission in permissions_for(role)
