from __future__ import annotations

from typing import Final, Literal, cast

Role = Literal["admin", "contributor", "view_only"]
Permission = Literal[
    "create",
    "update",
    "delete",
    "manage_users",
    "export",
    "view_reports",
    "manage_system",
]

_ROLE_PERMISSIONS: Final[dict[Role, frozenset[Permission]]] = {
    "admin": frozenset(
        {
            "create",
            "update",
            "delete",
            "manage_users",
            "export",
            "view_reports",
            "manage_system",
        }
    ),
    "contributor": frozenset({"create", "update", "export", "view_reports"}),
    "view_only": frozenset({"export", "view_reports"}),
}

# camelCase aliases ("canCreate", ...).
_LEGACY_NAMES: Final[dict[str, Permission]] = {
    "canCreate": "create",
    "canUpdate": "update",
    "canDelete": "delete",
    "canManageUsers": "manage_users",
    "canExport": "export",
    "canViewReports": "view_reports",
    "canManageSystem": "manage_system",
}


def normalize_permission(name: str) -> Permission | None:
    if name in _LEGACY_NAMES:
        return _LEGACY_NAMES[name]
    if name in _ROLE_PERMISSIONS["admin"]:
        return cast(Permission, name)
    return None


def has_permission(role: str | None, permission: str) -> bool:
    if role not in _ROLE_PERMISSIONS:
        return False
    normalized = normalize_permission(permission)
    if normalized is None:
        return False
    return normalized in _ROLE_PERMISSIONS[cast(Role, role)]


def permissions_for(role: str) -> frozenset[Permission]:
    return _ROLE_PERMISSIONS.get(cast(Role, role), frozenset())


def can_create(role: str | None) -> bool:
    return has_permission(role, "create")


def can_update(role: str | None) -> bool:
    return has_permission(role, "update")


def can_delete(role: str | None) -> bool:
    return has_permission(role, "delete")


def can_manage_users(role: str | None) -> bool:
    return has_permission(role, "manage_users")


def can_manage_system(role: str | None) -> bool:
    return has_permission(role, "manage_system")
