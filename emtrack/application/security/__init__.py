from emtrack.application.security.guards import require_permission
from emtrack.application.security.role_matrix import (
    Permission,
    Role,
    can_create,
    can_delete,
    can_manage_system,
    can_manage_users,
    can_update,
    has_permission,
    normalize_permission,
    permissions_for,
)

__all__ = [
    "Permission",
    "Role",
    "can_create",
    "can_delete",
    "can_manage_system",
    "can_manage_users",
    "can_update",
    "has_permission",
    "normalize_permission",
    "permissions_for",
    "require_permission",
]
