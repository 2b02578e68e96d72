from __future__ import annotations

import logging

from emtrack.application.dto.auth_dto import SessionContext
from emtrack.application.security.role_matrix import has_permission
from emtrack.domain.errors import PermissionDenied

logger = logging.getLogger(__name__)


def require_permission(ctx: SessionContext | None, permission: str, *, action: str) -> SessionContext:
    """Store-level capability check; the UI hiding a control is not enough."""
    if ctx is None:
        logger.warning("Access denied: anonymous caller attempted %s", action)
        raise PermissionDenied(permission, "Sign in to perform this action")
    if not has_permission(ctx.role, permission):
        logger.warning("Access denied: user %s (%s) attempted %s", ctx.login, ctx.role, action)
        raise PermissionDenied(permission)
    return ctx
