from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from emtrack.application.dto.audit_dto import AuditChange
from emtrack.application.dto.auth_dto import (
    CreateUserRequest,
    ProfileUpdateRequest,
    SessionContext,
    UpdateUserRequest,
    User,
)
from emtrack.application.dto.common import new_id, utc_now
from emtrack.application.security import require_permission
from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.auth_service import AuthService, pin_matches
from emtrack.application.services.record_service import diff_fields, validate_fields
from emtrack.domain.constants import EntityType, UserRole
from emtrack.domain.errors import NotFound, PermissionDenied, ValidationError
from emtrack.infrastructure.db.repositories.user_repo import UserRepository
from emtrack.infrastructure.db.session import session_scope
from emtrack.infrastructure.security.password_hash import hash_pin

logger = logging.getLogger(__name__)

MIN_PIN_LENGTH = 3
_PIN_CHANGE = AuditChange(field="pin", old_value="Hidden", new_value="Updated")


def _mask_pin(changes: list[AuditChange]) -> list[AuditChange]:
    return [_PIN_CHANGE if c.field == "pin" else c for c in changes]


class UserAdminService:
    def __init__(
        self,
        user_repo: UserRepository | None = None,
        audit: AuditLogger | None = None,
        session_factory: Callable = session_scope,
        auth: AuthService | None = None,
    ) -> None:
        self.user_repo = user_repo or UserRepository()
        self.session_factory = session_factory
        self.audit = audit or AuditLogger(session_factory=session_factory)
        self.auth = auth

    def list_users(self, ctx: SessionContext | None, query: str | None = None) -> list[User]:
        require_permission(ctx, "manage_users", action="list_users")
        with self.session_factory() as session:
            return self.user_repo.list_users(session, query=query)

    def add_user(self, fields: Mapping[str, Any] | CreateUserRequest, ctx: SessionContext | None) -> User:
        require_permission(ctx, "manage_users", action="add_user")
        request = validate_fields(CreateUserRequest, fields)
        with self.session_factory() as session:
            if self.user_repo.get_by_login(session, request.user_id):
                raise ValidationError("User ID already exists", field="userId")
            user = User(
                id=new_id(),
                user_id=request.user_id,
                pin=hash_pin(request.pin),
                name=request.name,
                role=request.role,
                phone=request.phone,
                email=request.email,
                created_at=utc_now(),
            )
            self.user_repo.add(session, user)
            self.audit.log_create(
                session,
                ctx,
                EntityType.USER,
                user.id,
                f"Created user: {user.name} ({user.role.value})",
                {"userId": user.user_id, "role": user.role.value},
            )
        logger.info("User %s created", user.user_id)
        return user

    def update_user(
        self, user_id: str, fields: Mapping[str, Any] | UpdateUserRequest, ctx: SessionContext | None
    ) -> User:
        require_permission(ctx, "manage_users", action="update_user")
        request = validate_fields(UpdateUserRequest, fields)
        requested = {k: v for k, v in request.to_storage(exclude_unset=True).items() if v is not None}
        with self.session_factory() as session:
            user = self.user_repo.get_by_id(session, user_id)
            if user is None:
                raise NotFound(EntityType.USER, user_id)
            if "userId" in requested and requested["userId"] != user.user_id:
                if self.user_repo.get_by_login(session, requested["userId"]):
                    raise ValidationError("User ID already exists", field="userId")
            if not user.can_be_deleted and (
                requested.get("isActive") is False or requested.get("role", UserRole.ADMIN) != UserRole.ADMIN
            ):
                raise ValidationError("The super administrator must stay an active admin", field="role")

            old = user.to_storage()
            changes = diff_fields(old, requested, ("pin",))
            if "pin" in requested:
                changes.append(_PIN_CHANGE)
                requested["pin"] = hash_pin(requested["pin"])
            if not changes:
                return user

            updated = User.model_validate({**old, **requested})
            self.user_repo.replace(session, updated)
            self.audit.log_update(
                session,
                ctx,
                EntityType.USER,
                updated.id,
                f"Updated user: {updated.name}",
                _mask_pin(changes),
                {"userId": updated.user_id, "role": updated.role.value},
            )
        self._refresh_session(updated)
        return updated

    def reset_user_pin(self, user_id: str, new_pin: str, ctx: SessionContext | None) -> User:
        if not (new_pin or "").strip():
            raise ValidationError("Please enter a new PIN", field="pin")
        return self.update_user(user_id, {"pin": new_pin}, ctx)

    def toggle_user_status(self, user_id: str, ctx: SessionContext | None) -> bool:
        require_permission(ctx, "manage_users", action="toggle_user_status")
        with self.session_factory() as session:
            user = self.user_repo.get_by_id(session, user_id)
        if user is None or not user.can_be_deleted:
            return False
        self.update_user(user_id, {"isActive": not user.is_active}, ctx)
        return True

    def delete_user(self, user_id: str, ctx: SessionContext | None) -> bool:
        require_permission(ctx, "manage_users", action="delete_user")
        with self.session_factory() as session:
            user = self.user_repo.get_by_id(session, user_id)
            if user is None or not user.can_be_deleted:
                return False
            self.user_repo.delete(session, user_id)
            self.audit.log_delete(
                session,
                ctx,
                EntityType.USER,
                user_id,
                f"Deleted user: {user.name}",
                {"userId": user.user_id, "role": user.role.value},
            )
        logger.info("User %s deleted", user.user_id)
        return True

    def update_profile(
        self, fields: Mapping[str, Any] | ProfileUpdateRequest, ctx: SessionContext | None
    ) -> User:
        """Let signed-in users edit their own profile, PIN included."""
        if ctx is None:
            raise PermissionDenied("profile", "Sign in to perform this action")
        request = validate_fields(ProfileUpdateRequest, fields)

        with self.session_factory() as session:
            user = self.user_repo.get_by_id(session, ctx.user_id)
            if user is None:
                raise NotFound(EntityType.USER, ctx.user_id)

            if request.new_pin:
                if not request.current_pin:
                    raise ValidationError("Current PIN is required to change PIN", field="currentPin")
                if request.new_pin != request.confirm_pin:
                    raise ValidationError("New PIN confirmation does not match", field="confirmPin")
                if len(request.new_pin) < MIN_PIN_LENGTH:
                    raise ValidationError(
                        f"New PIN must be at least {MIN_PIN_LENGTH} characters", field="newPin"
                    )
                if not pin_matches(request.current_pin, user.pin):
                    raise ValidationError("Current PIN is incorrect", field="currentPin")

            requested: dict[str, Any] = {
                "name": request.name,
                "phone": request.phone or "",
                "email": request.email or "",
                "profilePhoto": request.profile_photo or "",
            }
            old = user.to_storage()
            changes = [
                c for c in diff_fields(old, requested) if not (c.old_value is None and c.new_value == "")
            ]
            changes = [
                AuditChange(field="profilePhoto", old_value="Changed", new_value="Updated")
                if c.field == "profilePhoto"
                else c
                for c in changes
            ]
            if request.new_pin:
                requested["pin"] = hash_pin(request.new_pin)
                changes.append(_PIN_CHANGE)
            if not changes:
                return user

            updated = User.model_validate({**old, **requested})
            self.user_repo.replace(session, updated)
            self.audit.log_update(
                session,
                ctx,
                EntityType.USER_PROFILE,
                updated.id,
                "Updated user profile",
                changes,
            )
        self._refresh_session(updated)
        return updated

    def _refresh_session(self, user: User) -> None:
        if self.auth is not None:
            self.auth.refresh_session(user)
