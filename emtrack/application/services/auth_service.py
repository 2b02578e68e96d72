from __future__ import annotations

import hmac
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pydantic
from pydantic.alias_generators import to_camel

from emtrack.application.dto.auth_dto import LoginRequest, LoginResult, SessionContext, SystemConfig, Theme, User
from emtrack.application.dto.common import utc_now
from emtrack.application.security import has_permission, require_permission
from emtrack.application.services.audit_service import AuditLogger
from emtrack.application.services.record_service import diff_fields
from emtrack.config import settings
from emtrack.domain.constants import LOGO_MAX_BYTES, SUPER_ADMIN_ID, EntityType, UserRole
from emtrack.domain.errors import InvalidCredentials, ValidationError
from emtrack.infrastructure.db.repositories.user_repo import UserRepository
from emtrack.infrastructure.db.session import session_scope
from emtrack.infrastructure.files.attachment_reader import read_attachment
from emtrack.infrastructure.security.password_hash import hash_pin, is_hashed, verify_pin

logger = logging.getLogger(__name__)

COLOR_SCHEMES: dict[str, dict[str, str]] = {
    "Emergency Red": {"primary": "#dc2626", "secondary": "#991b1b", "accent": "#fef2f2"},
    "Fire Orange": {"primary": "#ea580c", "secondary": "#c2410c", "accent": "#fff7ed"},
    "Police Blue": {"primary": "#2563eb", "secondary": "#1d4ed8", "accent": "#eff6ff"},
    "Forest Green": {"primary": "#16a34a", "secondary": "#15803d", "accent": "#f0fdf4"},
    "Medical Purple": {"primary": "#9333ea", "secondary": "#7c3aed", "accent": "#faf5ff"},
    "Navy Blue": {"primary": "#1e40af", "secondary": "#1e3a8a", "accent": "#f0f9ff"},
    "Amber Alert": {"primary": "#d97706", "secondary": "#b45309", "accent": "#fffbeb"},
    "Steel Gray": {"primary": "#4b5563", "secondary": "#374151", "accent": "#f9fafb"},
}

ConfigListener = Callable[[SystemConfig], Any]


def pin_matches(pin: str, stored: str) -> bool:
    """Check a PIN against a stored hash, or a plain value left by older data."""
    if is_hashed(stored):
        return verify_pin(pin, stored)
    return hmac.compare_digest(pin.encode("utf-8"), stored.encode("utf-8"))


class AuthService:
    """Identity, the current-session pointer and the system display config.

    The session lives in this object only; it is never written to storage.
    """

    def __init__(
        self,
        user_repo: UserRepository | None = None,
        audit: AuditLogger | None = None,
        session_factory: Callable = session_scope,
        default_admin_pin: str | None = None,
    ) -> None:
        self.user_repo = user_repo or UserRepository()
        self.session_factory = session_factory
        self.audit = audit or AuditLogger(session_factory=session_factory)
        self.default_admin_pin = default_admin_pin or settings.default_admin_pin
        self._current: User | None = None
        self._listeners: list[ConfigListener] = []

    # -- bootstrap -------------------------------------------------------

    def initialize(self) -> None:
        """Seed the super administrator and the default config. Safe to repeat."""
        with self.session_factory() as session:
            users = self.user_repo.list_users(session)
            if not any(u.is_super_admin for u in users):
                admin = User(
                    id=SUPER_ADMIN_ID,
                    user_id=SUPER_ADMIN_ID,
                    pin=hash_pin(self.default_admin_pin),
                    name="Super Administrator",
                    role=UserRole.ADMIN,
                    is_active=True,
                    can_be_deleted=False,
                    is_super_admin=True,
                )
                self.user_repo.add(session, admin)
                logger.info("Seeded super administrator account")
            if self.user_repo.get_config(session) is None:
                now = utc_now()
                self.user_repo.save_config(session, SystemConfig(created_at=now, updated_at=now))
                logger.info("Seeded default system configuration")

    # -- session ---------------------------------------------------------

    def login(self, user_id: str, pin: str) -> LoginResult:
        try:
            request = LoginRequest(user_id=user_id, pin=pin)
        except pydantic.ValidationError:
            return LoginResult(success=False, error=InvalidCredentials().args[0])

        with self.session_factory() as session:
            user = self.user_repo.get_by_login(session, request.user_id)
            if user is None or not user.is_active or not pin_matches(request.pin, user.pin):
                logger.warning("Failed login attempt for %s", request.user_id)
                return LoginResult(success=False, error=InvalidCredentials().args[0])

            updates: dict[str, Any] = {"last_login": utc_now()}
            if not is_hashed(user.pin):
                updates["pin"] = hash_pin(request.pin)
            user = user.model_copy(update=updates)
            self.user_repo.replace(session, user)

        self._current = user
        logger.info("User %s signed in", user.user_id)
        return LoginResult(success=True, user=user, session=SessionContext.from_user(user))

    def login_or_raise(self, user_id: str, pin: str) -> SessionContext:
        result = self.login(user_id, pin)
        if not result.success or result.session is None:
            raise InvalidCredentials()
        return result.session

    def logout(self) -> None:
        if self._current is not None:
            logger.info("User %s signed out", self._current.user_id)
        self._current = None

    def get_current_user(self) -> User | None:
        return self._current

    def current_session(self) -> SessionContext | None:
        return SessionContext.from_user(self._current) if self._current else None

    def is_authenticated(self) -> bool:
        return self._current is not None

    def is_super_admin(self) -> bool:
        return bool(self._current and self._current.is_super_admin)

    def has_permission(self, permission: str) -> bool:
        if self._current is None:
            return False
        return has_permission(self._current.role, permission)

    def refresh_session(self, user: User) -> None:
        """Point the session at a fresh copy of the signed-in user."""
        if self._current is not None and self._current.id == user.id:
            self._current = user

    # -- system config ---------------------------------------------------

    def get_system_config(self) -> SystemConfig:
        with self.session_factory() as session:
            return self.user_repo.get_config(session) or SystemConfig()

    def update_system_config(
        self, partial: Mapping[str, Any] | SystemConfig, ctx: SessionContext | None
    ) -> SystemConfig:
        require_permission(ctx, "manage_system", action="update_system_config")
        if isinstance(partial, SystemConfig):
            requested = partial.to_storage(exclude_unset=True)
        else:
            requested = {to_camel(k) if "_" in k else k: v for k, v in partial.items()}
        requested.pop("createdAt", None)
        requested.pop("updatedAt", None)
        with self.session_factory() as session:
            current = self.user_repo.get_config(session) or SystemConfig()
            old = current.to_storage()
            try:
                config = SystemConfig.model_validate({**old, **requested, "updatedAt": utc_now()})
            except pydantic.ValidationError as exc:
                raise ValidationError(str(exc.errors()[0].get("msg")), field="systemConfig") from exc
            self.user_repo.save_config(session, config)
            changes = diff_fields(old, config.to_storage(), ("createdAt", "updatedAt"))
            if changes:
                self.audit.log_update(
                    session,
                    ctx,
                    EntityType.SYSTEM_CONFIG,
                    "system",
                    "Updated system configuration",
                    changes,
                )
        self._notify(config)
        return config

    def subscribe_config(self, listener: ConfigListener) -> Callable[[], None]:
        """Register for config changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply_color_scheme(self, name: str, ctx: SessionContext | None) -> SystemConfig:
        scheme = COLOR_SCHEMES.get(name)
        if scheme is None:
            raise ValidationError(f"Unknown colour scheme: {name}", field="colorSchemeName")
        return self.update_system_config(
            {
                "primaryColor": scheme["primary"],
                "secondaryColor": scheme["secondary"],
                "accentColor": scheme["accent"],
                "colorSchemeName": name,
            },
            ctx,
        )

    def set_logo(self, path: str | Path, ctx: SessionContext | None) -> SystemConfig:
        require_permission(ctx, "manage_system", action="set_logo")
        return read_attachment(
            path,
            lambda attachment: self.update_system_config({"logoUrl": attachment["data"]}, ctx),
            LOGO_MAX_BYTES,
        )

    def theme(self) -> Theme:
        return Theme.from_config(self.get_system_config())

    def _notify(self, config: SystemConfig) -> None:
        for listener in list(self._listeners):
            try:
                listener(config)
            except Exception:  # noqa: BLE001
                logger.exception("Config listener %r failed", listener)
