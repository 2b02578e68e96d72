from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from emtrack.application.dto.common import CamelModel, UtcDatetime, utc_now
from emtrack.domain.constants import UserRole


class User(CamelModel):
    id: str
    user_id: str
    pin: str
    name: str
    role: UserRole
    is_active: bool = True
    can_be_deleted: bool = True
    is_super_admin: bool = False
    created_at: UtcDatetime = Field(default_factory=utc_now)
    last_login: UtcDatetime | None = None
    phone: str | None = None
    email: str | None = None
    profile_photo: str | None = None


class LoginRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    pin: str = Field(..., min_length=1)

    @field_validator("user_id", mode="before")
    @classmethod
    def _strip_user_id(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class SessionContext(BaseModel):
    """Who is acting. Passed explicitly into every store call."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    login: str
    name: str
    role: UserRole
    is_super_admin: bool = False

    @classmethod
    def from_user(cls, user: User) -> SessionContext:
        return cls(
            user_id=user.id,
            login=user.user_id,
            name=user.name,
            role=user.role,
            is_super_admin=user.is_super_admin,
        )


class LoginResult(BaseModel):
    success: bool
    user: User | None = None
    session: SessionContext | None = None
    error: str | None = None


class CreateUserRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    pin: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    role: UserRole = UserRole.VIEW_ONLY
    phone: str | None = None
    email: str | None = None


class UpdateUserRequest(CamelModel):
    user_id: str | None = Field(default=None, min_length=1)
    pin: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    role: UserRole | None = None
    is_active: bool | None = None
    phone: str | None = None
    email: str | None = None
    profile_photo: str | None = None


class ProfileUpdateRequest(CamelModel):
    name: str = Field(..., min_length=1)
    phone: str | None = None
    email: str | None = None
    profile_photo: str | None = None
    current_pin: str | None = None
    new_pin: str | None = None
    confirm_pin: str | None = None


class SystemConfig(CamelModel):
    site_name: str = "Emergency Management System"
    contact_info: str = "For support, contact your system administrator"
    system_notice: str = ""
    show_notice: bool = False
    show_default_admin: bool = True
    logo_url: str = ""
    primary_color: str = "#dc2626"
    secondary_color: str = "#991b1b"
    accent_color: str = "#fef2f2"
    color_scheme_name: str = "Emergency Red"
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None


class Theme(BaseModel):
    model_config = ConfigDict(frozen=True)

    site_name: str
    logo_url: str
    primary_color: str
    secondary_color: str
    accent_color: str
    color_scheme_name: str

    @classmethod
    def from_config(cls, config: SystemConfig) -> Theme:
        return cls(
            site_name=config.site_name,
            logo_url=config.logo_url,
            primary_color=config.primary_color,
            secondary_color=config.secondary_color,
            accent_color=config.accent_color,
            color_scheme_name=config.color_scheme_name,
        )
