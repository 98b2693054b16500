"""
Admin user management schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from kalustovahti.core.config import settings
from kalustovahti.core.rbac import normalize_role_name
from kalustovahti.schemas.base import BaseSchema, validate_email


class AdminUserCreateRequest(BaseSchema):
    email: str = Field(..., max_length=255)
    password: str
    full_name: str = Field(..., min_length=1, max_length=200)
    role: Optional[str] = Field(default=None, max_length=50)

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, value: str) -> str:
        return validate_email(value)

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, value: str) -> str:
        if not settings.MIN_PASSWORD_LENGTH <= len(value) <= settings.MAX_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be between {settings.MIN_PASSWORD_LENGTH} "
                f"and {settings.MAX_PASSWORD_LENGTH} characters"
            )
        return value

    @field_validator("role")
    @classmethod
    def normalize_role(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return normalize_role_name(value)


class AdminUserCreateResponse(BaseSchema):
    success: bool = True
    user_id: str


class AdminPasswordResetRequest(BaseSchema):
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password_length(cls, value: str) -> str:
        if len(value) < settings.MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
        if len(value) > settings.MAX_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at most {settings.MAX_PASSWORD_LENGTH} characters")
        return value


class UserEmailsResponse(BaseSchema):
    emails: dict[str, str] = Field(default_factory=dict)


class AdminUserUpdateRequest(BaseSchema):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    role: Optional[str] = Field(default=None, max_length=50)

    @field_validator("role")
    @classmethod
    def normalize_role(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return normalize_role_name(value)


class AdminUserOut(BaseSchema):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    is_active: bool
    roles: list[str] = Field(default_factory=list)
    last_login_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user) -> "AdminUserOut":
        return cls(
            id=str(user.id),
            email=user.email,
            full_name=user.full_name,
            is_active=user.is_active,
            roles=user.role_names,
            last_login_at=user.last_login_at,
        )
