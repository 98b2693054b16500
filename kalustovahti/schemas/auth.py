"""
Authentication Schemas
"""

from typing import List, Optional

from pydantic import Field, field_validator

from kalustovahti.schemas.base import BaseSchema, validate_email, validate_non_empty_string


class LoginRequest(BaseSchema):
    email: str = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v):
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def validate_password_not_empty(cls, v):
        return validate_non_empty_string(v)


class RefreshTokenRequest(BaseSchema):
    refresh_token: str = Field(..., description="Refresh token")


class TokenResponse(BaseSchema):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class UserProfile(BaseSchema):
    id: str
    email: str
    full_name: str
    is_active: bool
    roles: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    last_login: Optional[str] = None


class LoginResponse(BaseSchema):
    user: UserProfile
    tokens: TokenResponse
    message: str = "Login successful"
