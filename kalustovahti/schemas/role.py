"""
Role management schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from kalustovahti.core.rbac import normalize_role_name
from kalustovahti.schemas.base import BaseSchema


class RoleOut(BaseSchema):
    id: UUID
    name: str
    display_name: str
    description: Optional[str] = None
    is_system_role: bool
    created_at: Optional[datetime] = None


class RoleCreateRequest(BaseSchema):
    name: str = Field(..., min_length=1, max_length=50)
    display_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        normalized = normalize_role_name(value)
        if not normalized:
            raise ValueError("Role name is required")
        return normalized


class RoleUpdateRequest(BaseSchema):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None


class GrantOut(BaseSchema):
    id: UUID
    role_id: UUID
    page_key: str
    can_view: bool
    can_edit: bool


class GrantUpdateRequest(BaseSchema):
    can_view: bool
    can_edit: bool
