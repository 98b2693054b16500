"""User administration endpoints, guarded by the `users` page grants."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.core.database import get_db
from kalustovahti.core.deps import require_page_permission
from kalustovahti.core.pages import PageKey
from kalustovahti.models.user import User
from kalustovahti.schemas.base import SuccessResponse
from kalustovahti.schemas.user_management import (
    AdminPasswordResetRequest,
    AdminUserCreateRequest,
    AdminUserCreateResponse,
    AdminUserOut,
    AdminUserUpdateRequest,
    UserEmailsResponse,
)
from kalustovahti.services.user import user_service

router = APIRouter()


@router.get("/emails", response_model=UserEmailsResponse)
async def list_user_emails(
    current_user: User = Depends(require_page_permission(PageKey.USERS)),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return UserEmailsResponse(emails=await user_service.list_emails(db))


@router.get("/", response_model=list[AdminUserOut])
async def list_users(
    current_user: User = Depends(require_page_permission(PageKey.USERS)),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return [AdminUserOut.from_user(user) for user in await user_service.list_users(db)]


@router.post("/", response_model=AdminUserCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AdminUserCreateRequest,
    current_user: User = Depends(require_page_permission(PageKey.USERS, require_edit=True)),
    db: AsyncSession = Depends(get_db),
) -> Any:
    user = await user_service.create_user(db, data, acting_user=current_user)
    return AdminUserCreateResponse(user_id=str(user.id))


@router.patch("/{user_id}", response_model=AdminUserOut)
async def update_user(
    user_id: UUID,
    data: AdminUserUpdateRequest,
    current_user: User = Depends(require_page_permission(PageKey.USERS, require_edit=True)),
    db: AsyncSession = Depends(get_db),
) -> Any:
    user = await user_service.update_user(db, user_id=user_id, data=data, acting_user=current_user)
    return AdminUserOut.from_user(user)


@router.delete("/{user_id}", response_model=SuccessResponse)
async def delete_user(
    user_id: UUID,
    current_user: User = Depends(require_page_permission(PageKey.USERS, require_edit=True)),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await user_service.delete_user(db, user_id=user_id, acting_user=current_user)
    return SuccessResponse(message="User deleted")


@router.post("/{user_id}/reset-password", response_model=SuccessResponse)
async def reset_user_password(
    user_id: UUID,
    data: AdminPasswordResetRequest,
    current_user: User = Depends(require_page_permission(PageKey.USERS, require_edit=True)),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await user_service.reset_password(db, user_id=user_id, data=data, acting_user=current_user)
    return SuccessResponse(message="Password reset")
