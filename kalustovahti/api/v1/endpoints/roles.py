"""Role and grant management endpoints (super admin only)."""

from __future__ import annotations

from typing import Any, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.core.database import get_db
from kalustovahti.core.deps import get_current_super_admin
from kalustovahti.core.pages import parse_page_key
from kalustovahti.models.user import User
from kalustovahti.schemas.base import SuccessResponse
from kalustovahti.schemas.role import (
    GrantOut,
    GrantUpdateRequest,
    RoleCreateRequest,
    RoleOut,
    RoleUpdateRequest,
)
from kalustovahti.services.role import role_service

router = APIRouter()


@router.get("/", response_model=List[RoleOut])
async def list_roles(
    current_user: User = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await role_service.list_roles(db)


@router.post("/", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
async def create_role(
    data: RoleCreateRequest,
    current_user: User = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await role_service.create_role(db, data, acting_user=current_user)


@router.get("/grants", response_model=List[GrantOut])
async def list_grants(
    current_user: User = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await role_service.list_grants(db)


@router.patch("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: UUID,
    data: RoleUpdateRequest,
    current_user: User = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await role_service.update_role(db, role_id, data, acting_user=current_user)


@router.delete("/{role_id}", response_model=SuccessResponse)
async def delete_role(
    role_id: UUID,
    current_user: User = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await role_service.delete_role(db, role_id, acting_user=current_user)
    return SuccessResponse(message="Role deleted")


@router.put("/{role_id}/grants/{page_key}", response_model=List[GrantOut])
async def set_grant(
    role_id: UUID,
    page_key: str,
    data: GrantUpdateRequest,
    current_user: User = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> Any:
    page = parse_page_key(page_key)
    if page is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown page")
    return await role_service.set_grant(db, role_id, page, data, acting_user=current_user)
