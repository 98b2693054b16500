"""
Role Repository
Roles and the role/page grant table
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.models.role import Role, RolePagePermission
from kalustovahti.repositories.base import CRUDBase


class RoleRepository(CRUDBase[Role]):
    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[Role]:
        result = await db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def list_roles(self, db: AsyncSession) -> list[Role]:
        result = await db.execute(
            select(Role).order_by(Role.is_system_role.desc(), Role.display_name)
        )
        return list(result.scalars().all())

    async def list_grants(self, db: AsyncSession, role_id: Optional[UUID] = None) -> list[RolePagePermission]:
        query = select(RolePagePermission)
        if role_id is not None:
            query = query.where(RolePagePermission.role_id == role_id)
        result = await db.execute(query.order_by(RolePagePermission.role_id, RolePagePermission.page_key))
        return list(result.scalars().unique().all())

    async def get_grants_for_page(self, db: AsyncSession, role_id: UUID, page_key: str) -> list[RolePagePermission]:
        result = await db.execute(
            select(RolePagePermission).where(
                RolePagePermission.role_id == role_id,
                RolePagePermission.page_key == page_key,
            )
        )
        return list(result.scalars().unique().all())


role_repository = RoleRepository(Role)
