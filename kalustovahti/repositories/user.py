"""
User Repository
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.models.user import User, UserRole
from kalustovahti.repositories.base import CRUDBase


class UserRepository(CRUDBase[User]):
    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower().strip()))
        return result.scalar_one_or_none()

    async def list_users(self, db: AsyncSession) -> list[User]:
        result = await db.execute(select(User).order_by(User.full_name, User.email))
        return list(result.scalars().all())

    async def email_map(self, db: AsyncSession) -> dict[str, str]:
        result = await db.execute(select(User.id, User.email))
        return {str(user_id): email or "" for user_id, email in result.all()}

    async def set_roles(self, db: AsyncSession, user: User, roles: list[str]) -> None:
        """Replace the user's role memberships; caller commits"""
        await db.execute(delete(UserRole).where(UserRole.user_id == user.id))
        for role in dict.fromkeys(roles):
            db.add(UserRole(user_id=user.id, role=role))
        await db.flush()


user_repository = UserRepository(User)
