"""
User Service
Privileged user administration: list, create, update, delete, reset password.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.core.rbac import DEFAULT_USER_ROLE
from kalustovahti.core.security import get_password_hash
from kalustovahti.core.websocket import permission_sessions
from kalustovahti.models.user import User
from kalustovahti.repositories.audit_log import audit_log_repository
from kalustovahti.repositories.role import role_repository
from kalustovahti.repositories.user import user_repository
from kalustovahti.schemas.user_management import (
    AdminPasswordResetRequest,
    AdminUserCreateRequest,
    AdminUserUpdateRequest,
)

logger = structlog.get_logger()


class UserService:
    async def list_users(self, db: AsyncSession) -> list[User]:
        return await user_repository.list_users(db)

    async def list_emails(self, db: AsyncSession) -> dict[str, str]:
        return await user_repository.email_map(db)

    async def create_user(self, db: AsyncSession, data: AdminUserCreateRequest, *, acting_user: User) -> User:
        if await user_repository.get_by_email(db, data.email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

        role = data.role or DEFAULT_USER_ROLE
        await self._ensure_role_exists(db, role)

        user = User(
            email=data.email,
            full_name=data.full_name,
            hashed_password=get_password_hash(data.password),
            is_active=True,
        )
        db.add(user)
        await db.flush()
        await user_repository.set_roles(db, user, [role])

        audit_log_repository.record(
            db,
            actor_id=acting_user.id,
            action="create",
            table_name="users",
            record_id=str(user.id),
            description="Luotu käyttäjä",
            new_data={"email": user.email, "full_name": user.full_name, "role": role},
        )
        await db.commit()

        logger.info("User created by admin", user_id=str(user.id), email=user.email, role=role)
        return user

    async def update_user(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        data: AdminUserUpdateRequest,
        acting_user: User,
    ) -> User:
        """Change a user's name and/or replace their role membership"""
        user = await user_repository.get(db, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        if data.role:
            await self._ensure_role_exists(db, data.role)

        old_data = {"full_name": user.full_name, "roles": user.role_names}
        new_data = {}

        if data.full_name is not None:
            user.full_name = data.full_name
            new_data["full_name"] = data.full_name

        if data.role:
            await user_repository.set_roles(db, user, [data.role])
            new_data["roles"] = [data.role]

        audit_log_repository.record(
            db,
            actor_id=acting_user.id,
            action="update",
            table_name="users",
            record_id=str(user_id),
            description="Päivitetty käyttäjä",
            old_data=old_data,
            new_data=new_data,
        )
        await db.commit()
        await db.refresh(user, attribute_names=["role_memberships"])

        if "roles" in new_data:
            permission_sessions.invalidate_all()
        logger.info(
            "User updated by admin",
            user_id=str(user_id),
            acting_user_id=str(acting_user.id),
            fields=sorted(new_data),
        )
        return user

    async def delete_user(self, db: AsyncSession, *, user_id: UUID, acting_user: User) -> None:
        if user_id == acting_user.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete yourself")

        user = await user_repository.get(db, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        old_data = {"email": user.email, "full_name": user.full_name, "roles": user.role_names}

        audit_log_repository.record(
            db,
            actor_id=acting_user.id,
            action="delete",
            table_name="users",
            record_id=str(user_id),
            description="Poistettu käyttäjä",
            old_data=old_data,
        )
        await user_repository.delete(db, db_obj=user, commit=False)
        await db.commit()

        permission_sessions.invalidate_all()
        logger.info("User deleted by admin", user_id=str(user_id), acting_user_id=str(acting_user.id))

    async def reset_password(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        data: AdminPasswordResetRequest,
        acting_user: User,
    ) -> None:
        user = await user_repository.get(db, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

        user.hashed_password = get_password_hash(data.new_password)
        audit_log_repository.record(
            db,
            actor_id=acting_user.id,
            action="update",
            table_name="users",
            record_id=str(user_id),
            description="Salasana vaihdettu",
        )
        await db.commit()

        logger.info("User password reset by admin", user_id=str(user_id), acting_user_id=str(acting_user.id))

    async def _ensure_role_exists(self, db: AsyncSession, role: str) -> None:
        if role != DEFAULT_USER_ROLE and not await role_repository.get_by_name(db, role):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role")


user_service = UserService()
