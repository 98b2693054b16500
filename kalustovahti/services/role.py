"""
Role Service
Role catalogue and grant table administration.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.core.pages import ALL_PAGES, PageKey
from kalustovahti.core.websocket import permission_sessions
from kalustovahti.models.role import Role, RolePagePermission
from kalustovahti.models.user import User
from kalustovahti.repositories.audit_log import audit_log_repository
from kalustovahti.repositories.role import role_repository
from kalustovahti.schemas.role import GrantUpdateRequest, RoleCreateRequest, RoleUpdateRequest

logger = structlog.get_logger()


def default_grants(role: Role) -> list[RolePagePermission]:
    """One all-false grant per page, so every page shows up in the editor"""
    return [
        RolePagePermission(role_id=role.id, page_key=page.value, can_view=False, can_edit=False)
        for page in ALL_PAGES
    ]


class RoleService:
    async def list_roles(self, db: AsyncSession) -> list[Role]:
        return await role_repository.list_roles(db)

    async def list_grants(self, db: AsyncSession) -> list[RolePagePermission]:
        return await role_repository.list_grants(db)

    async def _get_role_or_404(self, db: AsyncSession, role_id: UUID) -> Role:
        role = await role_repository.get(db, role_id)
        if not role:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
        return role

    async def create_role(self, db: AsyncSession, data: RoleCreateRequest, *, acting_user: User) -> Role:
        if await role_repository.get_by_name(db, data.name):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Role already exists")

        role = Role(
            name=data.name,
            display_name=data.display_name,
            description=data.description or None,
            is_system_role=False,
        )
        db.add(role)
        await db.flush()
        db.add_all(default_grants(role))

        audit_log_repository.record(
            db,
            actor_id=acting_user.id,
            action="create",
            table_name="roles",
            record_id=str(role.id),
            description="Luotu rooli",
            new_data={"name": role.name, "display_name": role.display_name},
        )
        await db.commit()
        await db.refresh(role)

        logger.info("Role created", role=role.name, role_id=str(role.id))
        return role

    async def update_role(self, db: AsyncSession, role_id: UUID, data: RoleUpdateRequest, *, acting_user: User) -> Role:
        role = await self._get_role_or_404(db, role_id)

        updates = data.model_dump(exclude_unset=True)
        if "description" in updates:
            updates["description"] = updates["description"] or None
        if updates.get("display_name") is None:
            updates.pop("display_name", None)

        audit_log_repository.record(
            db,
            actor_id=acting_user.id,
            action="update",
            table_name="roles",
            record_id=str(role.id),
            old_data={"display_name": role.display_name, "description": role.description},
            new_data=updates,
        )
        role = await role_repository.update(db, db_obj=role, obj_in=updates)

        permission_sessions.invalidate_all()
        return role

    async def delete_role(self, db: AsyncSession, role_id: UUID, *, acting_user: User) -> None:
        role = await self._get_role_or_404(db, role_id)
        if role.is_system_role:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="System roles cannot be deleted")

        audit_log_repository.record(
            db,
            actor_id=acting_user.id,
            action="delete",
            table_name="roles",
            record_id=str(role.id),
            description="Poistettu rooli",
            old_data={"name": role.name},
        )
        await role_repository.delete(db, db_obj=role)

        permission_sessions.invalidate_all()
        logger.info("Role deleted", role=role.name, role_id=str(role_id))

    async def set_grant(
        self,
        db: AsyncSession,
        role_id: UUID,
        page_key: PageKey,
        data: GrantUpdateRequest,
        *,
        acting_user: User,
    ) -> list[RolePagePermission]:
        """
        Store view/edit for one (role, page). Both flags are written as given;
        duplicate rows for the pair all receive the same values.
        """
        role = await self._get_role_or_404(db, role_id)

        grants = await role_repository.get_grants_for_page(db, role.id, page_key.value)
        if not grants:
            grant = RolePagePermission(role_id=role.id, page_key=page_key.value)
            db.add(grant)
            grants = [grant]

        for grant in grants:
            grant.can_view = data.can_view
            grant.can_edit = data.can_edit

        audit_log_repository.record(
            db,
            actor_id=acting_user.id,
            action="update",
            table_name="role_page_permissions",
            record_id=f"{role.id}:{page_key.value}",
            new_data={"can_view": data.can_view, "can_edit": data.can_edit},
        )
        await db.commit()
        for grant in grants:
            await db.refresh(grant)

        permission_sessions.invalidate_all()
        logger.info(
            "Grant updated",
            role=role.name,
            page_key=page_key.value,
            can_view=data.can_view,
            can_edit=data.can_edit,
        )
        return grants


role_service = RoleService()
