"""
Startup data: system roles and the bootstrap super admin. Idempotent.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from kalustovahti.core.config import settings
from kalustovahti.core.rbac import SUPER_ADMIN_ROLE, SYSTEM_ROLE_DISPLAY_NAMES
from kalustovahti.core.security import get_password_hash
from kalustovahti.models.role import Role
from kalustovahti.models.user import User
from kalustovahti.repositories.role import role_repository
from kalustovahti.repositories.user import user_repository
from kalustovahti.services.role import default_grants

logger = structlog.get_logger()


async def ensure_system_roles_exist(db: AsyncSession) -> list[str]:
    created = []
    for name, display_name in SYSTEM_ROLE_DISPLAY_NAMES.items():
        if await role_repository.get_by_name(db, name):
            continue

        role = Role(name=name, display_name=display_name, is_system_role=True)
        db.add(role)
        await db.flush()
        # The super admin bypasses grants entirely
        if name != SUPER_ADMIN_ROLE:
            db.add_all(default_grants(role))
        created.append(name)

    if created:
        await db.commit()
        logger.info("System roles created", roles=created)
    return created


async def ensure_bootstrap_admin_exists(db: AsyncSession) -> None:
    admin_email = settings.BOOTSTRAP_ADMIN_EMAIL.lower().strip()

    existing = await user_repository.get_by_email(db, admin_email)
    if existing:
        logger.info("Bootstrap admin already exists", email=admin_email, user_id=str(existing.id))
        return

    bootstrap_user = User(
        email=admin_email,
        full_name=settings.BOOTSTRAP_ADMIN_FULL_NAME,
        hashed_password=get_password_hash(settings.BOOTSTRAP_ADMIN_PASSWORD),
        is_active=True,
    )
    db.add(bootstrap_user)
    await db.flush()
    await user_repository.set_roles(db, bootstrap_user, [SUPER_ADMIN_ROLE])
    await db.commit()

    logger.info("Bootstrap admin created", email=admin_email, user_id=str(bootstrap_user.id))


async def bootstrap(db: AsyncSession) -> None:
    await ensure_system_roles_exist(db)
    await ensure_bootstrap_admin_exists(db)
