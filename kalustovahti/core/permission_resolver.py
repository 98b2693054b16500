"""
Permission resolution.

Role membership, the super-admin flag and the grant table are read through a
PermissionSource; PermissionResolver gathers the three reads concurrently and
folds them with resolve_page_permissions. The outcome is a PermissionResolution
whose status separates "still waiting" (PENDING) from "could not be read"
(FAILED); neither ever exposes access.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kalustovahti.core.config import settings
from kalustovahti.core.database import AsyncSessionLocal
from kalustovahti.core.pages import PageKey, parse_page_key
from kalustovahti.core.rbac import (
    NO_ACCESS,
    SUPER_ADMIN_ROLE,
    Grant,
    PagePermission,
    empty_permissions,
    resolve_page_permissions,
)
from kalustovahti.models.role import Role, RolePagePermission
from kalustovahti.models.user import UserRole

logger = structlog.get_logger()


class ResolutionStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class PermissionView:
    """Answer to getPermission(page_key)"""

    can_view: bool
    can_edit: bool
    pending: bool

    def to_dict(self) -> dict[str, bool]:
        return {"can_view": self.can_view, "can_edit": self.can_edit, "pending": self.pending}


@dataclass(frozen=True)
class PermissionResolution:
    status: ResolutionStatus
    principal_id: Optional[str] = None
    is_super_admin: bool = False
    permissions: dict[PageKey, PagePermission] = field(default_factory=empty_permissions)
    error: Optional[str] = None

    @classmethod
    def pending(cls, principal_id: Optional[str] = None) -> "PermissionResolution":
        return cls(status=ResolutionStatus.PENDING, principal_id=principal_id)

    @classmethod
    def failed(cls, principal_id: Optional[str], error: str) -> "PermissionResolution":
        return cls(status=ResolutionStatus.FAILED, principal_id=principal_id, error=error)

    @property
    def is_pending(self) -> bool:
        return self.status == ResolutionStatus.PENDING

    @property
    def is_failed(self) -> bool:
        return self.status == ResolutionStatus.FAILED

    @property
    def is_resolved(self) -> bool:
        return self.status == ResolutionStatus.RESOLVED

    def permission_for(self, page_key: PageKey | str) -> PagePermission:
        page = parse_page_key(page_key)
        if page is None:
            raise ValueError(f"Unknown page key: {page_key!r}")
        if not self.is_resolved:
            return NO_ACCESS
        return self.permissions.get(page, NO_ACCESS)

    def get_permission(self, page_key: PageKey | str) -> PermissionView:
        permission = self.permission_for(page_key)
        return PermissionView(
            can_view=permission.can_view,
            can_edit=permission.can_edit,
            pending=self.is_pending,
        )


class PermissionSource(ABC):
    """Read side of the authorization data store"""

    @abstractmethod
    async def is_super_admin(self, principal_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def roles_of(self, principal_id: str) -> set[str]:
        raise NotImplementedError

    @abstractmethod
    async def all_grants(self) -> list[Grant]:
        raise NotImplementedError


class DBPermissionSource(PermissionSource):
    """
    PermissionSource over the user_roles / roles / role_page_permissions tables.

    Each read opens its own session: an AsyncSession does not allow concurrent
    statements, and the resolver issues these reads in parallel.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def is_super_admin(self, principal_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserRole.id).where(
                    UserRole.user_id == UUID(principal_id),
                    UserRole.role == SUPER_ADMIN_ROLE,
                ).limit(1)
            )
            return result.scalar_one_or_none() is not None

    async def roles_of(self, principal_id: str) -> set[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserRole.role).where(UserRole.user_id == UUID(principal_id))
            )
            return set(result.scalars().all())

    async def all_grants(self) -> list[Grant]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    Role.name,
                    RolePagePermission.page_key,
                    RolePagePermission.can_view,
                    RolePagePermission.can_edit,
                ).join(Role, Role.id == RolePagePermission.role_id)
            )
            return [
                Grant(role=name, page_key=page_key, can_view=bool(can_view), can_edit=bool(can_edit))
                for name, page_key, can_view, can_edit in result.all()
            ]


class PermissionResolver:
    def __init__(self, source: PermissionSource, timeout: Optional[float] = None) -> None:
        self._source = source
        self._timeout = timeout

    async def resolve(self, principal_id: Optional[str]) -> PermissionResolution:
        """
        Resolve the page permissions of one principal.

        Returns RESOLVED (all denied) for anonymous callers, PENDING when the
        reads did not finish within the timeout and FAILED when a read raised.
        """
        if principal_id is None:
            return PermissionResolution(status=ResolutionStatus.RESOLVED)

        principal_id = str(principal_id)
        try:
            is_super_admin, roles, grants = await asyncio.wait_for(
                self._gather(principal_id),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Permission resolution still pending", principal_id=principal_id, timeout=self._timeout)
            return PermissionResolution.pending(principal_id)
        except Exception as e:
            logger.error("Permission resolution failed", principal_id=principal_id, error=str(e))
            return PermissionResolution.failed(principal_id, str(e))

        permissions = resolve_page_permissions(
            principal_present=True,
            is_super_admin=is_super_admin,
            roles=roles,
            grants=grants,
        )
        logger.debug(
            "Permissions resolved",
            principal_id=principal_id,
            is_super_admin=is_super_admin,
            roles=sorted(roles),
        )
        return PermissionResolution(
            status=ResolutionStatus.RESOLVED,
            principal_id=principal_id,
            is_super_admin=is_super_admin,
            permissions=permissions,
        )

    async def _gather(self, principal_id: str) -> tuple[bool, set[str], list[Grant]]:
        admin_task = asyncio.ensure_future(self._source.is_super_admin(principal_id))
        roles_task = asyncio.ensure_future(self._source.roles_of(principal_id))
        grants_task = asyncio.ensure_future(self._source.all_grants())
        others = (roles_task, grants_task)

        try:
            if await admin_task:
                for task in others:
                    task.cancel()
                await asyncio.gather(*others, return_exceptions=True)
                return True, set(), []

            roles, grants = await asyncio.gather(*others)
        except BaseException:
            for task in (admin_task, *others):
                task.cancel()
            await asyncio.gather(admin_task, *others, return_exceptions=True)
            raise

        return False, set(roles or ()), list(grants or ())


def resolution_to_dict(resolution: PermissionResolution) -> dict[str, Any]:
    return {
        "status": resolution.status.value,
        "principal_id": resolution.principal_id,
        "is_super_admin": resolution.is_super_admin and resolution.is_resolved,
        "permissions": {
            page.value: {"can_view": perm.can_view, "can_edit": perm.can_edit}
            for page, perm in (
                resolution.permissions if resolution.is_resolved else empty_permissions()
            ).items()
        },
    }


def get_permission_resolver() -> PermissionResolver:
    """FastAPI dependency; the database-backed resolver used by the service"""
    return PermissionResolver(
        DBPermissionSource(AsyncSessionLocal),
        timeout=settings.PERMISSION_RESOLUTION_TIMEOUT_SECONDS,
    )
