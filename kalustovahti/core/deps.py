"""
FastAPI Dependencies
Authentication, permission resolution and page gating
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from kalustovahti.core.access_gate import GateState, evaluate_gate
from kalustovahti.core.database import get_db
from kalustovahti.core.pages import PageKey
from kalustovahti.core.permission_resolver import (
    PermissionResolution,
    PermissionResolver,
    get_permission_resolver,
)
from kalustovahti.core.security import verify_token
from kalustovahti.models.user import User

logger = structlog.get_logger()

security = HTTPBearer(auto_error=False)


async def load_active_user(db: AsyncSession, user_id: str) -> Optional[User]:
    try:
        user_uuid = UUID(user_id)
    except ValueError:
        return None
    result = await db.execute(
        select(User).where(User.id == user_uuid, User.is_active == True)  # noqa: E712
    )
    return result.scalar_one_or_none()


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> User:
    """
    Identity resolver: map the bearer token to an active user

    Raises:
        HTTPException: 401 if the token is missing/invalid or the user is gone
    """
    if not credentials:
        logger.warning("Missing authentication credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = verify_token(credentials.credentials, token_type="access")

    try:
        user = await load_active_user(db, user_id)
    except Exception as e:
        logger.error("Database error during authentication", error=str(e), user_id=user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication service error",
        )

    if not user:
        logger.warning("User not found or inactive", user_id=user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_optional_user(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[User]:
    """Current user if a valid token was sent, None for anonymous callers"""
    if not credentials:
        return None

    try:
        user_id = verify_token(credentials.credentials, token_type="access")
    except HTTPException as e:
        logger.debug("Optional authentication failed", detail=e.detail)
        return None

    try:
        return await load_active_user(db, user_id)
    except Exception as e:
        logger.error("Database error during optional authentication", error=str(e), user_id=user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication service error",
        )


async def get_current_resolution(
    current_user: Optional[User] = Depends(get_optional_user),
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> PermissionResolution:
    principal_id = str(current_user.id) if current_user else None
    return await resolver.resolve(principal_id)


def require_page_permission(page_key: PageKey, require_edit: bool = False):
    """
    Dependency factory guarding an endpoint with one page permission

    Granted passes the current user through; denied is a 403 pointing back
    to the fallback page; pending or failed resolution is a 503 and never
    treated as access.
    """
    async def page_permission_checker(
        current_user: User = Depends(get_current_user),
        resolver: PermissionResolver = Depends(get_permission_resolver),
    ) -> User:
        resolution = await resolver.resolve(str(current_user.id))
        decision = evaluate_gate(resolution, page_key, require_edit)

        if decision.state == GateState.GRANTED:
            return current_user

        if decision.state == GateState.DENIED:
            logger.warning(
                "Page permission denied",
                user_id=str(current_user.id),
                page_key=page_key.value,
                require_edit=require_edit,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=decision.to_dict(),
            )

        if decision.state == GateState.PENDING:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=decision.to_dict(),
                headers={"Retry-After": "1"},
            )

        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=decision.to_dict(),
        )

    return page_permission_checker


async def get_current_super_admin(
    current_user: User = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> User:
    """Role management is reserved for super admins"""
    resolution = await resolver.resolve(str(current_user.id))
    if not resolution.is_resolved:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Permission service unavailable",
        )
    if not resolution.is_super_admin:
        logger.warning("Non-super-admin attempted role management", user_id=str(current_user.id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )
    return current_user
