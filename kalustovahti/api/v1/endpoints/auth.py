"""
Authentication Endpoints
Login, token refresh and the current user profile
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from kalustovahti.core.config import settings
from kalustovahti.core.database import get_db
from kalustovahti.core.deps import get_current_user, load_active_user
from kalustovahti.core.security import (
    create_access_token,
    create_refresh_token,
    verify_password,
    verify_token,
)
from kalustovahti.models.user import User
from kalustovahti.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshTokenRequest,
    TokenResponse,
    UserProfile,
)

logger = structlog.get_logger()
router = APIRouter()


def _user_profile(user: User) -> UserProfile:
    return UserProfile(
        id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        is_active=user.is_active,
        roles=user.role_names,
        created_at=user.created_at.isoformat() if user.created_at else None,
        last_login=user.last_login_at.isoformat() if user.last_login_at else None,
    )


def _issue_tokens(user: User) -> TokenResponse:
    expires = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    return TokenResponse(
        access_token=create_access_token(
            subject=str(user.id),
            expires_delta=expires,
            additional_claims={"email": user.email},
        ),
        refresh_token=create_refresh_token(subject=str(user.id)),
        token_type="bearer",
        expires_in=int(expires.total_seconds()),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """
    User login endpoint

    Raises:
        HTTPException: 401 on unknown email, wrong password or inactive account
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user:
        logger.warning("Login attempt with non-existent email", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    # bcrypt is slow; keep it off the event loop
    password_valid = await asyncio.to_thread(
        verify_password, login_data.password, user.hashed_password
    )
    if not password_valid:
        logger.warning("Login attempt with invalid password", email=login_data.email, user_id=str(user.id))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not user.is_active:
        logger.warning("Login attempt by inactive user", email=login_data.email, user_id=str(user.id))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is inactive"
        )

    tokens = _issue_tokens(user)
    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()

    logger.info("User logged in successfully", email=user.email, user_id=str(user.id))
    return LoginResponse(user=_user_profile(user), tokens=tokens)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
) -> Any:
    """Exchange a refresh token for a new token pair"""
    user_id = verify_token(refresh_data.refresh_token, token_type="refresh")

    user = await load_active_user(db, user_id)
    if not user:
        logger.warning("Refresh token for non-existent or inactive user", user_id=user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token"
        )

    logger.debug("Tokens refreshed successfully", user_id=user_id)
    return _issue_tokens(user)


@router.get("/me", response_model=UserProfile)
async def get_current_user_profile(
    current_user: User = Depends(get_current_user)
) -> Any:
    return _user_profile(current_user)
