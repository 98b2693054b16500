"""
Security utilities: bearer tokens and password hashing
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from fastapi import HTTPException, status
from joserfc import jwt as jose_jwt
from joserfc.jwk import OctKey
from pwdlib import PasswordHash
from pwdlib.hashers.bcrypt import BcryptHasher
import structlog

from kalustovahti.core.config import settings
from kalustovahti.core.token_validator import IssuerAwareTokenValidator, LocalJWTValidationStrategy

logger = structlog.get_logger()

pwd_context = PasswordHash((BcryptHasher(),))

ALGORITHM = settings.JWT_ALGORITHM

_jwt_key = OctKey.import_key(settings.JWT_SECRET_KEY)

_token_validator = IssuerAwareTokenValidator(
    active_issuer=settings.AUTH_ACTIVE_ISSUER,
    trusted_issuers=settings.AUTH_TRUSTED_ISSUERS,
    local_strategy=LocalJWTValidationStrategy(
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=ALGORITHM,
        issuer=settings.AUTH_LOCAL_ISSUER,
    ),
)


def _encode(subject: Union[str, Any], token_type: str, expires_delta: timedelta, extra: Optional[dict] = None) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(subject),
        "type": token_type,
        "iss": settings.AUTH_LOCAL_ISSUER,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    if extra:
        claims.update(extra)
    return jose_jwt.encode({"alg": ALGORITHM}, claims, _jwt_key)


def create_access_token(
    subject: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict] = None,
) -> str:
    """
    Create a signed access token

    Args:
        subject: Token subject (user id)
        expires_delta: Custom lifetime, defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        additional_claims: Extra claims merged into the payload

    Returns:
        Encoded token
    """
    delta = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    token = _encode(subject, "access", delta, additional_claims)
    logger.debug("Access token created", subject=str(subject))
    return token


def create_refresh_token(subject: Union[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    delta = expires_delta or timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    token = _encode(subject, "refresh", delta)
    logger.debug("Refresh token created", subject=str(subject))
    return token


def verify_token(token: str, token_type: str = "access") -> str:
    """
    Validate a bearer token and return its subject

    Raises:
        HTTPException: 401 if the token is invalid, expired or untrusted
    """
    return _token_validator.validate(token, token_type=token_type).subject


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error("Password verification error", error=str(e))
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password with bcrypt

    Bcrypt reads at most 72 bytes; longer input is truncated on a
    character boundary.
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > 72:
        password = password_bytes[:72].decode("utf-8", errors="ignore")
        logger.warning("Password truncated to 72 bytes for bcrypt")

    try:
        return pwd_context.hash(password)
    except Exception as e:
        logger.error("Password hashing error", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error processing password",
        )
