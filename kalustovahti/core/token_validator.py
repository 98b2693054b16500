"""
Bearer token validation by issuer.

The local HS256 issuer is the only strategy wired in; others can be
registered under their issuer name without touching the call sites.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status
from joserfc import jwt as jose_jwt
from joserfc.errors import BadSignatureError, DecodeError, ExpiredTokenError, InvalidClaimError, InvalidTokenError, MissingClaimError
from joserfc.jwk import OctKey
import structlog

logger = structlog.get_logger()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


@dataclass(frozen=True)
class TokenValidationResult:
    subject: str
    claims: dict
    issuer: str


class TokenValidationStrategy(ABC):
    @abstractmethod
    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        raise NotImplementedError


class LocalJWTValidationStrategy(TokenValidationStrategy):
    def __init__(self, secret_key: str, algorithm: str, issuer: str) -> None:
        self._jwt_key = OctKey.import_key(secret_key)
        self._algorithm = algorithm
        self._issuer = issuer
        self._claims_registry = jose_jwt.JWTClaimsRegistry(
            sub={"essential": True},
            exp={"essential": True},
        )

    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        try:
            token_obj = jose_jwt.decode(token, self._jwt_key, algorithms=[self._algorithm])
            claims = token_obj.claims
            self._claims_registry.validate(claims)
        except ExpiredTokenError:
            logger.warning("Token expired")
            raise _unauthorized("Token expired")
        except MissingClaimError as exc:
            logger.warning("Token missing claim", error=str(exc))
            raise _unauthorized("Invalid token: missing claim")
        except (BadSignatureError, DecodeError, InvalidClaimError, InvalidTokenError, ValueError) as exc:
            logger.warning("JWT verification failed", error=str(exc))
            raise _unauthorized("Could not validate credentials")

        if claims.get("type") != token_type:
            logger.warning("Invalid token type", expected=token_type, actual=claims.get("type"))
            raise _unauthorized("Invalid token type")

        issuer = claims.get("iss") or self._issuer
        logger.debug("Token verified", subject=claims["sub"], issuer=issuer, type=token_type)
        return TokenValidationResult(subject=str(claims["sub"]), claims=dict(claims), issuer=issuer)


class IssuerAwareTokenValidator:
    """Routes validation to the strategy of the active issuer and rejects untrusted issuers"""

    def __init__(
        self,
        *,
        active_issuer: str,
        trusted_issuers: list[str],
        local_strategy: TokenValidationStrategy,
        external_strategies: Optional[dict[str, TokenValidationStrategy]] = None,
    ) -> None:
        self._active_issuer = active_issuer
        self._trusted_issuers = set(trusted_issuers)
        self._strategies = {"local": local_strategy, **(external_strategies or {})}

    def validate(self, token: str, token_type: str = "access") -> TokenValidationResult:
        strategy = self._strategies.get(self._active_issuer)
        if strategy is None:
            logger.error("Unsupported active auth issuer", active_issuer=self._active_issuer)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Unsupported authentication issuer strategy",
            )

        result = strategy.validate(token, token_type=token_type)
        if self._trusted_issuers and result.issuer not in self._trusted_issuers:
            logger.warning("Token issuer is not trusted", issuer=result.issuer, trusted=sorted(self._trusted_issuers))
            raise _unauthorized("Untrusted token issuer")

        return result
