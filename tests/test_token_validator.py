from datetime import timedelta

from fastapi import HTTPException
import pytest

from kalustovahti.core.config import settings
from kalustovahti.core.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    verify_password,
    verify_token,
)
from kalustovahti.core.token_validator import IssuerAwareTokenValidator, LocalJWTValidationStrategy


def _validator(active_issuer="local", trusted_issuers=None):
    return IssuerAwareTokenValidator(
        active_issuer=active_issuer,
        trusted_issuers=trusted_issuers or [settings.AUTH_LOCAL_ISSUER],
        local_strategy=LocalJWTValidationStrategy(
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            issuer=settings.AUTH_LOCAL_ISSUER,
        ),
    )


def test_verify_token_uses_local_strategy_successfully():
    token = create_access_token(subject="token-test-user")

    assert verify_token(token, token_type="access") == "token-test-user"


def test_refresh_token_is_not_accepted_as_access_token():
    token = create_refresh_token(subject="token-test-user")

    with pytest.raises(HTTPException) as exc_info:
        verify_token(token, token_type="access")

    assert exc_info.value.status_code == 401


def test_expired_token_is_rejected():
    token = create_access_token(subject="token-test-user", expires_delta=timedelta(seconds=-60))

    with pytest.raises(HTTPException) as exc_info:
        verify_token(token, token_type="access")

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Token expired"


def test_tampered_token_is_rejected():
    token = create_access_token(subject="token-test-user")

    with pytest.raises(HTTPException) as exc_info:
        verify_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"), token_type="access")

    assert exc_info.value.status_code == 401


def test_issuer_aware_validator_rejects_untrusted_issuer_claim():
    token = create_access_token(
        subject="token-test-user",
        additional_claims={"iss": "malicious-issuer"},
    )

    with pytest.raises(HTTPException) as exc_info:
        _validator().validate(token, token_type="access")

    assert exc_info.value.status_code == 401
    assert "issuer" in str(exc_info.value.detail).lower()


def test_issuer_aware_validator_fails_for_unsupported_active_strategy():
    token = create_access_token(subject="token-test-user")

    with pytest.raises(HTTPException) as exc_info:
        _validator(active_issuer="keycloak", trusted_issuers=["local", "keycloak"]).validate(token)

    assert exc_info.value.status_code == 500


def test_password_hash_round_trip():
    hashed = get_password_hash("salasana1")

    assert verify_password("salasana1", hashed)
    assert not verify_password("salasana2", hashed)
