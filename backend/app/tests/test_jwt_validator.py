from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from backend.app.auth import JWTValidationError, UserPrincipal, validate_jwt


SECRET = "unit-test-signing-secret-0123456789abcdef"
USER_ID = uuid.UUID("7d7c5d22-3c1e-4b32-9d4e-0a6f1f0b9a11")


def _token(secret: str = SECRET, **claims) -> str:
    payload = {
        "sub": str(USER_ID),
        "email": "ada@example.com",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    payload.update(claims)
    payload = {key: value for key, value in payload.items() if value is not None}
    return jwt.encode(payload, secret, algorithm="HS256")


def test_valid_token_yields_principal() -> None:
    principal = validate_jwt(_token(role="admin"), secret=SECRET)
    assert principal.id == USER_ID
    assert principal.email == "ada@example.com"
    assert principal.is_admin


def test_role_defaults_to_user() -> None:
    principal = validate_jwt(_token(), secret=SECRET)
    assert principal.role == "user"
    assert not principal.is_admin


def test_unknown_role_is_downgraded_to_user() -> None:
    assert validate_jwt(_token(role="superuser"), secret=SECRET).role == "user"


def test_legacy_user_id_claim() -> None:
    principal = UserPrincipal.from_claims({"userId": str(USER_ID)})
    assert principal.id == USER_ID


@pytest.mark.parametrize(
    "token_kwargs, reason",
    [
        ({"secret": "another-signing-secret-0123456789abcdef"}, "invalid_signature"),
        ({"exp": datetime.now(timezone.utc) - timedelta(minutes=1)}, "expired"),
        ({"sub": "not-a-uuid"}, "invalid_sub"),
        ({"sub": None}, "missing_sub"),
    ],
)
def test_invalid_tokens(token_kwargs, reason) -> None:
    with pytest.raises(JWTValidationError) as excinfo:
        validate_jwt(_token(**token_kwargs), secret=SECRET)
    assert excinfo.value.reason == reason


def test_garbage_token() -> None:
    with pytest.raises(JWTValidationError) as excinfo:
        validate_jwt("garbage", secret=SECRET)
    assert excinfo.value.reason == "malformed_token"


def test_missing_secret() -> None:
    with pytest.raises(JWTValidationError) as excinfo:
        validate_jwt(_token(), secret=None)
    assert excinfo.value.reason == "not_configured"


def test_issuer_and_audience_are_checked_when_configured() -> None:
    token = _token(iss="identity", aud="spectr-api")
    principal = validate_jwt(token, secret=SECRET, expected_issuer="identity", expected_audience="spectr-api")
    assert principal.id == USER_ID

    with pytest.raises(JWTValidationError) as excinfo:
        validate_jwt(token, secret=SECRET, expected_issuer="someone-else")
    assert excinfo.value.reason == "invalid_issuer"

    with pytest.raises(JWTValidationError) as excinfo:
        validate_jwt(token, secret=SECRET, expected_audience="other-api")
    assert excinfo.value.reason == "invalid_audience"
