"""Bearer token validation for tokens issued by the identity service.

Tokens are HS256-signed with the shared ``JWT_SECRET``. This module only
validates them and maps the claims onto a ``UserPrincipal``; issuing tokens
and sessions belongs to the identity service.

Security considerations:
- Never logs tokens or secrets
- Validates exp/nbf always, iss/aud when configured
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import jwt
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    InvalidTokenError,
)

from backend.app.models.user import UserRole
from backend.app.telemetry.metrics import observe_jwt_validation

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


# =============================================================================
# Exceptions
# =============================================================================

class JWTValidationError(Exception):
    """Raised when token validation fails."""

    def __init__(self, reason: str, detail: Optional[str] = None):
        self.reason = reason
        self.detail = detail
        super().__init__(reason)


# =============================================================================
# User Principal
# =============================================================================

@dataclass
class UserPrincipal:
    """Represents an authenticated user derived from JWT claims.

    Attributes:
        id: User's unique identifier (``sub`` claim, or legacy ``userId``)
        email: User's email address
        role: Platform role ("user" or "admin")
        raw_claims: Original JWT claims for extension
    """
    id: uuid.UUID
    email: str = ""
    role: str = UserRole.USER.value
    raw_claims: dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "UserPrincipal":
        """Create UserPrincipal from JWT claims."""
        user_id = claims.get("sub") or claims.get("userId")
        if not user_id:
            raise JWTValidationError("missing_sub", "Token missing 'sub' claim")

        try:
            user_uuid = uuid.UUID(str(user_id))
        except ValueError:
            raise JWTValidationError("invalid_sub", "Invalid UUID in 'sub' claim") from None

        role = str(claims.get("role") or UserRole.USER.value).lower()
        if role not in {r.value for r in UserRole}:
            role = UserRole.USER.value

        return cls(
            id=user_uuid,
            email=claims.get("email", ""),
            role=role,
            raw_claims=claims,
        )


# =============================================================================
# Token Validation
# =============================================================================

def validate_jwt(
    token: str,
    *,
    secret: Optional[str],
    expected_issuer: Optional[str] = None,
    expected_audience: Optional[str] = None,
) -> UserPrincipal:
    """Validate a JWT and return a UserPrincipal.

    Args:
        token: The JWT token string (without "Bearer " prefix)
        secret: Shared HS256 secret
        expected_issuer: Expected token issuer (iss claim)
        expected_audience: Expected token audience (aud claim)

    Returns:
        UserPrincipal representing the authenticated user

    Raises:
        JWTValidationError: If validation fails
    """
    start = time.perf_counter()
    try:
        if not secret:
            raise JWTValidationError("not_configured", "JWT_SECRET is not set")

        options = {
            "verify_signature": True,
            "verify_exp": True,
            "verify_nbf": True,
            "verify_aud": expected_audience is not None,
        }
        decode_kwargs: dict[str, Any] = {
            "algorithms": [ALGORITHM],
            "options": options,
        }
        if expected_issuer:
            decode_kwargs["issuer"] = expected_issuer
        if expected_audience:
            decode_kwargs["audience"] = expected_audience

        try:
            claims = jwt.decode(token, key=secret, **decode_kwargs)
        except ExpiredSignatureError:
            raise JWTValidationError("expired", "Token has expired") from None
        except InvalidSignatureError:
            raise JWTValidationError("invalid_signature", "Token signature is invalid") from None
        except InvalidIssuerError:
            raise JWTValidationError("invalid_issuer", "Token issuer is invalid") from None
        except InvalidAudienceError:
            raise JWTValidationError("invalid_audience", "Token audience is invalid") from None
        except DecodeError:
            raise JWTValidationError("malformed_token", "Could not decode token") from None
        except InvalidTokenError as e:
            raise JWTValidationError("invalid_token", str(e)) from None

        principal = UserPrincipal.from_claims(claims)
    except JWTValidationError as e:
        observe_jwt_validation("invalid", e.reason, time.perf_counter() - start)
        raise

    duration = time.perf_counter() - start
    observe_jwt_validation("valid", None, duration)
    logger.debug(
        "jwt_validation_success",
        extra={"user_id": str(principal.id), "duration_ms": duration * 1000},
    )
    return principal
