"""FastAPI authentication dependencies.

Usage:
    @router.get("/protected")
    async def protected_endpoint(
        user: UserPrincipal = Depends(get_current_user),
    ):
        return {"user_id": str(user.id)}
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.app.config import get_settings

from .jwt_validator import (
    JWTValidationError,
    UserPrincipal,
    validate_jwt,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Security Scheme
# =============================================================================

# HTTPBearer extracts the token from Authorization header
_bearer_scheme = HTTPBearer(
    scheme_name="Bearer",
    description="JWT issued by the identity service",
    auto_error=False,  # We handle missing tokens ourselves
)

_FAILURE_DETAILS = {
    "expired": "Token has expired",
    "invalid_signature": "Invalid token signature",
    "invalid_audience": "Token not valid for this service",
    "invalid_issuer": "Token issuer not trusted",
}


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# =============================================================================
# Dependencies
# =============================================================================

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> UserPrincipal:
    """Get the current authenticated user from the request.

    Raises:
        HTTPException: 401 if authentication fails
    """
    if not credentials:
        raise _unauthorized("Missing authentication credentials")

    token = credentials.credentials
    if not token:
        raise _unauthorized("Invalid authentication token")

    settings = get_settings()
    try:
        user = validate_jwt(
            token,
            secret=settings.JWT_SECRET,
            expected_issuer=settings.JWT_ISSUER,
            expected_audience=settings.JWT_AUDIENCE,
        )
    except JWTValidationError as e:
        logger.info("authentication_failed", extra={"reason": e.reason})
        raise _unauthorized(_FAILURE_DETAILS.get(e.reason, "Authentication failed")) from None

    # Attach user to request state for logging
    request.state.user_id = str(user.id)
    return user


async def require_admin(
    user: UserPrincipal = Depends(get_current_user),
) -> UserPrincipal:
    """Require a platform admin.

    Raises:
        HTTPException: 403 for authenticated non-admin users
    """
    if not user.is_admin:
        logger.info("admin_access_denied", extra={"user_id": str(user.id)})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
