"""Authentication module for the Spectr platform backend.

Validates HS256 bearer tokens issued by the identity service.
"""
from .dependencies import (
    get_current_user,
    require_admin,
)
from .jwt_validator import (
    JWTValidationError,
    UserPrincipal,
    validate_jwt,
)

__all__ = [
    # Dependencies
    "get_current_user",
    "require_admin",
    # JWT Validation
    "JWTValidationError",
    "UserPrincipal",
    "validate_jwt",
]
