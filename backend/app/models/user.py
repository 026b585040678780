"""User model - accounts known to the admin console.

Identity itself is owned by the external auth service; this table holds the
profile fields the admin console lists and the platform role.
"""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from .organization import UserOrganization


class UserRole(str, Enum):
    """Platform-wide user roles."""
    USER = "user"
    ADMIN = "admin"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Application user record.

    Attributes:
        id: User UUID (matches the token subject)
        email: User's email address
        name: Display name
        role: Platform role (user, admin)
        email_verified: Whether the email address has been confirmed
        created_at: When the user record was created
        updated_at: When the user record was last modified
    """
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        default="",
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.USER.value,
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean(),
        nullable=False,
        default=False,
        server_default=false(),
    )

    # Relationships
    memberships: Mapped[list["UserOrganization"]] = relationship(
        "UserOrganization",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
