"""Organization and membership models.

An organization holds the subscription plan that bounds its usage; users
belong to organizations through ``UserOrganization`` with a per-membership
role.
"""
from __future__ import annotations

import uuid
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.billing.plans import PlanType, resolve_plan

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from .user import User


class MembershipRole(str, Enum):
    """Role of a user within an organization."""
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class Organization(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Organization owning a subscription plan.

    Attributes:
        id: Organization UUID
        name: Display name
        plan: Plan type (free, pro, enterprise)
    """
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    plan: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PlanType.FREE.value,
        index=True,
    )

    # Relationships
    memberships: Mapped[list["UserOrganization"]] = relationship(
        "UserOrganization",
        back_populates="organization",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, plan={self.plan})>"

    @property
    def plan_type(self) -> PlanType:
        """Stored plan resolved to a PlanType (unknown values read as free)."""
        return resolve_plan(self.plan)


class UserOrganization(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Membership of a user in an organization."""
    __tablename__ = "user_organizations"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MembershipRole.MEMBER.value,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="memberships")
    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="memberships"
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "organization_id",
            name="user_organizations_user_org_uniq",
        ),
    )

    def __repr__(self) -> str:
        return f"<UserOrganization(user_id={self.user_id}, organization_id={self.organization_id}, role={self.role})>"
