"""SQLAlchemy ORM models for the Spectr platform backend.

This module exports all model classes for use throughout the application.
"""
from .base import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin
from .billing import TOTAL_PERIOD, UsageCounter, period_for
from .dataset import Dataset
from .organization import MembershipRole, Organization, UserOrganization
from .user import User, UserRole

__all__ = [
    # Base
    "Base",
    "JSONType",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # User
    "User",
    "UserRole",
    # Organization
    "Organization",
    "UserOrganization",
    "MembershipRole",
    # Billing
    "TOTAL_PERIOD",
    "UsageCounter",
    "period_for",
    # Datasets
    "Dataset",
]
