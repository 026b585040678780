"""Billing models - usage counters.

Counters are written by the services that own each resource (workflow
engine, execution runner, intelligence service). This service only reads
them through ``backend.app.billing.usage_source.SqlUsageSource``.
"""
from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.billing.plans import MetricName

from .base import Base, TimestampMixin


TOTAL_PERIOD = "total"


def period_for(metric: MetricName, today: date) -> str:
    """Counter period key: "YYYY-MM" for monthly metrics, "total" otherwise."""
    if metric.is_monthly:
        return f"{today.year:04d}-{today.month:02d}"
    return TOTAL_PERIOD


class UsageCounter(Base, TimestampMixin):
    """Usage of one metric by one organization in one period.

    Attributes:
        id: Auto-incrementing primary key
        organization_id: Foreign key to organizations table
        metric: Metric wire name (see MetricName)
        period: "YYYY-MM" for monthly metrics, "total" for running totals
        current: Current count
    """
    __tablename__ = "usage_counters"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    metric: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
    )
    period: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        default=TOTAL_PERIOD,
    )
    current: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default="0",
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "metric", "period",
            name="usage_counters_org_metric_period_uniq",
        ),
        Index("usage_counters_org_period_idx", "organization_id", "period"),
    )

    def __repr__(self) -> str:
        return f"<UsageCounter(metric={self.metric}, period={self.period}, current={self.current})>"
