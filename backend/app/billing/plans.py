"""Subscription plans and their usage limits.

The limit table is fixed at import time and never mutated. A limit is either
a positive integer or the ``UNLIMITED`` sentinel.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Literal, Mapping, Optional, Union

logger = logging.getLogger(__name__)


UNLIMITED: Literal["unlimited"] = "unlimited"

Limit = Union[int, Literal["unlimited"]]


class PlanType(str, Enum):
    """Subscription plan types."""
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class MetricName(str, Enum):
    """The six metered resources, keyed by their wire names."""
    WORKFLOWS = "workflows"
    EXECUTIONS_PER_MONTH = "executionsPerMonth"
    STORAGE_GB = "storageGB"
    API_CALLS_PER_MONTH = "apiCallsPerMonth"
    INTELLIGENCE_PROJECTS = "intelligenceProjects"
    FINDINGS_PER_MONTH = "findingsPerMonth"

    @property
    def is_monthly(self) -> bool:
        """True for counters that reset every calendar month."""
        return self in _MONTHLY_METRICS


_MONTHLY_METRICS = frozenset(
    {
        MetricName.EXECUTIONS_PER_MONTH,
        MetricName.API_CALLS_PER_MONTH,
        MetricName.FINDINGS_PER_MONTH,
    }
)


@dataclass(frozen=True)
class PlanLimits:
    """Per-plan limits for every metric."""
    plan: PlanType
    limits: Mapping[MetricName, Limit]

    def limit_for(self, metric: MetricName) -> Limit:
        return self.limits[metric]


def _limits(**values: Limit) -> Mapping[MetricName, Limit]:
    table = {MetricName(name): value for name, value in values.items()}
    missing = set(MetricName) - set(table)
    if missing:
        raise ValueError(f"plan table missing metrics: {sorted(m.value for m in missing)}")
    return MappingProxyType(table)


PLAN_LIMITS: Mapping[PlanType, PlanLimits] = MappingProxyType(
    {
        PlanType.FREE: PlanLimits(
            plan=PlanType.FREE,
            limits=_limits(
                workflows=3,
                executionsPerMonth=100,
                storageGB=1,
                apiCallsPerMonth=1000,
                intelligenceProjects=1,
                findingsPerMonth=50,
            ),
        ),
        PlanType.PRO: PlanLimits(
            plan=PlanType.PRO,
            limits=_limits(
                workflows=100,
                executionsPerMonth=10000,
                storageGB=100,
                apiCallsPerMonth=100000,
                intelligenceProjects=50,
                findingsPerMonth=5000,
            ),
        ),
        PlanType.ENTERPRISE: PlanLimits(
            plan=PlanType.ENTERPRISE,
            limits=_limits(
                workflows=UNLIMITED,
                executionsPerMonth=UNLIMITED,
                storageGB=UNLIMITED,
                apiCallsPerMonth=UNLIMITED,
                intelligenceProjects=UNLIMITED,
                findingsPerMonth=UNLIMITED,
            ),
        ),
    }
)


def get_plan_limits(plan: PlanType) -> PlanLimits:
    """Return the limit table for a plan."""
    return PLAN_LIMITS[plan]


def resolve_plan(value: Optional[str]) -> PlanType:
    """Map a stored plan string onto a PlanType.

    Unknown or missing values fall back to the free plan.
    """
    if isinstance(value, PlanType):
        return value
    if value:
        try:
            return PlanType(value.strip().lower())
        except ValueError:
            logger.warning("unknown_plan_fallback_free", extra={"plan": value})
    return PlanType.FREE


__all__ = [
    "UNLIMITED",
    "Limit",
    "PlanType",
    "MetricName",
    "PlanLimits",
    "PLAN_LIMITS",
    "get_plan_limits",
    "resolve_plan",
]
