"""Quota ledger: usage ratios, classification and remaining capacity.

Everything here is a pure function of (plan limits, current counts). Counts
come from an injected ``UsageSource``; nothing in this module writes them.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Protocol, Union

from backend.app.billing.plans import (
    UNLIMITED,
    Limit,
    MetricName,
    PlanType,
    get_plan_limits,
)
from backend.app.errors import InvalidMetric
from backend.app.telemetry.metrics import (
    observe_invalid_usage_metric,
    observe_usage_status,
)

logger = logging.getLogger(__name__)


NEAR_LIMIT_RATIO = 0.75
# Stricter "near limit" threshold used by alerting callers.
ALERT_RATIO = 0.90
EXCEEDED_RATIO = 1.0


class UsageStatus(str, Enum):
    """Classification of a usage ratio."""
    OK = "ok"
    NEAR = "near"
    EXCEEDED = "exceeded"


@dataclass(frozen=True)
class UsageMetric:
    """Current usage of one resource against its plan limit."""
    current: int
    limit: Limit

    def __post_init__(self) -> None:
        if self.limit == UNLIMITED:
            return
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 1:
            raise InvalidMetric(f"limit must be a positive integer or {UNLIMITED!r}, got {self.limit!r}")

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED


def _check_current(metric: UsageMetric) -> None:
    if metric.current < 0:
        raise InvalidMetric(f"usage count cannot be negative: {metric.current}")


def usage_ratio(metric: UsageMetric) -> float:
    """Fraction of the limit in use, capped at 1.0; 0.0 for unlimited limits."""
    _check_current(metric)
    if metric.is_unlimited:
        return 0.0
    return min(metric.current / metric.limit, 1.0)


def classify(ratio: float, near_threshold: float = NEAR_LIMIT_RATIO) -> UsageStatus:
    """Classify a usage ratio.

    ``ratio >= 1.0`` is exceeded, ``near_threshold <= ratio < 1.0`` is near,
    anything lower is ok. Pass ``ALERT_RATIO`` for the stricter threshold.
    """
    if not 0.0 < near_threshold < EXCEEDED_RATIO:
        raise ValueError(f"near_threshold must be in (0, 1), got {near_threshold}")
    if ratio >= EXCEEDED_RATIO:
        return UsageStatus.EXCEEDED
    if ratio >= near_threshold:
        return UsageStatus.NEAR
    return UsageStatus.OK


def remaining(metric: UsageMetric) -> Limit:
    """Capacity left before the limit; ``UNLIMITED`` for unlimited limits."""
    _check_current(metric)
    if metric.is_unlimited:
        return UNLIMITED
    return max(0, metric.limit - metric.current)


def build_usage(
    plan: PlanType,
    counts: Mapping[MetricName, int],
) -> Dict[MetricName, UsageMetric]:
    """Pair each metric's current count with the plan's limit (missing counts are 0)."""
    limits = get_plan_limits(plan)
    return {
        name: UsageMetric(current=int(counts.get(name, 0)), limit=limits.limit_for(name))
        for name in MetricName
    }


@dataclass(frozen=True)
class MetricSummary:
    """Rendered view of one metric for API callers."""
    metric: MetricName
    current: int
    limit: Limit
    ratio: float
    status: UsageStatus
    remaining: Limit

    @property
    def percentage(self) -> float:
        return round(self.ratio * 100, 1)

    def as_dict(self) -> Dict[str, Union[int, float, str]]:
        return {
            "current": self.current,
            "limit": self.limit,
            "usageRatio": self.ratio,
            "percentage": self.percentage,
            "status": self.status.value,
            "remaining": self.remaining,
        }


def summarize(name: MetricName, metric: UsageMetric) -> MetricSummary:
    """Summarize a metric, clamping an invalid negative count to zero.

    A negative count means the external counter is broken; it is logged and
    counted but never surfaced to the caller as an error.
    """
    try:
        ratio = usage_ratio(metric)
    except InvalidMetric:
        logger.warning(
            "usage_metric_invalid",
            extra={"metric": name.value, "current": metric.current},
        )
        observe_invalid_usage_metric(name.value)
        metric = UsageMetric(current=0, limit=metric.limit)
        ratio = usage_ratio(metric)

    status = classify(ratio)
    observe_usage_status(name.value, status.value)
    return MetricSummary(
        metric=name,
        current=metric.current,
        limit=metric.limit,
        ratio=ratio,
        status=status,
        remaining=remaining(metric),
    )


class UsageSource(Protocol):
    """Read-only provider of current usage counts for an organization."""

    async def get_counts(self, organization_id: uuid.UUID) -> Mapping[MetricName, int]:
        ...


@dataclass(frozen=True)
class UsageReport:
    """Usage of all six metrics for one organization."""
    organization_id: uuid.UUID
    plan: PlanType
    metrics: List[MetricSummary]

    def get(self, name: MetricName) -> MetricSummary:
        for summary in self.metrics:
            if summary.metric is name:
                return summary
        raise KeyError(name)

    def as_dict(self) -> Dict[str, object]:
        return {summary.metric.value: summary.as_dict() for summary in self.metrics}


class QuotaLedger:
    """Computes usage reports from plan limits and an injected UsageSource."""

    def __init__(self, source: UsageSource) -> None:
        self._source = source

    async def snapshot(self, organization_id: uuid.UUID, plan: PlanType) -> UsageReport:
        counts = await self._source.get_counts(organization_id)
        usage = build_usage(plan, counts)
        return UsageReport(
            organization_id=organization_id,
            plan=plan,
            metrics=[summarize(name, usage[name]) for name in MetricName],
        )


__all__ = [
    "NEAR_LIMIT_RATIO",
    "ALERT_RATIO",
    "EXCEEDED_RATIO",
    "UsageStatus",
    "UsageMetric",
    "usage_ratio",
    "classify",
    "remaining",
    "build_usage",
    "MetricSummary",
    "summarize",
    "UsageSource",
    "UsageReport",
    "QuotaLedger",
]
