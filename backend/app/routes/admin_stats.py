"""Admin console statistics."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import sqlalchemy as sa
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import require_admin
from ..billing.plans import MetricName
from ..models import Dataset, Organization, TOTAL_PERIOD, UsageCounter, User
from ..utils.db import get_db
from .responses import ok


router = APIRouter(
    prefix="/admin/stats",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


async def _count(session: AsyncSession, model: Any, *filters: Any) -> int:
    stmt = sa.select(sa.func.count()).select_from(model).where(*filters)
    return int((await session.execute(stmt)).scalar_one())


async def _sum_counter(session: AsyncSession, *filters: Any) -> int:
    stmt = sa.select(sa.func.coalesce(sa.func.sum(UsageCounter.current), 0)).where(*filters)
    return int((await session.execute(stmt)).scalar_one())


@router.get("/overview")
async def overview(session: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    plan_rows = (
        await session.execute(
            sa.select(Organization.plan, sa.func.count())
            .group_by(Organization.plan)
            .order_by(Organization.plan)
        )
    ).all()

    return ok({
        "totalUsers": await _count(session, User),
        "verifiedUsers": await _count(session, User, User.email_verified.is_(True)),
        "totalOrganizations": await _count(session, Organization),
        "totalDatasets": await _count(session, Dataset),
        "discoverableDatasets": await _count(
            session, Dataset, Dataset.is_public.is_(True), Dataset.is_active.is_(True)
        ),
        "totalWorkflows": await _sum_counter(
            session,
            UsageCounter.metric == MetricName.WORKFLOWS.value,
            UsageCounter.period == TOTAL_PERIOD,
        ),
        # All months, so this is the lifetime execution count.
        "totalExecutions": await _sum_counter(
            session, UsageCounter.metric == MetricName.EXECUTIONS_PER_MONTH.value
        ),
        "planDistribution": [{"plan": plan, "count": count} for plan, count in plan_rows],
    })


@router.get("/users")
async def user_growth(
    days: int = Query(default=30, ge=1, le=365),
    session: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """New users per day over the last ``days`` days, oldest first."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    day = sa.func.date(User.created_at)
    stmt = (
        sa.select(day.label("day"), sa.func.count())
        .where(User.created_at >= since)
        .group_by(day)
        .order_by(day)
    )
    rows = (await session.execute(stmt)).all()
    return ok([{"date": str(value), "count": count} for value, count in rows])
