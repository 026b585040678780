"""Caller's organization: details, plan changes and plan usage."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import UserPrincipal, get_current_user
from ..billing.plans import PlanType
from ..billing.quota import QuotaLedger, UsageSource
from ..errors import NotFound, ValidationError
from ..models import Organization, UserOrganization
from ..utils.db import get_db
from .deps import get_usage_source
from .responses import ok


_logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/organization",
    tags=["organization"],
)

_VALID_PLANS = ", ".join(plan.value for plan in PlanType)


class PlanUpdate(BaseModel):
    plan: Optional[str] = None


async def _membership(
    session: AsyncSession,
    user: UserPrincipal,
    *,
    for_update: bool = False,
) -> Tuple[Organization, str]:
    """The caller's earliest organization membership and role."""
    stmt = (
        sa.select(Organization, UserOrganization.role)
        .join(UserOrganization, UserOrganization.organization_id == Organization.id)
        .where(UserOrganization.user_id == user.id)
        .order_by(UserOrganization.created_at, UserOrganization.id)
        .limit(1)
    )
    if for_update:
        stmt = stmt.with_for_update(of=Organization)
    row = (await session.execute(stmt)).first()
    if row is None:
        _logger.info("organization_membership_missing", extra={"user_id": str(user.id)})
        raise NotFound("Organization", user.id)
    return row[0], row[1]


@router.get("")
async def get_organization(
    user: UserPrincipal = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    organization, role = await _membership(session, user)
    return ok({
        "id": str(organization.id),
        "name": organization.name,
        "plan": organization.plan_type.value,
        "role": role,
        "createdAt": organization.created_at.isoformat() if organization.created_at else None,
    })


@router.put("/plan")
async def update_plan(
    body: PlanUpdate,
    user: UserPrincipal = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Move the caller's organization to another plan.

    Only current plan types are accepted; the legacy ``standard`` plan is
    rejected like any other unknown value.
    """
    if body.plan is None or not body.plan.strip():
        raise ValidationError("Plan is required", field="plan")
    try:
        plan = PlanType(body.plan.strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid plan. Must be one of: {_VALID_PLANS}", field="plan"
        ) from None

    organization, _ = await _membership(session, user, for_update=True)
    previous = organization.plan
    organization.plan = plan.value
    await session.flush()

    _logger.info(
        "organization_plan_updated",
        extra={
            "organization_id": str(organization.id),
            "from_plan": previous,
            "to_plan": plan.value,
        },
    )
    return ok({"plan": plan.value}, message="Plan updated successfully")


@router.get("/usage")
async def organization_usage(
    user: UserPrincipal = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    source: UsageSource = Depends(get_usage_source),
) -> Dict[str, Any]:
    """Usage of the caller's organization against its plan limits.

    Each metric sits at the top level of ``data`` as ``{current, limit, ...}``;
    ``organization`` describes whose usage it is.
    """
    organization, role = await _membership(session, user)
    plan = organization.plan_type
    report = await QuotaLedger(source).snapshot(organization.id, plan)

    data: Dict[str, Any] = report.as_dict()
    data["organization"] = {
        "id": str(organization.id),
        "name": organization.name,
        "plan": plan.value,
        "role": role,
    }
    return ok(data)
