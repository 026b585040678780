"""Admin console user listing."""
from __future__ import annotations

import math
import uuid
from typing import Any, Dict, List, Optional, Tuple

import sqlalchemy as sa
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import require_admin
from ..config import get_settings
from ..models import Organization, User, UserOrganization
from ..utils.db import get_db
from .responses import ok


router = APIRouter(
    prefix="/admin/users",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


async def _primary_organizations(
    session: AsyncSession,
    user_ids: List[uuid.UUID],
) -> Dict[uuid.UUID, Tuple[str, str]]:
    """Map each user to the (name, plan) of their earliest organization."""
    if not user_ids:
        return {}
    stmt = (
        sa.select(UserOrganization.user_id, Organization.name, Organization.plan)
        .join(Organization, Organization.id == UserOrganization.organization_id)
        .where(UserOrganization.user_id.in_(user_ids))
        .order_by(UserOrganization.created_at, UserOrganization.id)
    )
    result: Dict[uuid.UUID, Tuple[str, str]] = {}
    for user_id, name, plan in (await session.execute(stmt)).all():
        result.setdefault(user_id, (name, plan))
    return result


def _serialize_user(user: User, organization: Optional[Tuple[str, str]]) -> Dict[str, Any]:
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "emailVerified": user.email_verified,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "organizationName": organization[0] if organization else None,
        "organizationPlan": organization[1] if organization else None,
    }


@router.get("")
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    search: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Paginated users, newest first; ``search`` matches email or name."""
    limit = limit or get_settings().ADMIN_USERS_PAGE_SIZE

    filters = []
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        filters.append(sa.or_(User.email.ilike(pattern), User.name.ilike(pattern)))

    total = (
        await session.execute(sa.select(sa.func.count()).select_from(User).where(*filters))
    ).scalar_one()

    stmt = (
        sa.select(User)
        .where(*filters)
        .order_by(User.created_at.desc(), User.email)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    users = list((await session.execute(stmt)).scalars().all())
    organizations = await _primary_organizations(session, [user.id for user in users])

    return ok({
        "users": [_serialize_user(user, organizations.get(user.id)) for user in users],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    })
