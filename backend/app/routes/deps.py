"""Dependency providers shared by the routers.

Tests override these through ``app.dependency_overrides``.
"""
from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..billing.quota import UsageSource
from ..billing.usage_source import CachedUsageSource, SqlUsageSource
from ..config import get_settings
from ..datasets.registry import DatasetRegistry
from ..utils.db import get_db, get_session_factory


def get_dataset_registry() -> DatasetRegistry:
    settings = get_settings()
    return DatasetRegistry(
        get_session_factory(),
        strict_headers=settings.DATASET_STRICT_HEADERS,
    )


def get_usage_source(session: AsyncSession = Depends(get_db)) -> UsageSource:
    """Counters from the database, cached in Redis unless the TTL is 0."""
    settings = get_settings()
    source: UsageSource = SqlUsageSource(session)
    if settings.USAGE_CACHE_TTL_SECONDS > 0:
        source = CachedUsageSource(source, settings.USAGE_CACHE_TTL_SECONDS)
    return source
