"""Usage sources feeding the quota ledger.

The counters themselves are maintained by the services that own each
resource. Sources here only read them.
"""
from __future__ import annotations

import json
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Callable, Dict, Mapping, Optional

import sqlalchemy as sa
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.billing.plans import MetricName
from backend.app.billing.quota import UsageSource
from backend.app.models.billing import UsageCounter, period_for
from backend.app.utils.redis_client import cache_get, cache_set, make_key

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class StaticUsageSource:
    """In-memory counts, keyed by organization. Unknown organizations read as zero."""

    def __init__(self, counts: Optional[Mapping[uuid.UUID, Mapping[MetricName, int]]] = None) -> None:
        self._counts: Dict[uuid.UUID, Dict[MetricName, int]] = {
            org_id: dict(values) for org_id, values in (counts or {}).items()
        }

    def set_counts(self, organization_id: uuid.UUID, counts: Mapping[MetricName, int]) -> None:
        self._counts[organization_id] = dict(counts)

    async def get_counts(self, organization_id: uuid.UUID) -> Mapping[MetricName, int]:
        return dict(self._counts.get(organization_id, {}))


class SqlUsageSource:
    """Reads ``usage_counters`` for the current period of each metric."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        self._session = session
        self._today = today

    async def get_counts(self, organization_id: uuid.UUID) -> Mapping[MetricName, int]:
        today = self._today()
        periods = {name: period_for(name, today) for name in MetricName}
        stmt = sa.select(UsageCounter.metric, UsageCounter.period, UsageCounter.current).where(
            UsageCounter.organization_id == organization_id,
            UsageCounter.period.in_(sorted(set(periods.values()))),
        )
        rows = (await self._session.execute(stmt)).all()

        counts: Dict[MetricName, int] = {}
        for metric, period, current in rows:
            try:
                name = MetricName(metric)
            except ValueError:
                logger.warning(
                    "usage_counter_unknown_metric",
                    extra={"organization_id": str(organization_id), "metric": metric},
                )
                continue
            if periods[name] == period:
                counts[name] = int(current)
        return counts


class CachedUsageSource:
    """Caches another source's counts in Redis for ``ttl_seconds``.

    Redis failures are logged by the cache helpers and fall through to the
    inner source.
    """

    def __init__(
        self,
        inner: UsageSource,
        ttl_seconds: int,
        client: Optional[Redis] = None,
    ) -> None:
        self._inner = inner
        self._ttl_seconds = ttl_seconds
        self._client = client

    @staticmethod
    def cache_key(organization_id: uuid.UUID) -> str:
        return make_key("usage", str(organization_id))

    async def get_counts(self, organization_id: uuid.UUID) -> Mapping[MetricName, int]:
        key = self.cache_key(organization_id)
        cached = await cache_get(key, client=self._client)
        if cached is not None:
            try:
                return {MetricName(name): int(value) for name, value in json.loads(cached).items()}
            except (ValueError, TypeError, AttributeError):
                logger.warning("usage_cache_entry_invalid", extra={"key": key})

        counts = await self._inner.get_counts(organization_id)
        payload = json.dumps({name.value: int(value) for name, value in counts.items()})
        await cache_set(key, payload, ex=self._ttl_seconds, client=self._client)
        return counts


__all__ = ["StaticUsageSource", "SqlUsageSource", "CachedUsageSource"]
