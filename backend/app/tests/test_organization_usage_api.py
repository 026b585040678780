from __future__ import annotations

from datetime import datetime, timezone

from conftest import ADMIN_ID, bearer, make_token

from backend.app.billing.plans import MetricName
from backend.app.models import Organization, UsageCounter, period_for


async def test_usage_requires_authentication(client) -> None:
    response = await client.get("/organization/usage")
    assert response.status_code == 401


async def test_usage_without_membership_is_404(client) -> None:
    response = await client.get("/organization/usage", headers=bearer(make_token(ADMIN_ID)))
    assert response.status_code == 404
    assert response.json()["error"] == "Organization not found"


async def test_usage_reports_every_metric(client, member_headers, member_org, session_factory) -> None:
    today = datetime.now(timezone.utc).date()
    async with session_factory() as session:
        session.add_all(
            [
                UsageCounter(organization_id=member_org.id, metric="workflows", period="total", current=80),
                UsageCounter(
                    organization_id=member_org.id,
                    metric="executionsPerMonth",
                    period=period_for(MetricName.EXECUTIONS_PER_MONTH, today),
                    current=10000,
                ),
                # A previous month does not count against this month's limit.
                UsageCounter(
                    organization_id=member_org.id,
                    metric="apiCallsPerMonth",
                    period="1999-01",
                    current=99999,
                ),
            ]
        )
        await session.commit()

    response = await client.get("/organization/usage", headers=member_headers)
    assert response.status_code == 200
    data = response.json()["data"]

    assert data["organization"]["plan"] == "pro"
    assert data["organization"]["role"] == "admin"
    assert set(data) == {name.value for name in MetricName} | {"organization"}

    assert data["workflows"] == {
        "current": 80,
        "limit": 100,
        "usageRatio": 0.8,
        "percentage": 80.0,
        "status": "near",
        "remaining": 20,
    }
    assert data["executionsPerMonth"]["status"] == "exceeded"
    assert data["executionsPerMonth"]["remaining"] == 0
    assert data["apiCallsPerMonth"]["current"] == 0
    assert data["apiCallsPerMonth"]["status"] == "ok"


async def test_unknown_plan_reads_as_free(client, member_headers, member_org, session_factory) -> None:
    async with session_factory() as session:
        org = await session.get(Organization, member_org.id)
        org.plan = "standard"
        await session.commit()

    response = await client.get("/organization/usage", headers=member_headers)
    data = response.json()["data"]
    assert data["organization"]["plan"] == "free"
    assert data["workflows"]["limit"] == 3
