"""Shared fixtures: a file-backed SQLite database per test and an API client."""
from __future__ import annotations

import os

# Settings are read once per process; fix them before the app is imported.
os.environ["POSTGRES_DSN"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "api-test-signing-secret-0123456789abcdef"
os.environ["USAGE_CACHE_TTL_SECONDS"] = "0"
os.environ.pop("JWT_ISSUER", None)
os.environ.pop("JWT_AUDIENCE", None)

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Dict

import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from backend.app.datasets.registry import DatasetRegistry
from backend.app.main import create_app
from backend.app.models import Base, Organization, User, UserOrganization
from backend.app.routes.deps import get_dataset_registry
from backend.app.utils.db import get_db, make_session_factory


TEST_SECRET = "api-test-signing-secret-0123456789abcdef"
ADMIN_ID = uuid.UUID("550e8400-e29b-41d4-a716-446655440000")
MEMBER_ID = uuid.UUID("550e8400-e29b-41d4-a716-446655440001")


def make_token(user_id: uuid.UUID, role: str = "user", **claims: Any) -> str:
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "email": f"{user_id.hex[:8]}@example.com",
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    payload.update(claims)
    return jwt.encode(payload, TEST_SECRET, algorithm="HS256")


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# --- Database Fixtures ---


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def registry(session_factory) -> DatasetRegistry:
    return DatasetRegistry(session_factory)


@pytest.fixture
async def member_org(session_factory) -> Organization:
    """A pro organization with MEMBER_ID as its admin member."""
    async with session_factory() as session:
        user = User(id=MEMBER_ID, email="member@example.com", name="Member", email_verified=True)
        org = Organization(name="Acme", plan="pro")
        session.add_all([user, org])
        await session.flush()
        session.add(UserOrganization(user_id=user.id, organization_id=org.id, role="admin"))
        await session.commit()
        await session.refresh(org)
        return org


# --- API Fixtures ---


@pytest.fixture
def app(session_factory, registry):
    app = create_app()

    async def _get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_dataset_registry] = lambda: registry
    return app


@pytest.fixture
async def client(app) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return bearer(make_token(ADMIN_ID, role="admin"))


@pytest.fixture
def member_headers() -> Dict[str, str]:
    return bearer(make_token(MEMBER_ID))
