"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time, so configure the environment first
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CACHE_ENABLED"] = "false"
os.environ["DEBUG"] = "false"
os.environ["ADMIN_USER_IDS"] = "admin-1"
os.environ["CRON_SECRET"] = "test-cron-secret"

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from launchspace.config import settings
from launchspace.dependencies import get_cache, get_db
from launchspace.main import app
from launchspace.models import Base, Submission
from launchspace.services.cache_service import CacheService
from launchspace.services.submission_service import SubmissionService

# Wednesday, inside 2024-W10 (Mar 4 - Mar 10 by day offset)
FIXED_NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)


def submission_payload(**overrides: Any) -> Dict[str, Any]:
    """A valid create payload; override any field."""
    payload = {
        "name": "Foo",
        "short_description": "An AI tool that does foo things",
        "full_description": "Foo is an AI assistant that takes care of every foo-related chore for you.",
        "website_url": "https://foo.example.com",
        "categories": ["Productivity"],
        "pricing": "Free",
        "plan": "standard",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with SessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def make_submission(test_db: AsyncSession) -> Callable:
    """Factory creating a submission, optionally moved to ``status``."""

    async def _make(
        submitted_by: str = "user-a",
        status: str = "approved",
        now: datetime = FIXED_NOW,
        **overrides: Any,
    ) -> Submission:
        service = SubmissionService(test_db)
        submission = await service.create_submission(
            submission_payload(**overrides), submitted_by=submitted_by, now=now
        )
        if status in ("approved", "live", "archived", "rejected"):
            path = {
                "approved": ["approved"],
                "live": ["approved", "live"],
                "archived": ["approved", "live", "archived"],
                "rejected": ["rejected"],
            }[status]
            for step in path:
                submission = await service.set_status(submission.id, step, now=now)
        await test_db.commit()
        return submission

    return _make


def create_access_token(user_id: str, expires_minutes: int = 60) -> str:
    """Sign a token the way the identity provider does."""
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "iat": now, "exp": now + timedelta(minutes=expires_minutes)}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest_asyncio.fixture
async def client(test_db: AsyncSession):
    """HTTP client bound to the app with the test session and no cache."""

    async def _get_test_db():
        try:
            yield test_db
            await test_db.commit()
        except Exception:
            await test_db.rollback()
            raise

    async def _get_test_cache():
        return CacheService("redis://localhost:6379/15", enabled=False)

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_cache] = _get_test_cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
