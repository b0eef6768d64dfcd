"""Pytest configuration and shared fixtures for service and API tests."""

import os
from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test DB and secrets before tenk imports so config/engine use them
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_tenk.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
# Valid Fernet key so refresh tokens are really encrypted in tests
os.environ.setdefault("ENCRYPTION_KEY", "ZmRmZGZkZmRmZGZkZmRmZGZkZmRmZGZkZmRmZGZkZmQ=")
os.environ.setdefault("RATE_LIMIT_DEFAULT", "10000/minute")
os.environ.setdefault("GOOGLE_GEMINI_API_KEY", "test-key")
os.environ.setdefault("STRAVA_CLIENT_ID", "12345")
os.environ.setdefault("STRAVA_CLIENT_SECRET", "strava-secret")
os.environ.setdefault("STRAVA_REDIRECT_URI", "http://test/api/v1/strava/callback")
os.environ.setdefault("STRAVA_WEBHOOK_VERIFY_TOKEN", "verify-me")
os.environ.setdefault("COACH_RATE_LIMIT_BACKEND", "memory")

import tenk.models  # noqa: E402,F401
from tenk.core.auth import create_access_token, hash_password  # noqa: E402
from tenk.core.rate_limit import reset_coach_rate_limiter  # noqa: E402
from tenk.db.base import Base  # noqa: E402
from tenk.db.session import async_session_maker, engine  # noqa: E402
from tenk.main import app  # noqa: E402
from tenk.models.challenge import Challenge  # noqa: E402
from tenk.models.user import ROLE_ADMIN, ROLE_USER, User  # noqa: E402
from tenk.services.badges import sync_badge_catalog  # noqa: E402
from tenk.services.http_client import close_http_client, init_http_client  # noqa: E402
from tenk.services.week import current_week_range  # noqa: E402

TEST_PASSWORD = "password123"


@pytest.fixture(autouse=True)
def fresh_coach_limiter():
    """Coach counters are process-local; start every test from zero."""
    reset_coach_rate_limiter()
    yield
    reset_coach_rate_limiter()


@pytest_asyncio.fixture
async def clean_db():
    """Recreate all tables, sync the badge catalog and open the shared HTTP client."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_maker() as session:
        await sync_badge_catalog(session)
        await session.commit()
    init_http_client(timeout=30.0)
    yield
    await close_http_client()
    await engine.dispose()


@pytest_asyncio.fixture
async def client(clean_db):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def session(clean_db):
    """Session for service-level tests; tests flush or commit as needed."""
    async with async_session_maker() as s:
        yield s


@pytest_asyncio.fixture
async def challenge(session):
    """Monday-start challenge with a 10 km target, started on 2026-10-05."""
    c = Challenge(
        name="Test challenge",
        start_date=date(2026, 10, 5),
        week_start_day=1,
        weekly_distance_target_km=Decimal("10"),
    )
    session.add(c)
    await session.flush()
    return c


@pytest_asyncio.fixture
async def runner(session):
    u = User(email="runner@test.com", name="Runner", password_hash=hash_password(TEST_PASSWORD))
    session.add(u)
    await session.flush()
    return u


@pytest_asyncio.fixture
async def create_user(clean_db):
    """Factory: commit a user and return (user_id, auth headers)."""

    async def _create(email: str, role: str = ROLE_USER, active: bool = True, name: str | None = None):
        async with async_session_maker() as s:
            user = User(
                email=email,
                name=name,
                role=role,
                active=active,
                password_hash=hash_password(TEST_PASSWORD),
            )
            s.add(user)
            await s.commit()
            await s.refresh(user)
        token = create_access_token(user.id, user.email, user.role)
        return user.id, {"Authorization": f"Bearer {token}"}

    return _create


@pytest_asyncio.fixture
async def test_user(create_user):
    """(user_id, email, headers) for a regular user."""
    user_id, headers = await create_user("test@test.com", name="Tester")
    return user_id, "test@test.com", headers


@pytest.fixture
def auth_headers(test_user):
    _, __, headers = test_user
    return headers


@pytest_asyncio.fixture
async def admin_headers(create_user):
    _, headers = await create_user("admin@test.com", role=ROLE_ADMIN, name="Admin")
    return headers


@pytest_asyncio.fixture
async def active_challenge(clean_db):
    """Committed Monday-start challenge that began two weeks before the current week."""
    async with async_session_maker() as s:
        c = Challenge(
            name="API challenge",
            start_date=current_week_range(1).start - timedelta(days=14),
            week_start_day=1,
            weekly_distance_target_km=Decimal("10"),
        )
        s.add(c)
        await s.commit()
        await s.refresh(c)
    return c
