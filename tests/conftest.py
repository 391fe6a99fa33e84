import os
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Settings are read at import time, so the environment must be in place first
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from scheduler import models  # noqa: E402,F401
from scheduler.api.deps.auth import get_api_key  # noqa: E402
from scheduler.api.deps.booking import get_booking_policy, get_current_time  # noqa: E402
from scheduler.core.database import (  # noqa: E402
    Base,
    build_engine,
    build_session_factory,
    get_db,
)
from scheduler.main import app  # noqa: E402
from scheduler.services.validation import BookingPolicy  # noqa: E402

TEST_API_KEY = "test-api-key"

# Use environment variable to determine test database
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Fixed processing time: Monday 2026-01-05 12:00 UTC (07:00 in New York)
FIXED_NOW = datetime(2026, 1, 5, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def db():
    """Create a fresh database session for each test."""
    engine = build_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
        await conn.run_sync(Base.metadata.create_all)

    async_session = build_session_factory(engine)

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def policy() -> BookingPolicy:
    """Default shop policy: 9 AM - 7 PM New York time, 30-minute slots."""
    return BookingPolicy()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def override_dependencies(db: AsyncSession, policy: BookingPolicy, now: datetime):
    """Point the app at the test database, clock, policy and API key."""

    async def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_current_time] = lambda: now
    app.dependency_overrides[get_booking_policy] = lambda: policy
    app.dependency_overrides[get_api_key] = lambda: TEST_API_KEY
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override_dependencies):
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


# Test Authentication Utilities
def get_auth_headers(api_key: str = TEST_API_KEY) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


def make_request_payload(**overrides) -> dict:
    """Valid booking payload for 2026-01-06 14:00 UTC (09:00 in New York)."""
    payload = {
        "fullName": "John Doe",
        "location": "Loc-A",
        "appointmentTime": "2026-01-06T14:00:00Z",
        "car": "Subaru Outback",
        "services": ["Oil Change"],
    }
    payload.update(overrides)
    return payload
