"""
Dashboard Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment variables are set before any `dashboard` import so the
       engine binds to a throwaway SQLite file. Tables are created and dropped
       around every test that touches the database.

Fixture Hierarchy:
    Function-scoped:
    ├── mock_db_session: AsyncMock standing in for AsyncSession
    ├── database: creates/drops all tables on the SQLite test database
    ├── db_session: AsyncSession on that database
    ├── seeded: two users (u1, u2) with live sessions plus one expired session
    ├── storage_root: fresh upload root under tmp_path
    ├── app_settings: Settings pointing at storage_root
    └── test_client: HTTPX AsyncClient against the app with app_settings
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (before any dashboard import)
# ══════════════════════════════════════════════════════════════════════════

_TEST_DIR = tempfile.mkdtemp(prefix="dashboard_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["UPLOAD_STORAGE_PATH"] = os.path.join(_TEST_DIR, "images")
os.environ["AUTH_SECRET"] = ""
os.environ["PROFILE_IMAGE_ACCESS"] = "public"
os.environ["DELETE_REPLACED_IMAGES"] = "false"
os.environ["UPLOAD_RATE_LIMIT_REQUESTS"] = "10000"
os.environ["LOG_LEVEL"] = "WARNING"

from dashboard.config import Settings, get_settings  # noqa: E402
from dashboard.database import Base, async_session_factory, engine  # noqa: E402
from dashboard.models.user import Session, User  # noqa: E402

SESSION_COOKIE = "better-auth.session_token"


def session_cookie(token: str) -> dict:
    """Request headers carrying `token` in the session cookie."""
    return {"Cookie": f"{SESSION_COOKIE}={token}"}


@pytest.fixture
def mock_db_session():
    """AsyncSession stand-in for service tests that never reach SQL."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest_asyncio.fixture
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(database):
    async with async_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(db_session):
    """
    Users and sessions:
        u1 / tok-u1        live session
        u2 / tok-u2        live session
        u1 / tok-expired   expired an hour ago
    """
    now = datetime.now(timezone.utc)
    u1 = User(id="u1", name="Ada", email="ada@example.com", email_verified=True)
    u2 = User(id="u2", name="Grace", email="grace@example.com", email_verified=False)
    db_session.add_all([u1, u2])
    db_session.add_all(
        [
            Session(id="s1", token="tok-u1", user_id="u1", expires_at=now + timedelta(days=7)),
            Session(id="s2", token="tok-u2", user_id="u2", expires_at=now + timedelta(days=7)),
            Session(id="s3", token="tok-expired", user_id="u1", expires_at=now - timedelta(hours=1)),
        ]
    )
    await db_session.commit()
    return {"u1": u1, "u2": u2}


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "images"
    root.mkdir()
    return root


@pytest.fixture
def app_settings(storage_root):
    return Settings(upload_storage_path=str(storage_root))


@pytest_asyncio.fixture
async def test_client(app_settings, database):
    """
    HTTPX AsyncClient routed straight into the FastAPI app.

    Tests may mutate `app_settings` fields (access policy, cleanup flag)
    before sending requests; the override returns the same object.
    """
    from dashboard.main import app

    app.dependency_overrides[get_settings] = lambda: app_settings
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def stored_files(storage_root):
    """Callable listing every blob currently under the storage root."""
    def _list():
        return sorted(p for p in storage_root.rglob("*") if p.is_file())
    return _list
