"""
Think Nest Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: Mock AsyncSession for service unit tests (no DB)
    ├── make_user / make_note: in-memory ORM objects for those unit tests
    ├── db_engine: fresh in-memory SQLite engine with all tables created
    ├── api_client: HTTPX AsyncClient on the app, sessions bound to db_engine
    ├── sent_mail: captures reset / password-change codes instead of mailing
    └── auth_headers: signs up a user and returns a Bearer header
"""

import os

# Override settings for testing BEFORE any thinknest imports
# settings is instantiated at import time, so these must come first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["MAIL_BACKEND"] = "console"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "1"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timezone
from typing import Dict, List
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from thinknest import security
from thinknest.database import Base, engine_options, get_db_session
from thinknest.models.note import Note
from thinknest.models.user import User

TEST_PASSWORD = "correct-horse-9"


# ══════════════════════════════════════════════════════════════════════════
# Service Unit Test Fixtures (no database)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_get_note(mock_db_session):
            mock_db_session.execute.return_value.scalar_one_or_none.return_value = note
            result = await note_service.get_note(mock_db_session, user_id, note_id)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


def query_result(value=None, values: List = None, count: int = 0) -> MagicMock:
    """A stand-in for the Result returned by AsyncSession.execute()."""
    result = MagicMock()
    result.scalar.return_value = count
    result.scalar_one_or_none.return_value = value
    result.scalars.return_value.first.return_value = value
    result.scalars.return_value.all.return_value = values or []
    return result


@pytest.fixture
def make_user():
    def _make(**overrides) -> User:
        now = datetime.now(timezone.utc)
        fields = {
            "id": uuid4(),
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "password_hash": security.hash_password(TEST_PASSWORD),
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        return User(**fields)

    return _make


@pytest.fixture
def make_note():
    def _make(user_id=None, tags=None, **overrides) -> Note:
        now = datetime.now(timezone.utc)
        fields = {
            "id": uuid4(),
            "user_id": user_id or uuid4(),
            "title": "Groceries",
            "content": "Milk, eggs, bread",
            "color": "#ffffff",
            "is_pinned": False,
            "is_archived": False,
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        note = Note(**fields)
        note.set_tags(tags or [])
        return note

    return _make


# ══════════════════════════════════════════════════════════════════════════
# API Test Fixtures (in-memory SQLite)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    A private in-memory database per test.

    Created inside the test's event loop; StaticPool keeps the single
    connection (and so the data) alive across sessions.
    """
    url = "sqlite+aiosqlite://"
    engine = create_async_engine(url, **engine_options(url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def api_client(db_engine):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    get_db_session is overridden with sessions on db_engine, committing on
    success and rolling back on error like the real dependency.
    """
    from thinknest.main import app

    factory = async_sessionmaker(db_engine, expire_on_commit=False)

    async def override_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def sent_mail():
    """
    Captures outgoing codes instead of handing them to the mail transport.

    Returns a dict: {"reset": [(email, code), ...], "password_change": [...]}
    """
    captured: Dict[str, list] = {"reset": [], "password_change": []}

    async def capture_reset(email, name, code):
        captured["reset"].append((email, code))

    async def capture_change(email, name, code):
        captured["password_change"].append((email, code))

    from thinknest.services.auth_service import auth_service

    with patch.object(
        auth_service.mailer, "send_reset_code", AsyncMock(side_effect=capture_reset)
    ), patch.object(
        auth_service.mailer,
        "send_password_change_code",
        AsyncMock(side_effect=capture_change),
    ):
        yield captured


async def signup_user(
    client: AsyncClient,
    email: str = "ada@example.com",
    password: str = TEST_PASSWORD,
    name: str = "Ada Lovelace",
):
    response = await client.post(
        "/api/auth/signup",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response


def bearer(response) -> Dict[str, str]:
    return {"Authorization": f"Bearer {response.json()['data']['accessToken']}"}


@pytest_asyncio.fixture
async def auth_headers(api_client) -> Dict[str, str]:
    """Authorization header for a freshly signed-up user."""
    return bearer(await signup_user(api_client))
