import os
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# ------------------------------------------------------------------
# FORCE TESTING MODE
# Must be set BEFORE importing the app so Settings() picks it up.
# ------------------------------------------------------------------
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_KEY"] = ""
os.environ["ENV"] = "test"

from student_registry.main import app
from student_registry.api.deps import get_db_session
from student_registry.core.database import build_engine, init_db


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(engine):
    """
    Uses ASGITransport (httpx >= 0.27) with the DB dependency pointed
    at the per-test engine.
    """
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


async def signup_user(client, email="alice@school.edu", password="secret1", full_name="Alice"):
    res = await client.post(
        "/api/auth/signup",
        json={"email": email, "password": password, "fullName": full_name},
    )
    assert res.status_code == 201, res.text
    body = res.json()
    return body["token"], body["user"]


@pytest.fixture
def signup():
    return signup_user


@pytest_asyncio.fixture
async def auth_headers(client):
    token, _ = await signup_user(client)
    return {"Authorization": f"Bearer {token}"}
