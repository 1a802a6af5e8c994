"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite, so the suite needs no running Postgres.
- StaticPool makes every session share the one in-memory connection;
  a second connection would see an empty database.
- The app's get_db dependency is overridden with the same transaction wrapper
  bound to the test session factory, so after-commit hooks run as in production.
- All tables are created before each test and dropped after it.
- Redis is disabled (cache._redis = None); the CacheManager treats that
  as a permanent miss, so the real database path is always exercised.
- Argon2 cost parameters are lowered through the environment before the
  application is imported; hashing stays real, just cheap.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-signing-key-with-at-least-thirty-two-bytes")
os.environ.setdefault("PASSWORD_HASH_TIME_COST", "1")
os.environ.setdefault("PASSWORD_HASH_MEMORY_COST", "1024")
os.environ.setdefault("PASSWORD_HASH_PARALLELISM", "1")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from conduit.cache import cache
from conduit.database import Base, get_db, session_dependency
from conduit.main import app
from conduit.middleware import install_query_counter

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

app.dependency_overrides[get_db] = session_dependency(async_session_test)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for tests that call services/repositories directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register(async_client: AsyncClient):
    """
    Return a coroutine function that registers a user through the API and
    returns the ``user`` payload (including its token).
    """

    async def _register(username: str, email: str | None = None, password: str = "password1") -> dict:
        resp = await async_client.post("/api/users", json={
            "user": {
                "username": username,
                "email": email or f"{username}@example.com",
                "password": password,
            }
        })
        assert resp.status_code == 200, resp.text
        return resp.json()["user"]

    return _register


@pytest.fixture
def create_article(async_client: AsyncClient):
    """Return a coroutine function that creates an article as *token*'s owner."""

    async def _create(token: str, title: str, tags: list[str] | None = None, **fields) -> dict:
        payload = {
            "title": title,
            "description": fields.pop("description", f"About {title}"),
            "body": fields.pop("body", f"Body of {title}"),
            "tagList": tags or [],
        }
        resp = await async_client.post("/api/articles", json={"article": payload}, headers={"Authorization": f"Token {token}"})
        assert resp.status_code == 200, resp.text
        return resp.json()["article"]

    return _create
