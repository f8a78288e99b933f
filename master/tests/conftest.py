"""Pytest configuration and fixtures."""
import os
import sys

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# master/ holds main.py and the app package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from app.database import Base, get_db  # noqa: E402
from app.limiter import limiter  # noqa: E402
from app.models.worker import Worker  # noqa: E402
from main import app  # noqa: E402


@pytest.fixture
async def test_engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(test_session_factory):
    """Create test database."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def client(test_db):
    """Async client bound to the app with the test database."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Start every test with empty rate limit counters."""
    limiter.reset()
    yield


@pytest.fixture
def mock_keygen():
    """Replace wg(8) key generation with a fixed key pair."""
    with patch("app.routers.workers.generate_keypair", new_callable=AsyncMock) as mock:
        mock.return_value = ("priv-key", "pub-key")
        yield mock


@pytest.fixture
def mock_mesh():
    """Keep mesh provisioning from running in the background."""
    with patch("app.routers.workers.launch_mesh_setup", new_callable=MagicMock) as mock:
        yield mock


@pytest.fixture
def make_worker(test_db):
    """Insert a worker row directly."""
    async def _make(**fields) -> Worker:
        defaults = {
            "name": "w",
            "ip": "10.0.0.5",
            "port": 9000,
            "api_key": "secret",
            "private_key": "priv",
            "public_key": "pub",
            "cidr": "10.100.0.1/32",
        }
        defaults.update(fields)
        worker = Worker(**defaults)
        test_db.add(worker)
        await test_db.commit()
        await test_db.refresh(worker)
        return worker

    return _make
