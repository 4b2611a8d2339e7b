"""Pytest fixtures for test suite."""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

# Add backend to path for imports
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from database import Base
from errors import StorageError

# Use SQLite for tests with StaticPool to share connection across async operations.
# StaticPool ensures the same connection is reused, so tables created in create_all()
# are visible to all sessions. Without this, each connection gets its own empty DB.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
async def test_engine():
    """Create a test database engine with in-memory SQLite."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Import models to register with Base.metadata
    from models import task_history  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def test_session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_session(test_session_maker):
    """Create a test database session."""
    async with test_session_maker() as session:
        yield session


@pytest.fixture
def store(test_session_maker):
    """Task history store bound to the test database."""
    from services.store import SQLTaskHistoryStore

    return SQLTaskHistoryStore(test_session_maker)


class FailingStore:
    """Store whose inserts always fail, recording what it was given."""

    def __init__(self):
        self.attempts = []

    async def insert_one(self, record):
        self.attempts.append(record)
        raise StorageError("connection refused", operation="insert")

    async def count(self):
        raise StorageError("connection refused", operation="count")


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def seed_task_history(store):
    """Factory inserting rows whose ended_at is BASE_TIME + the given minutes."""
    from models.task_history import TaskHistory

    async def seed(minutes: List[int], task: str = "sync-database", db_id: Optional[int] = None):
        rows = []
        for minute in minutes:
            ended_at = BASE_TIME + timedelta(minutes=minute)
            record = TaskHistory.from_timing(
                task=task,
                db_id=db_id,
                started_at=ended_at - timedelta(seconds=30),
                ended_at=ended_at,
                task_details={"minute": minute},
            )
            await store.insert_one(record)
            rows.append(record)
        return rows

    return seed


@pytest.fixture
async def test_client(store):
    """HTTP client for API testing, with the store bound to the test database."""
    from main import app
    from api.task import get_store

    app.dependency_overrides[get_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def superuser_headers():
    return {"X-Actor-Id": "1", "X-Actor-Superuser": "true"}


@pytest.fixture
def monitoring_headers():
    return {"X-Actor-Id": "2", "X-Actor-Permissions": "/general/monitoring/"}
