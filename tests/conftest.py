"""
Shared test fixtures.

Tests run against an in-memory SQLite database through aiosqlite. The
environment is set before anything from progress_api is imported so the
module-level settings and engine pick it up.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PYTHON_ENV", "test")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from progress_api.core import rate_limit  # noqa: E402
from progress_api.core import redis as redis_module  # noqa: E402
from progress_api.core.database import Base  # noqa: E402
from progress_api.modules.admissions import models as _admissions  # noqa: E402, F401
from progress_api.modules.users import models as _users  # noqa: E402, F401


@pytest_asyncio.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an async SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create an async database session for testing."""
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def isolated_rate_limits(monkeypatch):
    """Use the in-memory rate limiter with a clean store for every test."""
    monkeypatch.setattr(redis_module, "redis_client", None)
    rate_limit.reset_memory_store()
    yield
    rate_limit.reset_memory_store()
