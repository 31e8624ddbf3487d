"""
Database Configuration

Async SQLAlchemy engine, session factory and declarative base.
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from progress_api.core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    # SQLite (tests, local scripts) does not accept pool sizing arguments
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **_engine_kwargs(settings.database_url),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a database session.

    The service layer owns commit/rollback; the session is always closed here.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Verify the database connection on startup.

    When AUTO_CREATE_TABLES is set, tables are created from the models
    (local development only; deployments use Alembic).
    """
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if settings.auto_create_tables:
            # Import models so they register on Base.metadata
            from progress_api.modules.admissions import models as _admissions  # noqa: F401
            from progress_api.modules.users import models as _users  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created from models")


async def close_db() -> None:
    """Dispose of the engine connection pool."""
    await engine.dispose()
