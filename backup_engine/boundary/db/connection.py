"""
Database connection management.

Async engine, session factory and the FastAPI dependency used by the API.
Workers build their own factory once per task through `workers.runtime`.

Dependencies: sqlalchemy, backup_engine.configs
System role: Database connection lifecycle management
"""

from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from backup_engine.configs import get_settings


def get_async_engine() -> AsyncEngine:
    """
    Create async SQLAlchemy engine with connection pooling.

    pool_pre_ping=True verifies connections before use so long-running
    workers survive database restarts.

    Returns:
        AsyncEngine: Configured async SQLAlchemy engine

    Usage:
        engine = get_async_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    """
    db_config = get_settings().database

    return create_async_engine(
        db_config.async_database_url,
        echo=db_config.echo_sql,
        pool_size=db_config.pool_size,
        max_overflow=db_config.max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_pre_ping=True,
    )


def get_async_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """
    Create async session factory for database operations.

    Sessions use autoflush=False and expire_on_commit=False: services commit
    after every status write and keep using the loaded rows afterwards.

    Args:
        engine: Engine to bind (a new pooled engine when omitted)

    Returns:
        async_sessionmaker: Session factory
    """
    return async_sessionmaker(
        bind=engine or get_async_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


@lru_cache
def get_default_session_factory() -> async_sessionmaker[AsyncSession]:
    """Process-wide session factory over one pooled engine."""
    return get_async_session_factory()


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Yields:
        AsyncSession: Session closed after the route completes

    Usage:
        @router.get("/jobs/{job_id}")
        async def get_job(job_id: UUID, db: AsyncSession = Depends(get_async_db)):
            ...
    """
    async with get_default_session_factory()() as session:
        yield session
