"""
Database table creation script.

Creates every table registered on Base.metadata. Production schemas are
managed by migrations; this is used for local development and tests.

Dependencies: sqlalchemy, backup_engine.boundary.db.connection
System role: Database schema initialization

Usage:
    python -m backup_engine.boundary.db.create_tables
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from backup_engine.boundary.db import models  # noqa: F401
from backup_engine.boundary.db.base import Base
from backup_engine.boundary.db.connection import get_async_engine

logger = logging.getLogger(__name__)


async def create_all_tables(engine: AsyncEngine | None = None) -> None:
    """
    Create all tables that do not exist yet.

    Idempotent: existing tables are left unchanged.

    Args:
        engine: Target engine (a pooled engine from settings when omitted)

    Raises:
        SQLAlchemyError: If the connection or DDL fails
    """
    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(
        f"{__name__}:create_all_tables - Tables created",
        extra={"tables": sorted(Base.metadata.tables)},
    )


async def drop_all_tables(engine: AsyncEngine | None = None) -> None:
    """
    Drop all registered tables and their data.

    Warning: destructive, intended for local resets only.
    """
    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning(f"{__name__}:drop_all_tables - All tables dropped")


if __name__ == "__main__":
    from backup_engine.observability import configure_logging

    configure_logging()
    asyncio.run(create_all_tables())
