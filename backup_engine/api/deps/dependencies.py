"""
Dependency injection container.

Factory functions for FastAPI dependencies.

Dependencies: backup_engine.configs, backup_engine.application, backup_engine.boundary
System role: DI container for service injection
"""

from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.application.services import JobService
from backup_engine.boundary.db import get_async_db
from backup_engine.configs import Settings, get_settings


@lru_cache
def get_settings_dependency() -> Settings:
    """Get settings singleton."""
    return get_settings()


def get_job_service(db: AsyncSession = Depends(get_async_db)) -> JobService:
    """
    Get job service instance.

    Args:
        db: Async database session (injected via Depends)

    Returns:
        JobService: Job service bound to the request session
    """
    return JobService(db)


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """
    Owner identifier forwarded by the authenticating gateway.

    Raises:
        HTTPException(401): Header missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id.strip()
