"""
Unified application settings.

Aggregates every configuration module into one Settings object shared by
the API, the Celery workers and the composition root.

Dependencies: All config modules
System role: Central configuration aggregator for the application
"""

from functools import lru_cache

from pydantic import Field

from backup_engine.configs.archive_limits import ArchiveLimitsSettings
from backup_engine.configs.base import BaseSettings
from backup_engine.configs.celery_config import CelerySettings
from backup_engine.configs.database import DatabaseSettings
from backup_engine.configs.scrape import ScrapeSettings
from backup_engine.configs.storage import StorageSettings


class Settings(BaseSettings):
    """Unified application settings aggregating all config modules."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    archive_limits: ArchiveLimitsSettings = Field(default_factory=ArchiveLimitsSettings)
    scrape: ScrapeSettings = Field(default_factory=ScrapeSettings)
    celery: CelerySettings = Field(default_factory=CelerySettings)


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings singleton.

    Environment variables are read once per process.

    Returns:
        Settings: Application settings instance

    Usage:
        from backup_engine.configs import get_settings
        limits = get_settings().archive_limits
    """
    return Settings()
