"""
Database boundary layer: ORM models, CRUD operations, and connection management.

Exports:
  - Base, UUIDMixin, TimestampMixin: Model building blocks
  - get_async_engine(), get_async_session_factory(), get_async_db(): Connection management
  - BackupJobModel, BackupModel, MediaFileModel, SocialProfileModel: Domain entities
  - JobStatus, JobType: Job enums
  - job_crud, backup_crud, media_file_crud, social_profile_crud: CRUD singletons

Dependencies: sqlalchemy, backup_engine.configs
System role: Database adapter for jobs, backups, and media records
"""

from backup_engine.boundary.db.base import Base, TimestampMixin, UUIDMixin
from backup_engine.boundary.db.connection import (
    get_async_db,
    get_async_engine,
    get_async_session_factory,
    get_default_session_factory,
)
from backup_engine.boundary.db.models import (
    BackupJobModel,
    BackupModel,
    JobStatus,
    JobType,
    MediaFileModel,
    SocialProfileModel,
)
from backup_engine.boundary.db.CRUD import (
    backup_crud,
    job_crud,
    media_file_crud,
    social_profile_crud,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "get_async_db",
    "get_async_engine",
    "get_async_session_factory",
    "get_default_session_factory",
    "BackupJobModel",
    "BackupModel",
    "JobStatus",
    "JobType",
    "MediaFileModel",
    "SocialProfileModel",
    "backup_crud",
    "job_crud",
    "media_file_crud",
    "social_profile_crud",
]
