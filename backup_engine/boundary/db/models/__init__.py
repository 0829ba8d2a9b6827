"""
Database models package.

Exports:
  - BackupJobModel, JobStatus, JobType: Job row and enums
  - BackupModel: Artifact row
  - MediaFileModel: Media record row
  - SocialProfileModel: Linked platform account

Dependencies: sqlalchemy, backup_engine.boundary.db.base
System role: Database model definitions for domain entities
"""

from backup_engine.boundary.db.models.backup_model import BackupModel
from backup_engine.boundary.db.models.job_model import (
    ACTIVE_JOB_STATUSES,
    TERMINAL_JOB_STATUSES,
    BackupJobModel,
    JobStatus,
    JobType,
)
from backup_engine.boundary.db.models.media_file_model import (
    ARCHIVE_MEDIA_TYPE,
    OPTIONAL_MEDIA_FILE_COLUMNS,
    MediaFileModel,
)
from backup_engine.boundary.db.models.social_profile_model import SocialProfileModel

__all__ = [
    "ACTIVE_JOB_STATUSES",
    "ARCHIVE_MEDIA_TYPE",
    "BackupJobModel",
    "BackupModel",
    "JobStatus",
    "JobType",
    "MediaFileModel",
    "OPTIONAL_MEDIA_FILE_COLUMNS",
    "SocialProfileModel",
    "TERMINAL_JOB_STATUSES",
]
