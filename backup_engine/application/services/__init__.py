"""Service orchestrators."""

from .backup_service import BackupService
from .job_service import JobService

__all__ = [
    "BackupService",
    "JobService",
]
