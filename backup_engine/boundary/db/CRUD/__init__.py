"""
CRUD operations for database models.

Exports the base CRUD class and model-specific CRUD singletons.

Usage:
    from backup_engine.boundary.db.CRUD import job_crud, backup_crud

    job = await job_crud.get_by_id(db, job_id)
"""

from backup_engine.boundary.db.CRUD.backup_crud import BackupCRUD, backup_crud
from backup_engine.boundary.db.CRUD.base_crud import BaseCRUD
from backup_engine.boundary.db.CRUD.job_crud import JobCRUD, job_crud
from backup_engine.boundary.db.CRUD.media_file_crud import MediaFileCRUD, media_file_crud
from backup_engine.boundary.db.CRUD.social_profile_crud import (
    SocialProfileCRUD,
    social_profile_crud,
)

__all__ = [
    "BaseCRUD",
    "BackupCRUD",
    "backup_crud",
    "JobCRUD",
    "job_crud",
    "MediaFileCRUD",
    "media_file_crud",
    "SocialProfileCRUD",
    "social_profile_crud",
]
