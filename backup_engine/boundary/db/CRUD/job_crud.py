"""
Backup job CRUD operations.

Job-specific queries used by JobService: active-job lookup for an owner
and the snapshot history consulted for monthly spend accounting.

Dependencies: sqlalchemy, backup_engine.boundary.db.models
System role: Job persistence operations for background job tracking
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.boundary.db.CRUD.base_crud import BaseCRUD
from backup_engine.boundary.db.models.job_model import (
    ACTIVE_JOB_STATUSES,
    BackupJobModel,
    JobType,
)


class JobCRUD(BaseCRUD[BackupJobModel]):
    """CRUD operations for BackupJobModel."""

    def __init__(self) -> None:
        super().__init__(BackupJobModel)

    async def list_active_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        job_type: JobType | None = None,
    ) -> Sequence[BackupJobModel]:
        """
        List queued or processing jobs for an owner, oldest first.

        Args:
            session: Async database session
            user_id: Owner identifier
            job_type: Restrict to one job type (None for all)

        Returns:
            Active jobs ordered by creation time
        """
        stmt = select(BackupJobModel).where(
            BackupJobModel.user_id == user_id,
            BackupJobModel.status.in_(ACTIVE_JOB_STATUSES),
        )
        if job_type is not None:
            stmt = stmt.where(BackupJobModel.job_type == job_type)
        result = await session.execute(stmt.order_by(BackupJobModel.created_at.asc()))
        return result.scalars().all()

    async def list_snapshot_jobs_since(
        self,
        session: AsyncSession,
        user_id: str,
        since: datetime,
    ) -> Sequence[BackupJobModel]:
        """
        List an owner's snapshot scrape jobs created at or after `since`.

        Args:
            session: Async database session
            user_id: Owner identifier
            since: Inclusive lower bound on created_at (UTC)

        Returns:
            Snapshot jobs in any status
        """
        stmt = select(BackupJobModel).where(
            BackupJobModel.user_id == user_id,
            BackupJobModel.job_type == JobType.SNAPSHOT_SCRAPE,
            BackupJobModel.created_at >= since,
        )
        result = await session.execute(stmt)
        return result.scalars().all()


job_crud = JobCRUD()
