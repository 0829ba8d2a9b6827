"""
Backup job ORM model.

One row per long-running archive upload or snapshot scrape. Workers own
the row while the job is active; the API only reads it and sets the
cancellation flag inside the payload.

Dependencies: sqlalchemy, backup_engine.boundary.db.base
System role: Job state persisted for polling and cooperative cancellation
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from backup_engine.boundary.db.base import Base, TimestampMixin, UUIDMixin


class JobType(str, enum.Enum):
    """
    Fixed set of background job types.

    ARCHIVE_UPLOAD: Ingest a platform-issued export ZIP
    SNAPSHOT_SCRAPE: Run a paid provider scrape under a budget
    """

    ARCHIVE_UPLOAD = "archive_upload"
    SNAPSHOT_SCRAPE = "snapshot_scrape"


class JobStatus(str, enum.Enum):
    """
    Externally visible job states.

    QUEUED: Created by the request handler, waiting for a worker
    PROCESSING: Picked up by a worker (also used during cancellation cleanup)
    COMPLETED: Artifact produced; see result_backup_id
    FAILED: Terminal failure, or cancellation (see payload.lifecycle_state)
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


ACTIVE_JOB_STATUSES = (JobStatus.QUEUED, JobStatus.PROCESSING)
TERMINAL_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


class BackupJobModel(Base, UUIDMixin, TimestampMixin):
    """
    Backup job row.

    Attributes:
        id: UUID primary key
        user_id: Owner identifier supplied by the identity provider
        job_type: JobType
        status: JobStatus
        progress: Published percentage (0-100), never regresses within a run
        message: Short status line shown to the owner
        payload: Additively merged JSON state (see models.job.JobPayload)
        result_backup_id: Backup produced on success
        error_message: Failure detail (set on failure and cancellation)
        started_at: When the job entered processing
        completed_at: When the job reached a terminal status
    """

    __tablename__ = "backup_jobs"
    __table_args__ = (Index("ix_backup_jobs_user_status", "user_id", "status"),)

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    job_type: Mapped[JobType] = mapped_column(
        Enum(JobType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobStatus.QUEUED,
    )

    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    message: Mapped[str | None] = mapped_column(String(512), nullable=True, default="Queued")

    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    result_backup_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
