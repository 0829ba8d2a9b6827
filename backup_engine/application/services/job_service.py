"""
Job service orchestrator.

State machine for background backup jobs: queued -> processing ->
completed | failed, with cooperative cancellation carried in the payload.
Both pipelines report exclusively through this service.

Write classes:
  - Best-effort (start_processing, report_progress, merge_payload,
    enter_cleanup): store errors are logged and rolled back, the run continues.
  - Owned by the run (complete_with_result, fail_with, mark_cancelled):
    store errors propagate so the worker can retry the terminal write.

Dependencies: sqlalchemy, backup_engine.boundary.db.CRUD, backup_engine.models.job
System role: Job lifecycle management for workers and the polling API
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.boundary.db.base import ensure_utc, utcnow
from backup_engine.boundary.db.CRUD.job_crud import job_crud
from backup_engine.boundary.db.models.job_model import (
    TERMINAL_JOB_STATUSES,
    BackupJobModel,
    JobStatus,
    JobType,
)
from backup_engine.core.exceptions import CancellationSignal, JobNotFoundError
from backup_engine.models.job import JobPayload, LifecycleState

logger = logging.getLogger(__name__)

QUEUED_JOB_TIMEOUT = timedelta(minutes=5)
CLEANUP_PROGRESS = 95
CANCELLED_ERROR_MESSAGE = "Cancelled by user"
CANCELLED_STATUS_MESSAGE = "Cancelled"
DEFAULT_FAILURE_MESSAGE = "Job failed"
CANCELLATION_REQUESTED_MESSAGE = "Cancellation requested. Cleaning up..."

PayloadPatch = dict[str, Any] | JobPayload


def normalize_progress(value: float | int | None) -> int:
    """Clamp to [0, 100] and round; non-finite or missing values become 0."""
    if value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(round(min(100.0, max(0.0, number))))


def merge_payload_dicts(base: dict[str, Any] | None, patch: dict[str, Any]) -> dict[str, Any]:
    """
    Merge `patch` into a copy of `base` key by key.

    Nested dicts merge recursively. A key set to None in the patch is stored
    as None. Keys absent from the patch keep their stored value.

    Args:
        base: Stored payload (non-dict values are treated as empty)
        patch: Partial payload

    Returns:
        dict: New merged payload
    """
    merged = dict(base) if isinstance(base, dict) else {}
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merged[key] = merge_payload_dicts(current, value)
        else:
            merged[key] = value
    return merged


def _patch_dict(patch: PayloadPatch) -> dict[str, Any]:
    if isinstance(patch, JobPayload):
        return patch.to_patch()
    return dict(patch)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobService:
    """
    Job service orchestrator.

    One instance serves one request or one pipeline run. Published progress
    is tracked per instance so a run never reports a lower percentage than
    it already reported.
    """

    def __init__(self, db: AsyncSession, queue_timeout: timedelta = QUEUED_JOB_TIMEOUT) -> None:
        """
        Initialize job service.

        Args:
            db: AsyncSession for database operations
            queue_timeout: Age after which a still-queued job is failed
        """
        self.db = db
        self._queue_timeout = queue_timeout
        self._last_progress: dict[UUID, int] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, job_id: UUID) -> BackupJobModel:
        job = await job_crud.get_by_id(self.db, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _monotonic(self, job_id: UUID, value: float | int | None) -> int:
        normalized = normalize_progress(value)
        return max(normalized, self._last_progress.get(job_id, 0))

    async def _best_effort(
        self,
        fn_name: str,
        job_id: UUID,
        write: Callable[[BackupJobModel], Awaitable[None] | None],
    ) -> bool:
        """Apply `write` to the job and commit; log and roll back on failure."""
        try:
            job = await self._load(job_id)
            result = write(job)
            if result is not None:
                await result
            await self.db.commit()
            return True
        except (SQLAlchemyError, JobNotFoundError) as e:
            logger.error(
                f"{__name__}:{fn_name} - {type(e).__name__}: {e}",
                extra={"job_id": str(job_id)},
            )
            await self.db.rollback()
            return False

    async def _owned_write(
        self,
        fn_name: str,
        job_id: UUID,
        write: Callable[[BackupJobModel], None],
    ) -> BackupJobModel:
        """Apply `write` to the job and commit; errors propagate after rollback."""
        try:
            job = await self._load(job_id)
            write(job)
            await self.db.commit()
            return job
        except Exception as e:
            logger.error(
                f"{__name__}:{fn_name} - {type(e).__name__}: {e}",
                extra={"job_id": str(job_id)},
            )
            await self.db.rollback()
            raise

    @staticmethod
    def _merge_into(job: BackupJobModel, patch: dict[str, Any]) -> None:
        # Reassign so the ORM detects the JSON change.
        job.payload = merge_payload_dicts(job.payload, patch)

    @staticmethod
    def is_cancelled(job: BackupJobModel) -> bool:
        """True when the job ended through the cancellation path."""
        payload = job.payload if isinstance(job.payload, dict) else {}
        return payload.get("lifecycle_state") == LifecycleState.CANCELLED.value

    @classmethod
    def snapshot(cls, job: BackupJobModel) -> dict[str, Any]:
        """Plain-dict view of a job for polling."""
        payload = job.payload if isinstance(job.payload, dict) else {}
        return {
            "id": job.id,
            "user_id": job.user_id,
            "job_type": job.job_type.value,
            "status": job.status.value,
            "progress": job.progress,
            "message": job.message,
            "lifecycle_state": payload.get("lifecycle_state"),
            "cancelled": cls.is_cancelled(job),
            "payload": payload,
            "result_backup_id": job.result_backup_id,
            "error_message": job.error_message,
            "started_at": ensure_utc(job.started_at),
            "completed_at": ensure_utc(job.completed_at),
            "created_at": ensure_utc(job.created_at),
            "updated_at": ensure_utc(job.updated_at),
        }

    # ------------------------------------------------------------------
    # Request side
    # ------------------------------------------------------------------

    async def create_job(
        self,
        user_id: str,
        job_type: JobType,
        payload: PayloadPatch | None = None,
        message: str = "Queued",
    ) -> UUID:
        """
        Create a queued job.

        Args:
            user_id: Owner identifier
            job_type: ARCHIVE_UPLOAD or SNAPSHOT_SCRAPE
            payload: Initial payload
            message: Initial status line

        Returns:
            UUID: Created job ID
        """
        initial = merge_payload_dicts({}, _patch_dict(payload)) if payload is not None else {}
        initial.setdefault("lifecycle_state", LifecycleState.QUEUED.value)
        try:
            job = await job_crud.create(
                self.db,
                user_id=user_id,
                job_type=job_type,
                status=JobStatus.QUEUED,
                progress=0,
                message=message,
                payload=initial,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"{__name__}:create_job - {type(e).__name__}: {e}", extra={"user_id": user_id})
            await self.db.rollback()
            raise

        logger.info(
            f"{__name__}:create_job - Job created",
            extra={"job_id": str(job.id), "job_type": job_type.value, "user_id": user_id},
        )
        return job.id

    async def get_job(self, job_id: UUID) -> BackupJobModel:
        """
        Load a job with fresh state.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        return await self._load(job_id)

    async def get_job_status(self, job_id: UUID, user_id: str | None = None) -> dict[str, Any]:
        """
        Get job status details for polling.

        Args:
            job_id: Job UUID
            user_id: When given, jobs of other owners are reported as missing

        Returns:
            dict: Job snapshot

        Raises:
            JobNotFoundError: If the job doesn't exist (or is not owned by user_id)
        """
        job = await self._load(job_id)
        if user_id is not None and job.user_id != user_id:
            raise JobNotFoundError(job_id)
        return self.snapshot(job)

    async def list_jobs(self, user_id: str, limit: int = 15) -> list[dict[str, Any]]:
        """Most recent jobs of an owner, newest first (limit clamped to 1..50)."""
        safe_limit = max(1, min(50, limit))
        jobs = await job_crud.list_by_user(self.db, user_id, limit=safe_limit)
        return [self.snapshot(job) for job in jobs]

    async def list_snapshot_payloads_since(self, user_id: str, since: datetime) -> list[dict[str, Any]]:
        """Payloads of the owner's snapshot jobs created at or after `since`."""
        jobs = await job_crud.list_snapshot_jobs_since(self.db, user_id, since)
        return [job.payload if isinstance(job.payload, dict) else {} for job in jobs]

    async def find_active_job(
        self,
        user_id: str,
        job_type: JobType | None = None,
        now: datetime | None = None,
    ) -> BackupJobModel | None:
        """
        Return the oldest queued or processing job of an owner.

        A queued job whose age exceeds the queue timeout never got picked up
        by a worker: it is failed with `queue_timeout=True` and the next
        active job is considered.

        Args:
            user_id: Owner identifier
            job_type: Restrict to one job type
            now: Reference time (UTC)

        Returns:
            BackupJobModel | None: Active job, or None
        """
        now = now or utcnow()
        jobs = await job_crud.list_active_for_user(self.db, user_id, job_type)

        for job in jobs:
            reference = ensure_utc(job.started_at) or ensure_utc(job.created_at)
            age = now - reference if reference else timedelta(0)
            if job.status != JobStatus.QUEUED or age <= self._queue_timeout:
                return job

            minutes = round(self._queue_timeout.total_seconds() / 60)

            def expire(stale: BackupJobModel, minutes: int = minutes) -> None:
                stale.status = JobStatus.FAILED
                stale.message = f"Backup job did not start within {minutes} minutes. Please retry."
                stale.error_message = "Queue timeout: worker did not pick up this job."
                stale.completed_at = utcnow()
                self._merge_into(
                    stale,
                    {
                        "lifecycle_state": LifecycleState.FAILED.value,
                        "queue_timeout": True,
                        "queue_timed_out_at": _now_iso(),
                    },
                )

            await self._owned_write("find_active_job", job.id, expire)
            logger.warning(
                f"{__name__}:find_active_job - Queued job timed out",
                extra={"job_id": str(job.id), "user_id": user_id},
            )

        return None

    async def request_cancellation(
        self,
        job_id: UUID,
        reason: str = "User requested cancellation.",
    ) -> dict[str, Any]:
        """
        Flag a job for cooperative cancellation.

        Queued jobs move to processing so the owner sees the cleanup; terminal
        jobs are returned unchanged.

        Args:
            job_id: Job UUID
            reason: Free-text reason stored in the payload

        Returns:
            dict: Job snapshot after the update

        Raises:
            JobNotFoundError: If the job does not exist
        """
        job = await self._load(job_id)
        if job.status in TERMINAL_JOB_STATUSES:
            return self.snapshot(job)

        def flag(target: BackupJobModel) -> None:
            if target.status == JobStatus.QUEUED:
                target.status = JobStatus.PROCESSING
            if target.started_at is None:
                target.started_at = utcnow()
            target.message = CANCELLATION_REQUESTED_MESSAGE
            target.progress = max(1, normalize_progress(target.progress))
            self._merge_into(
                target,
                {
                    "cancel_requested": True,
                    "cancel_requested_at": _now_iso(),
                    "cancel_reason": reason,
                    "lifecycle_state": LifecycleState.CANCELLING.value,
                },
            )

        job = await self._owned_write("request_cancellation", job_id, flag)
        logger.info(
            f"{__name__}:request_cancellation - Cancellation requested",
            extra={"job_id": str(job_id), "reason": reason},
        )
        return self.snapshot(job)

    # ------------------------------------------------------------------
    # Worker side: best-effort writes
    # ------------------------------------------------------------------

    async def start_processing(self, job_id: UUID, progress: float = 5, message: str = "In progress") -> None:
        """
        Move a queued job to processing (idempotent for processing jobs).

        Sets started_at and clears error_message on the first transition.
        Terminal jobs are left untouched.
        """
        value = self._monotonic(job_id, progress)

        def start(job: BackupJobModel) -> None:
            if job.status in TERMINAL_JOB_STATUSES:
                logger.warning(
                    f"{__name__}:start_processing - Job already terminal",
                    extra={"job_id": str(job_id), "status": job.status.value},
                )
                return
            if job.status == JobStatus.QUEUED or job.started_at is None:
                job.started_at = utcnow()
            job.status = JobStatus.PROCESSING
            job.error_message = None
            job.progress = value
            job.message = message

        if await self._best_effort("start_processing", job_id, start):
            self._last_progress[job_id] = value

    async def report_progress(self, job_id: UUID, percent: float, message: str) -> None:
        """
        Publish progress; never lower than what this run already published.

        Args:
            job_id: Job UUID
            percent: Raw percentage (clamped and rounded)
            message: Status line written verbatim
        """
        value = self._monotonic(job_id, percent)

        def apply(job: BackupJobModel) -> None:
            job.progress = value
            job.message = message

        if await self._best_effort("report_progress", job_id, apply):
            self._last_progress[job_id] = value

    async def merge_payload(self, job_id: UUID, partial: PayloadPatch) -> None:
        """
        Merge a partial payload into the stored payload.

        Args:
            job_id: Job UUID
            partial: Dict or JobPayload (only explicitly set fields are merged)
        """
        patch = _patch_dict(partial)
        if not patch:
            return
        await self._best_effort("merge_payload", job_id, lambda job: self._merge_into(job, patch))

    async def enter_cleanup(self, job_id: UUID, message: str) -> None:
        """Mark the job as cleaning up after cancellation (status stays processing)."""
        value = self._monotonic(job_id, CLEANUP_PROGRESS)

        def apply(job: BackupJobModel) -> None:
            job.status = JobStatus.PROCESSING
            job.progress = value
            job.message = message
            self._merge_into(job, {"lifecycle_state": LifecycleState.CLEANUP.value})

        if await self._best_effort("enter_cleanup", job_id, apply):
            self._last_progress[job_id] = value

    # ------------------------------------------------------------------
    # Cancellation checks
    # ------------------------------------------------------------------

    async def is_cancellation_requested(self, job_id: UUID) -> bool:
        """
        True iff payload.cancel_requested is True.

        Read failures are logged and reported as not cancelled.
        """
        try:
            job = await job_crud.get_by_id(self.db, job_id)
        except SQLAlchemyError as e:
            logger.error(
                f"{__name__}:is_cancellation_requested - {type(e).__name__}: {e}",
                extra={"job_id": str(job_id)},
            )
            await self.db.rollback()
            return False
        if job is None or not isinstance(job.payload, dict):
            return False
        return job.payload.get("cancel_requested") is True

    async def ensure_not_cancelled(self, job_id: UUID) -> None:
        """
        Raises:
            CancellationSignal: When cancellation has been requested
        """
        if await self.is_cancellation_requested(job_id):
            raise CancellationSignal(job_id)

    # ------------------------------------------------------------------
    # Worker side: terminal writes
    # ------------------------------------------------------------------

    async def complete_with_result(self, job_id: UUID, backup_id: UUID, message: str) -> None:
        """Mark the job completed with its artifact."""

        def complete(job: BackupJobModel) -> None:
            job.status = JobStatus.COMPLETED
            job.progress = 100
            job.message = message
            job.result_backup_id = backup_id
            job.error_message = None
            job.completed_at = utcnow()

        await self._owned_write("complete_with_result", job_id, complete)
        self._last_progress[job_id] = 100
        logger.info(
            f"{__name__}:complete_with_result - Job completed",
            extra={"job_id": str(job_id), "backup_id": str(backup_id)},
        )

    async def fail_with(
        self,
        job_id: UUID,
        error_message: str,
        public_message: str | None = None,
        payload: PayloadPatch | None = None,
    ) -> None:
        """
        Mark the job failed.

        Args:
            job_id: Job UUID
            error_message: Failure detail stored in error_message
            public_message: Status line (defaults to "Job failed")
            payload: Optional payload patch written in the same transaction
        """
        patch = _patch_dict(payload) if payload is not None else None

        def fail(job: BackupJobModel) -> None:
            job.status = JobStatus.FAILED
            job.progress = 100
            job.message = public_message or DEFAULT_FAILURE_MESSAGE
            job.error_message = error_message
            job.completed_at = utcnow()
            if patch:
                self._merge_into(job, patch)

        await self._owned_write("fail_with", job_id, fail)
        self._last_progress[job_id] = 100
        logger.info(
            f"{__name__}:fail_with - Job failed",
            extra={"job_id": str(job_id), "error_message": error_message},
        )

    async def mark_cancelled(self, job_id: UUID, payload: PayloadPatch | None = None) -> None:
        """Finish a cancelled job with the reserved cancellation messages."""
        patch = {"lifecycle_state": LifecycleState.CANCELLED.value}
        if payload is not None:
            patch = merge_payload_dicts(_patch_dict(payload), patch)
        await self.fail_with(job_id, CANCELLED_ERROR_MESSAGE, CANCELLED_STATUS_MESSAGE, payload=patch)
