"""
Archive ingestion pipeline orchestrator.

Coordinates download, metadata extraction, parsing, backup creation, media
upload and reference rewriting for one archive_upload job, reporting every
phase through JobService and cleaning up the partial backup when the job is
cancelled or fails.

Dependencies: All task modules, JobService, BackupService, BlobStore
System role: Pipeline orchestration (coordinates only)
"""

import functools
import logging
import os
import shutil
import tempfile
import time
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from backup_engine.application.services.backup_service import BackupService
from backup_engine.application.services.job_service import JobService
from backup_engine.boundary.aws.s3_blob_store import BlobStore
from backup_engine.boundary.db.models.media_file_model import ARCHIVE_MEDIA_TYPE
from backup_engine.configs.archive_limits import ArchiveLimitsSettings
from backup_engine.core.exceptions import CancellationSignal, public_message
from backup_engine.models.job import (
    JobError,
    JobOutcome,
    JobPayload,
    JobRunResult,
    LifecycleState,
    partial_backup_fields,
)
from backup_engine.observability.log_utils import log_exception_with_context

from .archive_reader import ArchiveReader
from .models import ArchiveProfile, MediaUploadResult, NormalizedArchive
from .tasks import (
    ArchiveDownloadTask,
    ArchiveParsingTask,
    MediaUploadTask,
    MetadataExtractionTask,
    UrlRewriteTask,
)

logger = logging.getLogger(__name__)

PLATFORM = "twitter"
BACKUP_TYPE = "full_archive"
BACKUP_SOURCE = "archive"
ARCHIVE_MIME_TYPE = "application/zip"

GENERIC_FAILURE_MESSAGE = "Archive processing failed"
COMPLETED_MESSAGE = "Archive backup completed successfully."
CLEANUP_MESSAGE = "Cancellation requested. Cleaning up partial data..."

MEDIA_PROGRESS_START = 55
MEDIA_PROGRESS_SPAN = 30
MEDIA_PROGRESS_END = 85


def media_progress(processed: int, total: int) -> int:
    """Overall progress while uploading media: 55..85."""
    if total <= 0:
        return MEDIA_PROGRESS_START
    return min(MEDIA_PROGRESS_START + round(processed / total * MEDIA_PROGRESS_SPAN), MEDIA_PROGRESS_END)


def archive_storage_path(user_id: str, backup_id: UUID) -> str:
    return f"{user_id}/archives/{backup_id}.zip"


class ArchiveIngestionPipeline:
    """Turn an uploaded export ZIP into a backup with re-hosted media."""

    def __init__(
        self,
        job_service: JobService,
        backup_service: BackupService,
        blob_store: BlobStore,
        limits: ArchiveLimitsSettings | None = None,
    ) -> None:
        """
        Initialize pipeline with its collaborators.

        Args:
            job_service: Progress, payload and terminal job writes
            backup_service: Backup, profile and media record persistence
            blob_store: Staged uploads, media and archive storage
            limits: Archive resource ceilings (defaults from environment)
        """
        self._jobs = job_service
        self._backups = backup_service
        self._blob_store = blob_store
        self._limits = limits or ArchiveLimitsSettings()

        self._download_task = ArchiveDownloadTask(blob_store, self._limits.max_archive_bytes)
        self._metadata_task = MetadataExtractionTask(self._limits.max_metadata_entry_bytes)
        self._parsing_task = ArchiveParsingTask()
        self._media_task = MediaUploadTask(blob_store, backup_service, self._limits)
        self._rewrite_task = UrlRewriteTask()

    async def run(
        self,
        job_id: UUID,
        user_id: str,
        input_storage_path: str,
        username: str | None = None,
    ) -> JobRunResult:
        """
        Process one archive upload job end to end.

        Args:
            job_id: Job being executed
            user_id: Owner of the job and the resulting backup
            input_storage_path: Object key of the staged upload
            username: Handle supplied with the upload (used when account.js has none)

        Returns:
            JobRunResult: completed, cancelled or failed

        Raises:
            SQLAlchemyError: A terminal job write failed (the caller retries)
        """
        start_time = time.perf_counter()
        temp_dir = tempfile.mkdtemp(prefix="archive_ingest_")
        ensure_active = functools.partial(self._jobs.ensure_not_cancelled, job_id)
        backup_id: UUID | None = None

        def elapsed_ms() -> float:
            return (time.perf_counter() - start_time) * 1000

        try:
            await self._jobs.start_processing(job_id, 5, "Downloading uploaded archive...")
            await self._jobs.merge_payload(job_id, JobPayload(lifecycle_state=LifecycleState.PROCESSING))
            await ensure_active()

            local_path = await self._download_task.download(input_storage_path, temp_dir)

            await self._jobs.report_progress(job_id, 15, "Extracting archive files...")
            await ensure_active()

            with ArchiveReader(local_path, self._limits.max_zip_entries, self._limits.stream_chunk_bytes) as reader:
                files = await self._metadata_task.extract(reader, ensure_active)

                await self._jobs.report_progress(job_id, 30, "Parsing archive metadata...")
                await ensure_active()
                archive = self._parsing_task.parse(files, username)

                await self._jobs.report_progress(job_id, 45, "Saving backup record...")
                await ensure_active()
                backup_id = await self._save_record(user_id, username, archive)
                await self._jobs.merge_payload(job_id, JobPayload(partial_backup_id=str(backup_id)))
                await ensure_active()

                await self._jobs.report_progress(job_id, MEDIA_PROGRESS_START, "Uploading archive media files...")

                async def on_progress(processed: int, total: int) -> None:
                    await self._jobs.report_progress(
                        job_id,
                        media_progress(processed, total),
                        f"Uploading media files ({processed}/{total})...",
                    )

                uploads = await self._media_task.upload(reader, user_id, backup_id, ensure_active, on_progress)

            await self._jobs.report_progress(job_id, 88, "Finalizing backup data...")
            await ensure_active()
            await self._finalize(user_id, username, backup_id, archive, uploads, local_path)

            await ensure_active()
            await self._jobs.merge_payload(
                job_id,
                JobPayload(
                    lifecycle_state=LifecycleState.COMPLETED,
                    partial_backup_id=None,
                    completed_backup_id=str(backup_id),
                ),
            )

        except CancellationSignal:
            logger.info(f"{__name__}:run - Cancellation requested, cleaning up", extra={"job_id": str(job_id)})
            await self._jobs.enter_cleanup(job_id, CLEANUP_MESSAGE)
            discarded = await self._discard_partial_backup(backup_id, user_id)
            await self._jobs.mark_cancelled(job_id, JobPayload(**partial_backup_fields(discarded)))
            return JobRunResult(job_id=job_id, outcome=JobOutcome.CANCELLED, processing_time_ms=elapsed_ms())

        except Exception as e:
            log_exception_with_context(
                logger,
                f"{__name__}:run - Archive job failed",
                e,
                job_id=job_id,
                user_id=user_id,
                backup_id=backup_id,
            )
            discarded = await self._discard_partial_backup(backup_id, user_id)
            message = public_message(e, GENERIC_FAILURE_MESSAGE)
            await self._jobs.fail_with(
                job_id,
                message,
                payload=JobPayload(
                    lifecycle_state=LifecycleState.FAILED,
                    error=JobError(type=type(e).__name__, message=str(e), details=getattr(e, "details", {})),
                    **partial_backup_fields(discarded),
                ),
            )
            return JobRunResult(
                job_id=job_id,
                outcome=JobOutcome.FAILED,
                error_message=message,
                processing_time_ms=elapsed_ms(),
            )

        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
            await self._remove_staged_input(input_storage_path)

        # Terminal write errors propagate without cleanup; the worker retries them.
        await self._jobs.complete_with_result(job_id, backup_id, COMPLETED_MESSAGE)
        logger.info(
            f"{__name__}:run - Archive job completed",
            extra={"job_id": str(job_id), "backup_id": str(backup_id), "media_files": uploads.uploaded_count},
        )
        return JobRunResult(
            job_id=job_id,
            outcome=JobOutcome.COMPLETED,
            backup_id=backup_id,
            processing_time_ms=elapsed_ms(),
        )

    async def _save_record(self, user_id: str, username: str | None, archive: NormalizedArchive) -> UUID:
        account = archive.account
        resolved_username = (account.username if account else None) or username

        social_profile_id = None
        if resolved_username:
            profile = await self._backups.upsert_profile(
                user_id,
                PLATFORM,
                resolved_username,
                platform_user_id=account.account_id if account else None,
                display_name=(account.display_name if account else None) or resolved_username,
                profile_url=f"https://x.com/{resolved_username}",
                added_via=BACKUP_SOURCE,
            )
            social_profile_id = profile.id

        backup = await self._backups.create_backup(
            user_id,
            BACKUP_TYPE,
            BACKUP_SOURCE,
            archive.records_data(),
            social_profile_id=social_profile_id,
        )
        return backup.id

    async def _finalize(
        self,
        user_id: str,
        username: str | None,
        backup_id: UUID,
        archive: NormalizedArchive,
        uploads: MediaUploadResult,
        local_path: str,
    ) -> None:
        tweets, conversations = self._rewrite_task.rewrite(
            archive.tweets, archive.direct_messages, uploads.media_files
        )
        archive = archive.model_copy(update={"tweets": tweets, "direct_messages": conversations})

        account = archive.account
        avatar, header = self._rewrite_task.resolve_profile_images(account, uploads.media_files)
        resolved_username = (account.username if account else None) or username or ""
        profile = ArchiveProfile(
            username=resolved_username,
            display_name=(account.display_name if account else None) or resolved_username,
            profile_image_url=avatar or (account.avatar_media_url if account else None),
            cover_image_url=header or (account.header_media_url if account else None),
        )

        archive_path = archive_storage_path(user_id, backup_id)
        archive_size = os.path.getsize(local_path)
        await self._blob_store.upload_file(archive_path, local_path, ARCHIVE_MIME_TYPE, overwrite=False)
        try:
            await self._backups.record_media(
                {
                    "user_id": user_id,
                    "backup_id": backup_id,
                    "file_path": archive_path,
                    "file_name": f"{backup_id}.zip",
                    "file_size": archive_size,
                    "mime_type": ARCHIVE_MIME_TYPE,
                    "media_type": ARCHIVE_MEDIA_TYPE,
                }
            )
        except SQLAlchemyError as e:
            logger.error(
                f"{__name__}:_finalize - Failed to record archive file: {e}",
                extra={"backup_id": str(backup_id), "archive_path": archive_path},
            )

        stats = archive.stats
        stats.media_files = len(uploads.media_files)
        data: dict[str, Any] = {
            **archive.records_data(),
            "profile": profile.to_data(),
            "stats": stats.model_dump(),
            "archive_file_path": archive_path,
            "uploaded_file_size": archive_size,
        }
        await self._backups.update_backup_data(backup_id, data, archive_file_path=archive_path)
        await self._backups.recalculate_storage(backup_id)

    async def _discard_partial_backup(self, backup_id: UUID | None, user_id: str) -> bool:
        """Delete the partial backup; False when it is left behind."""
        if backup_id is None:
            return True
        try:
            result = await self._backups.delete_backup(backup_id, self._blob_store, expected_user_id=user_id)
        except Exception as e:
            logger.error(
                f"{__name__}:_discard_partial_backup - Cleanup failed: {type(e).__name__}: {e}",
                extra={"backup_id": str(backup_id)},
            )
            return False
        logger.info(
            f"{__name__}:_discard_partial_backup - Partial backup removed",
            extra={"backup_id": str(backup_id), "storage_files_deleted": result.storage_files_deleted},
        )
        return True

    async def _remove_staged_input(self, input_storage_path: str) -> None:
        try:
            deleted = await self._blob_store.delete([input_storage_path])
        except Exception as e:
            logger.warning(
                f"{__name__}:_remove_staged_input - Failed to delete staged input: {e}",
                extra={"input_storage_path": input_storage_path},
            )
            return
        if not deleted:
            logger.warning(
                f"{__name__}:_remove_staged_input - Staged input was not deleted",
                extra={"input_storage_path": input_storage_path},
            )
