"""
Worker runtime.

Composition root of a job run: loads the environment, opens one database
session, builds the services, blob store, provider and fetcher, and hands
them to the pipeline. Celery tasks call these coroutines through
asyncio.run, so each run gets its own engine bound to its own event loop.

Dependencies: python-dotenv, sqlalchemy, backup_engine.core, backup_engine.boundary
System role: Dependency wiring for background jobs
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backup_engine.application.services.backup_service import BackupService
from backup_engine.application.services.job_service import JobService
from backup_engine.boundary.aws.s3_blob_store import BlobStore, S3BlobStore
from backup_engine.boundary.db.connection import get_async_engine, get_async_session_factory
from backup_engine.boundary.db.models.job_model import TERMINAL_JOB_STATUSES, BackupJobModel
from backup_engine.boundary.scraping.apify_provider import ApifyScrapeProvider
from backup_engine.boundary.scraping.media_fetcher import RemoteMediaFetcher
from backup_engine.boundary.scraping.provider import ScrapeProvider, ScrapeTargets
from backup_engine.configs import get_settings
from backup_engine.core.archive_ingestion import ArchiveIngestionPipeline
from backup_engine.core.archive_ingestion.entrypoint import COMPLETED_MESSAGE as ARCHIVE_COMPLETED_MESSAGE
from backup_engine.core.snapshot_scrape import SnapshotScrapePipeline
from backup_engine.core.snapshot_scrape.entrypoint import COMPLETED_MESSAGE as SNAPSHOT_COMPLETED_MESSAGE
from backup_engine.models.job import JobOutcome, JobPayload, JobRunResult, LifecycleState
from backup_engine.observability.logger import configure_logging

logger = logging.getLogger(__name__)

MISSING_INPUT_MESSAGE = "Archive upload job has no staged input file."
MISSING_USERNAME_MESSAGE = "Snapshot scrape job has no username."
INVALID_TARGETS_MESSAGE = "Snapshot scrape job has invalid targets."


def bootstrap_worker(log_level: str = "INFO") -> None:
    """Load .env and configure logging for a worker process."""
    load_dotenv()
    configure_logging(log_level)


@asynccontextmanager
async def job_session(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    One session for one job run.

    Without a factory a dedicated engine is created and disposed afterwards.
    """
    engine = None
    if session_factory is None:
        engine = get_async_engine()
        session_factory = get_async_session_factory(engine)
    try:
        async with session_factory() as session:
            yield session
    finally:
        if engine is not None:
            await engine.dispose()


async def _load_runnable_job(jobs: JobService, job_id: UUID) -> BackupJobModel | None:
    job = await jobs.get_job(job_id)
    if job.status in TERMINAL_JOB_STATUSES:
        logger.warning(
            f"{__name__}:_load_runnable_job - Job already terminal, skipping",
            extra={"job_id": str(job_id), "status": job.status.value},
        )
        return None
    return job


async def _resume_completion(jobs: JobService, job: BackupJobModel, message: str) -> JobRunResult | None:
    """Finish a run whose backup was built but whose terminal write failed."""
    payload = job.payload if isinstance(job.payload, dict) else {}
    completed_backup_id = payload.get("completed_backup_id")
    if payload.get("lifecycle_state") != LifecycleState.COMPLETED.value or not completed_backup_id:
        return None

    backup_id = UUID(str(completed_backup_id))
    logger.info(
        f"{__name__}:_resume_completion - Completing previously built backup",
        extra={"job_id": str(job.id), "backup_id": str(backup_id)},
    )
    await jobs.complete_with_result(job.id, backup_id, message)
    return JobRunResult(job_id=job.id, outcome=JobOutcome.COMPLETED, backup_id=backup_id)


async def _reject(jobs: JobService, job_id: UUID, message: str) -> JobRunResult:
    await jobs.fail_with(
        job_id,
        message,
        public_message=message,
        payload=JobPayload(lifecycle_state=LifecycleState.FAILED),
    )
    return JobRunResult(job_id=job_id, outcome=JobOutcome.FAILED, error_message=message)


async def run_archive_upload(
    job_id: UUID,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    blob_store: BlobStore | None = None,
) -> JobRunResult | None:
    """
    Run an archive_upload job.

    Inputs are read from the job payload (input_storage_path, username).

    Returns:
        JobRunResult, or None when the job was already terminal
    """
    settings = get_settings()
    blob_store = blob_store or S3BlobStore(settings.storage)

    async with job_session(session_factory) as session:
        jobs = JobService(session)
        job = await _load_runnable_job(jobs, job_id)
        if job is None:
            return None
        resumed = await _resume_completion(jobs, job, ARCHIVE_COMPLETED_MESSAGE)
        if resumed is not None:
            return resumed

        payload = job.payload if isinstance(job.payload, dict) else {}
        input_storage_path = payload.get("input_storage_path")
        if not input_storage_path:
            return await _reject(jobs, job_id, MISSING_INPUT_MESSAGE)

        pipeline = ArchiveIngestionPipeline(jobs, BackupService(session), blob_store, settings.archive_limits)
        return await pipeline.run(job_id, job.user_id, input_storage_path, payload.get("username"))


async def run_snapshot_scrape(
    job_id: UUID,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    blob_store: BlobStore | None = None,
    provider: ScrapeProvider | None = None,
    fetcher: RemoteMediaFetcher | None = None,
) -> JobRunResult | None:
    """
    Run a snapshot_scrape job.

    Inputs are read from the job payload (username, targets, max_tweets,
    include_media, retention).

    Returns:
        JobRunResult, or None when the job was already terminal
    """
    settings = get_settings()
    scrape_settings = settings.scrape
    blob_store = blob_store or S3BlobStore(settings.storage)
    provider = provider or ApifyScrapeProvider(scrape_settings)
    owns_fetcher = fetcher is None
    fetcher = fetcher or RemoteMediaFetcher(
        scrape_settings.max_remote_media_bytes,
        scrape_settings.request_timeout_seconds,
    )

    try:
        async with job_session(session_factory) as session:
            jobs = JobService(session)
            job = await _load_runnable_job(jobs, job_id)
            if job is None:
                return None
            resumed = await _resume_completion(jobs, job, SNAPSHOT_COMPLETED_MESSAGE)
            if resumed is not None:
                return resumed

            payload = job.payload if isinstance(job.payload, dict) else {}
            username = str(payload.get("username") or "").strip().lstrip("@")
            if not username:
                return await _reject(jobs, job_id, MISSING_USERNAME_MESSAGE)
            try:
                targets = ScrapeTargets.model_validate(payload.get("targets") or {})
            except PydanticValidationError:
                return await _reject(jobs, job_id, INVALID_TARGETS_MESSAGE)

            pipeline = SnapshotScrapePipeline(
                jobs,
                BackupService(session),
                blob_store,
                provider,
                fetcher,
                settings=scrape_settings,
            )
            return await pipeline.run(
                job_id,
                job.user_id,
                username,
                targets,
                max_tweets=payload.get("max_tweets"),
                include_media=payload.get("include_media") is not False,
                retention=payload.get("retention"),
            )
    finally:
        if owns_fetcher:
            await fetcher.aclose()
