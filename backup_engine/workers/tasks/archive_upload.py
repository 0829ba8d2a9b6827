"""
Archive upload Celery task.

Task: run_archive_upload_job(job_id)
Flow: download staged ZIP -> extract metadata -> save backup -> upload media -> complete job

Dependencies: celery, backup_engine.workers.runtime
System role: Entry point of archive ingestion jobs
"""

import asyncio
import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from backup_engine.workers import celery_app, celery_config
from backup_engine.workers.runtime import bootstrap_worker, run_archive_upload

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="backup_engine.run_archive_upload_job",
    max_retries=celery_config.task_max_retries,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=celery_config.task_retry_backoff,
    retry_backoff_max=celery_config.task_retry_backoff_max,
)
def run_archive_upload_job(self, job_id: str) -> dict | None:
    """
    Process an archive upload job.

    Only store failures while writing the terminal status are retried; the
    pipeline itself reports failures through the job row.

    Args:
        job_id: Job UUID as string

    Returns:
        dict: JobRunResult, or None when the job was already finished
    """
    bootstrap_worker()
    logger.info(
        f"{__name__}:run_archive_upload_job - Starting",
        extra={"job_id": job_id, "attempt": self.request.retries},
    )
    result = asyncio.run(run_archive_upload(UUID(job_id)))
    return result.model_dump(mode="json") if result else None
