"""
Snapshot scrape Celery task.

Task: run_snapshot_scrape_job(job_id)
Flow: plan budget -> provider scrape -> save snapshot -> re-host media -> complete job

Dependencies: celery, backup_engine.workers.runtime
System role: Entry point of snapshot scrape jobs
"""

import asyncio
import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from backup_engine.workers import celery_app, celery_config
from backup_engine.workers.runtime import bootstrap_worker, run_snapshot_scrape

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="backup_engine.run_snapshot_scrape_job",
    max_retries=celery_config.task_max_retries,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=celery_config.task_retry_backoff,
    retry_backoff_max=celery_config.task_retry_backoff_max,
)
def run_snapshot_scrape_job(self, job_id: str) -> dict | None:
    """
    Process a snapshot scrape job.

    Args:
        job_id: Job UUID as string

    Returns:
        dict: JobRunResult, or None when the job was already finished
    """
    bootstrap_worker()
    logger.info(
        f"{__name__}:run_snapshot_scrape_job - Starting",
        extra={"job_id": job_id, "attempt": self.request.retries},
    )
    result = asyncio.run(run_snapshot_scrape(UUID(job_id)))
    return result.model_dump(mode="json") if result else None
