"""
Celery workers module.

Background execution of archive upload and snapshot scrape jobs.

Dependencies: celery, backup_engine.configs
System role: Background task processing
"""

from celery import Celery

from backup_engine.configs import get_settings

settings = get_settings()
celery_config = settings.celery

celery_app = Celery(
    "backup_engine",
    broker=celery_config.broker_url,
    backend=celery_config.result_backend_url,
    include=[
        "backup_engine.workers.tasks.archive_upload",
        "backup_engine.workers.tasks.snapshot_scrape",
    ],
)

celery_app.conf.update(
    task_serializer=celery_config.task_serializer,
    result_serializer=celery_config.result_serializer,
    accept_content=celery_config.accept_content,
    timezone=celery_config.timezone,
    task_max_retries=celery_config.task_max_retries,
    task_time_limit=celery_config.task_time_limit,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)
