"""Celery tasks for background backup jobs."""
