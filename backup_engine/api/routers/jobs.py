"""
Job API endpoints.

Routes: GET /jobs, GET /jobs/{id}, POST /jobs/{id}/cancel

Jobs are scoped to the caller identified by the X-User-Id header; jobs of
other owners are reported as missing.

Dependencies: backup_engine.application.services.job_service, backup_engine.models.job
System role: Job polling and cancellation HTTP API
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from backup_engine.api.deps import get_current_user_id, get_job_service
from backup_engine.application.services.job_service import JobService
from backup_engine.boundary.db.models.job_model import TERMINAL_JOB_STATUSES
from backup_engine.core.exceptions import JobNotFoundError
from backup_engine.models.job import CancelJobRequest, JobStatusResponse

router = APIRouter(prefix="/jobs", tags=["jobs"])

_TERMINAL_STATUS_VALUES = {status.value for status in TERMINAL_JOB_STATUSES}


@router.get("", response_model=list[JobStatusResponse])
async def list_jobs(
    limit: int = Query(default=15, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service),
) -> list[dict]:
    """Most recent jobs of the caller, newest first."""
    return await job_service.list_jobs(user_id, limit=limit)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: UUID,
    user_id: str = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service),
) -> dict:
    """
    Get job status and progress for polling.

    Clients poll every 1-2 seconds while the job is queued or processing;
    `lifecycle_state` and `payload.live_metrics` carry the finer detail.

    Raises:
        HTTPException(404): Job not found

    Example Response:
        {
            "id": "123e4567-e89b-12d3-a456-426614174000",
            "job_type": "snapshot_scrape",
            "status": "processing",
            "progress": 20,
            "message": "In progress (scraping)",
            "lifecycle_state": "processing",
            "cancelled": false,
            "payload": {"live_metrics": {"phase": "scraping", "tweets_fetched": 40}}
        }
    """
    try:
        return await job_service.get_job_status(job_id, user_id=user_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e


@router.post("/{job_id}/cancel", response_model=JobStatusResponse)
async def cancel_job(
    job_id: UUID,
    request: CancelJobRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    job_service: JobService = Depends(get_job_service),
) -> dict:
    """
    Request cooperative cancellation of a queued or processing job.

    The worker notices the flag at its next checkpoint, removes partial data
    and reports the job as cancelled.

    Raises:
        HTTPException(404): Job not found
        HTTPException(409): Job already finished
    """
    try:
        current = await job_service.get_job_status(job_id, user_id=user_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e

    if current["status"] in _TERMINAL_STATUS_VALUES:
        state = "cancelled" if current["cancelled"] else current["status"]
        raise HTTPException(status_code=409, detail=f"Job already {state}")

    request = request or CancelJobRequest()
    return await job_service.request_cancellation(job_id, reason=request.reason)
