"""
Job domain models and schemas.

Typed views over the job payload JSON, the polling response, and the
result type returned by both pipelines.

Dependencies: pydantic
System role: Job state contracts shared by workers, services and the API
"""

import enum
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LifecycleState(str, enum.Enum):
    """Fine-grained job lifecycle stored in payload.lifecycle_state."""

    QUEUED = "queued"
    PROCESSING = "processing"
    CANCELLING = "cancelling"
    CLEANUP = "cleanup"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


class JobOutcome(str, enum.Enum):
    """How a pipeline run ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class LiveMetrics(BaseModel):
    """Counters published while a snapshot scrape runs."""

    phase: str = "queued"
    tweets_fetched: int = 0
    replies_fetched: int = 0
    followers_fetched: int = 0
    following_fetched: int = 0
    media_processed: int = 0
    media_total: int = 0
    api_cost_usd: float = 0.0


class ProviderRuns(BaseModel):
    """Upstream provider run ids of the active scrape."""

    timeline_run_id: str | None = None
    social_graph_run_id: str | None = None


class JobError(BaseModel):
    """Failure detail kept in the payload for support and debugging."""

    type: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class JobPayload(BaseModel):
    """
    Typed view of BackupJobModel.payload.

    Only fields that were explicitly set are merged into the stored payload,
    so `JobPayload(partial_backup_id=None)` clears the key while
    `JobPayload()` changes nothing. Unknown keys are preserved.
    """

    model_config = ConfigDict(extra="allow")

    lifecycle_state: LifecycleState | None = None
    cancel_requested: bool | None = None
    cancel_requested_at: str | None = None
    cancel_reason: str | None = None
    partial_backup_id: str | None = None
    completed_backup_id: str | None = None
    live_metrics: LiveMetrics | None = None
    provider_runs: ProviderRuns | None = None
    api_budget: dict[str, Any] | None = None
    queue_timeout: bool | None = None
    queue_timed_out_at: str | None = None
    input_storage_path: str | None = None
    uploaded_file_size: int | None = None
    username: str | None = None
    targets: dict[str, bool] | None = None
    max_tweets: int | None = None
    social_graph_max_items: int | None = None
    include_media: bool | None = None
    retention: dict[str, Any] | None = None
    error: JobError | None = None

    def to_patch(self) -> dict[str, Any]:
        """
        Serialize the explicitly set top-level fields as JSON-compatible values.

        Nested models are dumped in full, so `provider_runs=ProviderRuns()`
        writes both run ids as null.
        """
        explicit = self.model_fields_set | set(self.model_extra or {})
        return {key: value for key, value in self.model_dump(mode="json").items() if key in explicit}


def partial_backup_fields(discarded: bool) -> dict[str, Any]:
    """Clear partial_backup_id only when the partial backup is really gone."""
    return {"partial_backup_id": None} if discarded else {}


class JobStatusResponse(BaseModel):
    """Response schema for job polling."""

    id: uuid.UUID
    user_id: str
    job_type: str
    status: str
    progress: int
    message: str | None
    lifecycle_state: str | None = None
    cancelled: bool = False
    payload: dict[str, Any] = Field(default_factory=dict)
    result_backup_id: uuid.UUID | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CancelJobRequest(BaseModel):
    reason: str = Field(default="User requested cancellation.", max_length=500)


class JobRunResult(BaseModel):
    """Result of one pipeline run."""

    job_id: uuid.UUID
    outcome: JobOutcome
    backup_id: uuid.UUID | None = None
    error_message: str | None = None
    processing_time_ms: float = Field(default=0.0, description="Wall time of the run in milliseconds")
