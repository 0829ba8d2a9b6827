"""
Exception hierarchy for the backup job engine.

Every domain error carries a human-readable message plus a details dict for
logs. `public` marks errors whose message may be shown to the end user
verbatim; everything else is reported with a generic message.

Cancellation is not an error: `CancellationSignal` derives from
BaseException so that per-record `except Exception` guards in the pipelines
cannot swallow it.

Dependencies: None (pure domain layer)
System role: Centralized exception handling across the application
"""

from typing import Any


class BackupEngineException(Exception):
    """Base exception for all backup engine errors."""

    public: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(BackupEngineException):
    """Raised when caller input is invalid. Never retried."""

    public = True

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            details: Additional context
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class BudgetExceededError(ValidationError):
    """Raised when a scrape request cannot fit in the available budget."""


class ArchiveFormatError(ValidationError):
    """Raised when an upload does not contain any recognizable export data."""


class ResourceLimitError(BackupEngineException):
    """Raised when an archive exceeds a configured resource ceiling."""

    public = True

    def __init__(
        self,
        limit_name: str,
        observed: int,
        limit: int,
        subject: str | None = None,
    ) -> None:
        """
        Initialize resource limit error.

        Args:
            limit_name: Name of the ceiling (e.g. max_media_files)
            observed: Observed value that crossed the ceiling
            limit: Configured ceiling
            subject: Optional entry name the limit applies to
        """
        target = f" ({subject})" if subject else ""
        super().__init__(
            f"Archive exceeds {limit_name}{target}: observed {observed}, limit {limit}.",
            {"limit_name": limit_name, "observed": observed, "limit": limit},
        )
        self.limit_name = limit_name
        self.observed = observed
        self.limit = limit


class TransientExternalError(BackupEngineException):
    """Raised when a store, blob or provider call fails."""

    def __init__(
        self,
        message: str,
        service: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize external error.

        Args:
            message: Error message
            service: External service that failed (blob, provider, store)
            details: Additional context
        """
        details = details or {}
        if service:
            details["service"] = service
        super().__init__(message, details)


class BlobStorageError(TransientExternalError):
    """Raised when an object storage operation fails."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, service="blob", details={"path": path} if path else None)
        self.path = path


class ScrapeProviderError(TransientExternalError):
    """Raised when the scraping provider rejects or fails a run."""

    def __init__(self, message: str, run_id: str | None = None) -> None:
        super().__init__(message, service="provider", details={"run_id": run_id} if run_id else None)
        self.run_id = run_id


class JobNotFoundError(BackupEngineException):
    """Raised when a job cannot be found."""

    def __init__(self, job_id: Any) -> None:
        super().__init__(f"Job {job_id} not found", {"job_id": str(job_id)})


class BackupNotFoundError(BackupEngineException):
    """Raised when a backup cannot be found."""

    def __init__(self, backup_id: Any) -> None:
        super().__init__(f"Backup {backup_id} not found", {"backup_id": str(backup_id)})


class BackupOwnershipError(BackupEngineException):
    """Raised when a backup does not belong to the expected owner."""

    def __init__(self, backup_id: Any, user_id: str) -> None:
        super().__init__(
            "Backup ownership mismatch",
            {"backup_id": str(backup_id), "user_id": user_id},
        )


class CancellationSignal(BaseException):
    """
    Raised at a checkpoint once cancellation has been requested for a job.

    Pipelines catch this explicitly, run their cleanup path and report the
    job as cancelled. It intentionally bypasses `except Exception`.
    """

    def __init__(self, job_id: Any = None, reason: str = "Job cancelled by user") -> None:
        self.job_id = job_id
        self.reason = reason
        super().__init__(reason)


def public_message(exc: BaseException, fallback: str) -> str:
    """
    Pick the message that may be shown to the job owner.

    Args:
        exc: Error that terminated the job
        fallback: Generic message for internal failures

    Returns:
        str: Specific message for public errors, fallback otherwise
    """
    if isinstance(exc, BackupEngineException) and exc.public:
        return exc.message
    return fallback
