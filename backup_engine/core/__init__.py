"""
Core business logic module.

Contains the exception hierarchy, the archive ingestion pipeline, the
budget-aware snapshot scrape pipeline and backup storage accounting.
"""

from backup_engine.core.exceptions import (
    ArchiveFormatError,
    BackupEngineException,
    BudgetExceededError,
    CancellationSignal,
    ResourceLimitError,
    TransientExternalError,
    ValidationError,
)

__all__ = [
    "ArchiveFormatError",
    "BackupEngineException",
    "BudgetExceededError",
    "CancellationSignal",
    "ResourceLimitError",
    "TransientExternalError",
    "ValidationError",
]
