"""API-specific dependencies."""

from .dependencies import (
    get_current_user_id,
    get_job_service,
    get_settings_dependency,
)

__all__ = [
    "get_current_user_id",
    "get_job_service",
    "get_settings_dependency",
]
