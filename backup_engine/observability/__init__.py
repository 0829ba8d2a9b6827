"""
Observability module.

Logging configuration and structured logging helpers.
"""

from backup_engine.observability.log_utils import log_exception_with_context, safe_log_value
from backup_engine.observability.logger import configure_logging

__all__ = [
    "configure_logging",
    "log_exception_with_context",
    "safe_log_value",
]
