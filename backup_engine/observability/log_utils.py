"""
Structured logging helpers.

Job payloads, archive records and provider responses are arbitrary nested
data; these helpers keep log lines bounded and never let a formatting
failure escape into pipeline code.

Dependencies: logging (stdlib)
System role: Logging helper functions
"""

import logging
from typing import Any


def safe_log_value(value: Any, max_length: int = 300) -> str:
    """
    Render a value for a log record without dumping large collections.

    Args:
        value: Any value
        max_length: Truncation length for the rendered string

    Returns:
        str: Bounded string representation
    """
    try:
        if value is None:
            return "None"
        if isinstance(value, (bytes, bytearray)):
            rendered = f"bytes({len(value)})"
        elif isinstance(value, (list, tuple, set)):
            rendered = f"{type(value).__name__}({len(value)} items)"
        elif isinstance(value, dict):
            rendered = f"dict({len(value)} keys)"
        else:
            rendered = str(value)
    except Exception as e:
        return f"<unrenderable {type(e).__name__}>"

    if len(rendered) > max_length:
        return f"{rendered[:max_length]}... ({len(rendered)} chars)"
    return rendered


def log_exception_with_context(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """
    Log an exception with traceback and bounded context.

    Args:
        logger: Logger instance
        message: Log message
        exc: Exception being reported
        **context: Additional context
    """
    extra = {key: safe_log_value(val) for key, val in context.items()}
    extra["error_type"] = type(exc).__name__
    extra["error_msg"] = safe_log_value(str(exc))
    logger.error(message, exc_info=exc, extra=extra)
