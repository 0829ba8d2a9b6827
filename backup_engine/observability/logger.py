"""
Logger configuration.

Single place where the root logger is wired for the API and worker
processes. Modules obtain loggers with `logging.getLogger(__name__)` and
prefix messages with `"<module>:<function> - "`.

Dependencies: logging (stdlib)
System role: Centralized logging configuration
"""

import logging
import sys

NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "httpx", "httpcore", "aiosqlite")


def configure_logging(level: str | int = "INFO") -> None:
    """
    Configure root logging with ISO timestamps on stdout.

    Safe to call more than once: existing root handlers are replaced.

    Args:
        level: Root log level name or number
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
