"""
Task modules for the snapshot scrape pipeline.

Exports: RemoteMediaTask, ProfileMediaResult
"""

from .remote_media_task import (
    COVER_PHOTO_NAME,
    PROFILE_PHOTO_NAME,
    ProfileMediaResult,
    RemoteMediaTask,
    scraped_file_name,
    scraped_mime_type,
)

__all__ = [
    "COVER_PHOTO_NAME",
    "PROFILE_PHOTO_NAME",
    "ProfileMediaResult",
    "RemoteMediaTask",
    "scraped_file_name",
    "scraped_mime_type",
]
