"""
Task modules for the archive ingestion pipeline.

Exports: ArchiveDownloadTask, MetadataExtractionTask, ArchiveParsingTask,
MediaUploadTask, UrlRewriteTask
"""

from .archive_download_task import ArchiveDownloadTask
from .media_upload_task import MEDIA_FOLDERS, MediaUploadTask, mime_type_for
from .metadata_task import METADATA_FILE_PATTERNS, MetadataBucket, MetadataExtractionTask
from .parsing_task import NOT_AN_ARCHIVE_MESSAGE, ArchiveParsingTask
from .url_rewrite_task import UrlRewriteTask, build_file_index, media_file_name

__all__ = [
    "ArchiveDownloadTask",
    "ArchiveParsingTask",
    "MEDIA_FOLDERS",
    "METADATA_FILE_PATTERNS",
    "MediaUploadTask",
    "MetadataBucket",
    "MetadataExtractionTask",
    "NOT_AN_ARCHIVE_MESSAGE",
    "UrlRewriteTask",
    "build_file_index",
    "media_file_name",
    "mime_type_for",
]
