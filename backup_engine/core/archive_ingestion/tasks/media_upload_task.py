"""
Archive media upload task.

Re-hosts the media folders of an export: every file is streamed out of the
ZIP under the per-entry ceiling, written to blob storage and recorded as a
media file of the backup. All count and size ceilings are checked against
the ZIP's declared sizes before any media bytes are read.

Dependencies: backup_engine.boundary.aws, backup_engine.application.services.backup_service
System role: Fourth stage of archive ingestion (media re-hosting)
"""

import logging
from typing import Awaitable, Callable
from uuid import UUID

from backup_engine.application.services.backup_service import BackupService
from backup_engine.boundary.aws.s3_blob_store import BlobStore
from backup_engine.configs.archive_limits import ArchiveLimitsSettings
from backup_engine.core.exceptions import ResourceLimitError

from ..archive_reader import ArchiveEntry, ArchiveReader
from ..models import MediaUploadResult, UploadedMedia

logger = logging.getLogger(__name__)

MEDIA_FOLDERS = (
    "data/tweets_media",
    "data/direct_messages_media",
    "data/direct_messages_group_media",
    "data/grok_chat_media",
    "data/community_tweet_media",
    "data/profile_media",
    "data/moments_media",
    "data/moments_tweets_media",
    "data/deleted_tweets_media",
)

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "webp": "image/webp",
}
DEFAULT_MIME_TYPE = "application/octet-stream"
PROGRESS_EVERY = 5

EnsureActive = Callable[[], Awaitable[None]]
OnProgress = Callable[[int, int], Awaitable[None]]


def mime_type_for(file_name: str) -> str:
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return MIME_TYPES.get(extension, DEFAULT_MIME_TYPE)


def media_type_for(path: str) -> str:
    """Media folder name of a `data/<folder>/<file>` path."""
    parts = path.split("/")
    return parts[1] if len(parts) > 2 and parts[1] else "unknown_media"


class MediaUploadTask:
    """Upload archive media entries and record them for a backup."""

    def __init__(
        self,
        blob_store: BlobStore,
        backup_service: BackupService,
        limits: ArchiveLimitsSettings,
    ) -> None:
        """
        Args:
            blob_store: Destination storage
            backup_service: Writes media records
            limits: Archive resource ceilings
        """
        self._blob_store = blob_store
        self._backup_service = backup_service
        self._limits = limits

    def select_entries(self, reader: ArchiveReader) -> list[ArchiveEntry]:
        """
        Media entries of the archive, after the declared-size ceilings.

        Raises:
            ResourceLimitError: Too many media files, one declared entry too
                large, or total declared media bytes too large
        """
        entries = reader.under(MEDIA_FOLDERS)
        limits = self._limits

        if len(entries) > limits.max_media_files:
            raise ResourceLimitError("max_media_files", len(entries), limits.max_media_files)

        for entry in entries:
            if entry.size > limits.max_media_entry_bytes:
                raise ResourceLimitError(
                    "max_media_entry_bytes", entry.size, limits.max_media_entry_bytes, subject=entry.path
                )

        total_bytes = sum(entry.size for entry in entries)
        if total_bytes > limits.max_media_bytes:
            raise ResourceLimitError("max_media_bytes", total_bytes, limits.max_media_bytes)

        return entries

    async def _upload_entry(
        self,
        reader: ArchiveReader,
        entry: ArchiveEntry,
        user_id: str,
        backup_id: UUID,
    ) -> UploadedMedia:
        data = reader.read(entry, self._limits.max_media_entry_bytes, "max_media_entry_bytes")
        file_name = entry.file_name
        media = UploadedMedia(
            file_path=f"{user_id}/{media_type_for(entry.path)}/{file_name}",
            file_name=file_name,
            file_size=len(data),
            mime_type=mime_type_for(file_name),
            media_type=media_type_for(entry.path),
        )

        created = await self._blob_store.put(media.file_path, data, media.mime_type, overwrite=False)
        if not created:
            logger.debug(
                f"{__name__}:_upload_entry - Object already stored, reusing",
                extra={"file_path": media.file_path},
            )

        await self._backup_service.record_media(
            {"user_id": user_id, "backup_id": backup_id, **media.model_dump()}
        )
        return media

    async def upload(
        self,
        reader: ArchiveReader,
        user_id: str,
        backup_id: UUID,
        ensure_active: EnsureActive,
        on_progress: OnProgress | None = None,
    ) -> MediaUploadResult:
        """
        Upload every media entry of the archive.

        Entries that fail (read overflow, storage or record errors) are
        logged and skipped. Entries already recorded for the backup count as
        uploaded, so a rerun produces the same result without duplicates.

        Args:
            reader: Open archive reader
            user_id: Owner identifier (storage path prefix)
            backup_id: Backup the media belongs to
            ensure_active: Cancellation checkpoint awaited before each entry
            on_progress: Called with (processed, total) every few entries and at the end

        Returns:
            MediaUploadResult

        Raises:
            ResourceLimitError: From the declared-size checks
            CancellationSignal: Cancellation requested between entries
        """
        entries = self.select_entries(reader)
        result = MediaUploadResult(total_entries=len(entries))

        for processed, entry in enumerate(entries, start=1):
            await ensure_active()
            try:
                media = await self._upload_entry(reader, entry, user_id, backup_id)
            except Exception as e:
                result.skipped_count += 1
                logger.warning(
                    f"{__name__}:upload - Skipping media entry: {type(e).__name__}: {e}",
                    extra={"entry_path": entry.path, "backup_id": str(backup_id)},
                )
            else:
                result.media_files.append(media)
                result.uploaded_count += 1

            if on_progress and (processed == len(entries) or processed % PROGRESS_EVERY == 0):
                await on_progress(processed, len(entries))

        logger.info(
            f"{__name__}:upload - Media upload finished",
            extra={
                "backup_id": str(backup_id),
                "uploaded": result.uploaded_count,
                "skipped": result.skipped_count,
                "total_entries": result.total_entries,
            },
        )
        return result
