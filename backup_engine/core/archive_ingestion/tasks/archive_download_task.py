"""
Staged archive download task.

Streams the uploaded archive from blob storage into a private temp
directory so it is never held wholly in memory.

Dependencies: tempfile (stdlib), backup_engine.boundary.aws
System role: First stage of archive ingestion (blob source)
"""

import logging
import os
import shutil
import tempfile

from backup_engine.boundary.aws.s3_blob_store import BlobStore
from backup_engine.core.exceptions import ResourceLimitError

logger = logging.getLogger(__name__)


class ArchiveDownloadTask:
    """Download a staged archive to local disk."""

    def __init__(self, blob_store: BlobStore, max_archive_bytes: int) -> None:
        """
        Args:
            blob_store: Storage holding the staged upload
            max_archive_bytes: Largest accepted archive
        """
        self._blob_store = blob_store
        self._max_archive_bytes = max_archive_bytes

    async def download(self, storage_path: str, temp_dir: str | None = None) -> str:
        """
        Download `storage_path` into `temp_dir` (a new one when None).

        Args:
            storage_path: Object key of the staged upload
            temp_dir: Directory owned by the caller

        Returns:
            str: Local path of the downloaded archive

        Raises:
            BlobStorageError: Object missing or download failed
            ResourceLimitError: Archive larger than max_archive_bytes
        """
        target_dir = temp_dir or tempfile.mkdtemp(prefix="archive_ingest_")
        local_path = os.path.join(target_dir, "archive.zip")

        try:
            await self._blob_store.download_to_file(storage_path, local_path)
            size = os.path.getsize(local_path)
            if size > self._max_archive_bytes:
                raise ResourceLimitError("max_archive_bytes", size, self._max_archive_bytes)
        except BaseException:
            if temp_dir is None:
                shutil.rmtree(target_dir, ignore_errors=True)
            raise

        logger.info(
            f"{__name__}:download - Archive downloaded",
            extra={"storage_path": storage_path, "size_bytes": size},
        )
        return local_path
