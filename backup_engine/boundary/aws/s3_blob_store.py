"""
Blob storage over an S3-compatible bucket.

Stores staged uploads, extracted media and archived ZIP files. boto3 is
synchronous, so every call runs in a worker thread via asyncio.to_thread
to keep the job's event loop responsive.

Dependencies: boto3, botocore
System role: Blob storage adapter for both pipelines and backup deletion
"""

import asyncio
import logging
from typing import Any, Protocol, Sequence

import boto3
from botocore.exceptions import ClientError

from backup_engine.configs.storage import StorageSettings
from backup_engine.core.exceptions import BlobStorageError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_ALREADY_EXISTS_CODES = {"412", "PreconditionFailed", "ConditionalRequestConflict"}


class BlobStore(Protocol):
    """Operations the pipelines need from blob storage."""

    async def put(
        self,
        path: str,
        data: bytes,
        content_type: str,
        overwrite: bool = True,
    ) -> bool: ...

    async def upload_file(
        self,
        path: str,
        local_path: str,
        content_type: str,
        overwrite: bool = True,
    ) -> bool: ...

    async def download_to_file(self, path: str, local_path: str) -> None: ...

    async def get(self, path: str) -> bytes | None: ...

    async def delete(self, paths: Sequence[str]) -> int: ...


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", "Unknown"))


class S3BlobStore:
    """BlobStore backed by a single S3 (or R2/MinIO) bucket."""

    def __init__(self, settings: StorageSettings, client: Any | None = None) -> None:
        """
        Initialize blob store.

        Args:
            settings: Bucket name, region, endpoint and delete batch size
            client: Pre-built boto3 S3 client (built from settings when omitted)
        """
        self._bucket = settings.bucket
        self._batch_size = settings.delete_batch_size
        self._client = client or boto3.client(
            "s3",
            region_name=settings.region,
            endpoint_url=settings.endpoint_url,
        )

    async def put(
        self,
        path: str,
        data: bytes,
        content_type: str,
        overwrite: bool = True,
    ) -> bool:
        """
        Upload bytes to `path`.

        Args:
            path: Object key
            data: Object body
            content_type: MIME type stored with the object
            overwrite: When False, an existing object is kept

        Returns:
            bool: True if written, False if it already existed and overwrite=False

        Raises:
            BlobStorageError: On any other storage failure
        """
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": path,
            "Body": data,
            "ContentType": content_type,
        }
        if not overwrite:
            params["IfNoneMatch"] = "*"

        try:
            await asyncio.to_thread(self._client.put_object, **params)
            return True
        except ClientError as e:
            code = _error_code(e)
            if not overwrite and code in _ALREADY_EXISTS_CODES:
                logger.debug(f"{__name__}:put - Object already exists", extra={"path": path})
                return False
            raise BlobStorageError(f"Failed to upload object: {code}", path) from e

    async def upload_file(
        self,
        path: str,
        local_path: str,
        content_type: str,
        overwrite: bool = True,
    ) -> bool:
        """
        Upload a local file without loading it into memory.

        Args:
            path: Object key
            local_path: File on local disk
            content_type: MIME type stored with the object
            overwrite: When False, skip if the object already exists

        Returns:
            bool: True if written, False if skipped because it existed

        Raises:
            BlobStorageError: If the upload fails
        """
        if not overwrite and await self.exists(path):
            return False
        try:
            await asyncio.to_thread(
                self._client.upload_file,
                local_path,
                self._bucket,
                path,
                ExtraArgs={"ContentType": content_type},
            )
            return True
        except ClientError as e:
            raise BlobStorageError(f"Failed to upload file: {_error_code(e)}", path) from e

    async def download_to_file(self, path: str, local_path: str) -> None:
        """
        Stream an object to a local file.

        Raises:
            BlobStorageError: If the object is missing or the download fails
        """
        try:
            await asyncio.to_thread(self._client.download_file, self._bucket, path, local_path)
        except ClientError as e:
            code = _error_code(e)
            if code in _NOT_FOUND_CODES:
                raise BlobStorageError(f"Object not found: {path}", path) from e
            raise BlobStorageError(f"Failed to download object: {code}", path) from e

    async def exists(self, path: str) -> bool:
        """True if an object exists at `path`."""
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self._bucket, Key=path)
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise BlobStorageError(f"Failed to stat object: {_error_code(e)}", path) from e

    async def get(self, path: str) -> bytes | None:
        """
        Read an object fully.

        Returns:
            bytes | None: Object body, or None when it does not exist

        Raises:
            BlobStorageError: On failures other than not-found
        """
        try:
            response = await asyncio.to_thread(self._client.get_object, Bucket=self._bucket, Key=path)
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            raise BlobStorageError(f"Failed to read object: {_error_code(e)}", path) from e

    async def delete(self, paths: Sequence[str]) -> int:
        """
        Delete objects in batches.

        Failures are logged per batch or per key and do not raise; the caller
        only gets the count of keys that were removed.

        Args:
            paths: Object keys to delete

        Returns:
            int: Number of keys reported as deleted
        """
        unique = list(dict.fromkeys(p for p in paths if p))
        deleted = 0

        for start in range(0, len(unique), self._batch_size):
            batch = unique[start : start + self._batch_size]
            try:
                response = await asyncio.to_thread(
                    self._client.delete_objects,
                    Bucket=self._bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": False},
                )
            except ClientError as e:
                logger.warning(
                    f"{__name__}:delete - Batch delete failed",
                    extra={"batch_size": len(batch), "error_code": _error_code(e)},
                )
                continue

            errors = response.get("Errors", [])
            for error in errors:
                logger.warning(
                    f"{__name__}:delete - Object delete failed",
                    extra={"path": error.get("Key"), "error_code": error.get("Code")},
                )
            deleted += len(response.get("Deleted", [])) if "Deleted" in response else len(batch) - len(errors)

        logger.info(
            f"{__name__}:delete - Objects deleted",
            extra={"requested": len(unique), "deleted": deleted},
        )
        return deleted
