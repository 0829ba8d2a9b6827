"""
Backup service orchestrator.

Persistence operations on backups, their media records and the linked
social profile, shared by both pipelines and by backup deletion.

Dependencies: sqlalchemy, backup_engine.boundary.db.CRUD, backup_engine.core.backups
System role: Artifact management orchestration
"""

import logging
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.boundary.aws.s3_blob_store import BlobStore
from backup_engine.boundary.db.CRUD.backup_crud import backup_crud
from backup_engine.boundary.db.CRUD.media_file_crud import media_file_crud
from backup_engine.boundary.db.CRUD.social_profile_crud import social_profile_crud
from backup_engine.boundary.db.models.backup_model import BackupModel
from backup_engine.boundary.db.models.media_file_model import (
    OPTIONAL_MEDIA_FILE_COLUMNS,
    MediaFileModel,
)
from backup_engine.boundary.db.models.social_profile_model import SocialProfileModel
from backup_engine.boundary.db.schema_tolerant import (
    insert_with_optional_columns,
    is_missing_column_error,
)
from backup_engine.core.backups.backup_deletion import (
    BackupDeletionResult,
    candidate_paths,
    paths_to_delete,
)
from backup_engine.core.backups.storage_usage import (
    StorageBreakdown,
    UserStorageSummary,
    apply_storage_breakdown,
    archive_path_from_data,
    calculate_backup_storage,
    calculate_user_storage,
)
from backup_engine.core.exceptions import BackupNotFoundError, BackupOwnershipError

logger = logging.getLogger(__name__)

ARCHIVE_COLUMN = "archive_file_path"
BACKUPS_TABLE = BackupModel.__tablename__
MEDIA_FILES_TABLE = MediaFileModel.__tablename__

_UNSET: Any = object()


class BackupService:
    """
    Backup service orchestrator.

    Every public write commits on success. Callers that need several writes
    to be atomic should not use this service.
    """

    def __init__(self, db: AsyncSession) -> None:
        """
        Initialize backup service.

        Args:
            db: AsyncSession for database operations
        """
        self.db = db

    async def _commit_or_rollback(self, fn_name: str, **context: Any) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"{__name__}:{fn_name} - {type(e).__name__}: {e}", extra=context)
            await self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    async def create_backup(
        self,
        user_id: str,
        backup_type: str,
        source: str,
        data: dict[str, Any],
        social_profile_id: UUID | None = None,
    ) -> BackupModel:
        """
        Insert a backup row.

        Args:
            user_id: Owner identifier
            backup_type: "full_archive" or "snapshot"
            source: "archive" or "scrape"
            data: Initial data document
            social_profile_id: Linked social profile

        Returns:
            BackupModel: Created row
        """
        try:
            backup = await backup_crud.create(
                self.db,
                user_id=user_id,
                backup_type=backup_type,
                source=source,
                data=data,
                social_profile_id=social_profile_id,
            )
        except SQLAlchemyError as e:
            logger.error(f"{__name__}:create_backup - {type(e).__name__}: {e}", extra={"user_id": user_id})
            await self.db.rollback()
            raise
        await self._commit_or_rollback("create_backup", backup_id=str(backup.id))

        logger.info(
            f"{__name__}:create_backup - Backup created",
            extra={"backup_id": str(backup.id), "backup_type": backup_type, "user_id": user_id},
        )
        return backup

    async def get_backup(self, backup_id: UUID) -> BackupModel:
        """
        Raises:
            BackupNotFoundError: If the backup does not exist
        """
        backup = await backup_crud.get_by_id(self.db, backup_id)
        if backup is None:
            raise BackupNotFoundError(backup_id)
        return backup

    async def update_backup_data(
        self,
        backup_id: UUID,
        data: dict[str, Any],
        archive_file_path: str | None = _UNSET,
    ) -> None:
        """
        Replace a backup's data document and optionally its archive column.

        Deployments without the archive_file_path column get a second
        attempt that writes the data only; the path then lives in data alone.

        Args:
            backup_id: Backup UUID
            data: New data document
            archive_file_path: Value for the archive column (omit to leave it)
        """
        values: dict[str, Any] = {"data": data}
        if archive_file_path is not _UNSET:
            values[ARCHIVE_COLUMN] = archive_file_path

        try:
            async with self.db.begin_nested():
                await backup_crud.update_columns(self.db, backup_id, **values)
        except SQLAlchemyError as e:
            if ARCHIVE_COLUMN not in values or not is_missing_column_error(e, ARCHIVE_COLUMN):
                logger.error(f"{__name__}:update_backup_data - {type(e).__name__}: {e}", extra={"backup_id": str(backup_id)})
                await self.db.rollback()
                raise
            logger.warning(
                f"{__name__}:update_backup_data - archive_file_path column missing, retrying without it",
                extra={"backup_id": str(backup_id)},
            )
            await backup_crud.update_columns(self.db, backup_id, data=data)

        await self._commit_or_rollback("update_backup_data", backup_id=str(backup_id))

    async def patch_backup_data(self, backup_id: UUID, patch: dict[str, Any]) -> dict[str, Any]:
        """
        Overwrite top-level keys of a backup's data document.

        Returns:
            dict: The stored data after the patch
        """
        backup = await self.get_backup(backup_id)
        data = {**(backup.data or {}), **patch}
        await self.update_backup_data(backup_id, data)
        return data

    async def get_archive_file_path(self, backup_id: UUID, data: dict[str, Any] | None = None) -> str | None:
        """Archive path from the backup data, falling back to the column."""
        from_data = archive_path_from_data(data) if data is not None else None
        if from_data:
            return from_data
        try:
            async with self.db.begin_nested():
                return await backup_crud.get_archive_file_path(self.db, backup_id)
        except SQLAlchemyError as e:
            if is_missing_column_error(e, ARCHIVE_COLUMN):
                return None
            raise

    # ------------------------------------------------------------------
    # Social profiles
    # ------------------------------------------------------------------

    async def upsert_profile(
        self,
        user_id: str,
        platform: str,
        platform_username: str,
        **fields: Any,
    ) -> SocialProfileModel:
        """
        Insert or update the social profile for (user, platform, username).

        Args:
            user_id: Owner identifier
            platform: Platform key
            platform_username: Handle
            **fields: platform_user_id, display_name, profile_url, added_via

        Returns:
            SocialProfileModel: Stored profile
        """
        try:
            profile = await social_profile_crud.upsert(
                self.db, user_id, platform, platform_username, **fields
            )
        except SQLAlchemyError as e:
            logger.error(f"{__name__}:upsert_profile - {type(e).__name__}: {e}", extra={"user_id": user_id})
            await self.db.rollback()
            raise
        await self._commit_or_rollback("upsert_profile", user_id=user_id)
        return profile

    # ------------------------------------------------------------------
    # Media records
    # ------------------------------------------------------------------

    async def media_exists(self, backup_id: UUID, file_path: str) -> bool:
        return await media_file_crud.exists_for_backup(self.db, backup_id, file_path)

    async def record_media(self, record: dict[str, Any]) -> bool:
        """
        Insert a media record unless (backup_id, file_path) already exists.

        Optional columns the deployment does not have are dropped.

        Args:
            record: Column values; must contain user_id, backup_id, file_path

        Returns:
            bool: True if a row was inserted, False if it already existed
        """
        if await media_file_crud.exists_for_backup(self.db, record["backup_id"], record["file_path"]):
            return False

        async def insert(values: dict[str, Any]) -> None:
            async with self.db.begin_nested():
                await media_file_crud.insert_record(self.db, values)

        try:
            await insert_with_optional_columns(
                insert, record, OPTIONAL_MEDIA_FILE_COLUMNS, table=MEDIA_FILES_TABLE
            )
        except SQLAlchemyError as e:
            logger.error(
                f"{__name__}:record_media - {type(e).__name__}: {e}",
                extra={"backup_id": str(record["backup_id"]), "file_path": record["file_path"]},
            )
            await self.db.rollback()
            raise
        await self._commit_or_rollback("record_media", file_path=record["file_path"])
        return True

    async def list_media(self, backup_id: UUID) -> Sequence[MediaFileModel]:
        return await media_file_crud.list_for_backup(self.db, backup_id)

    # ------------------------------------------------------------------
    # Storage accounting
    # ------------------------------------------------------------------

    async def recalculate_storage(self, backup_id: UUID) -> StorageBreakdown | None:
        """
        Recompute and persist a backup's storage footprint.

        Failures are logged and reported as None; the footprint is
        informational and never fails a job.

        Returns:
            StorageBreakdown | None
        """
        try:
            backup = await self.get_backup(backup_id)
            rows = await media_file_crud.list_for_backup(self.db, backup_id)
            breakdown = calculate_backup_storage(
                backup.data,
                [{"file_path": r.file_path, "file_size": r.file_size} for r in rows],
            )
            await backup_crud.update_columns(
                self.db, backup_id, data=apply_storage_breakdown(backup.data, breakdown)
            )
            await self.db.commit()
        except (SQLAlchemyError, BackupNotFoundError) as e:
            logger.error(
                f"{__name__}:recalculate_storage - {type(e).__name__}: {e}",
                extra={"backup_id": str(backup_id)},
            )
            await self.db.rollback()
            return None

        logger.info(
            f"{__name__}:recalculate_storage - Storage recalculated",
            extra={"backup_id": str(backup_id), "total_bytes": breakdown.total_bytes},
        )
        return breakdown

    async def user_storage_summary(self, user_id: str) -> UserStorageSummary:
        """Storage used by all backups of an owner, shared objects counted once."""
        backups = await backup_crud.list_by_user(self.db, user_id)
        rows = await media_file_crud.list_for_user(self.db, user_id)
        return calculate_user_storage(
            [b.data for b in backups],
            [{"file_path": r.file_path, "file_size": r.file_size} for r in rows],
        )

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def _archive_paths_elsewhere(self, paths: list[str], backup_id: UUID) -> set[str]:
        try:
            async with self.db.begin_nested():
                return await backup_crud.list_archive_paths_excluding(self.db, paths, backup_id)
        except SQLAlchemyError as e:
            if is_missing_column_error(e, ARCHIVE_COLUMN):
                return set()
            raise

    async def delete_backup(
        self,
        backup_id: UUID,
        blob_store: BlobStore,
        expected_user_id: str | None = None,
    ) -> BackupDeletionResult:
        """
        Delete a backup, its media records, and the blobs nobody else uses.

        Rows are removed first; blob deletion failures are counted, not raised.

        Args:
            backup_id: Backup UUID
            blob_store: Storage holding media and archives
            expected_user_id: When given, the backup must belong to this owner

        Returns:
            BackupDeletionResult (backup_deleted=False when it did not exist)

        Raises:
            BackupOwnershipError: Backup belongs to another owner
        """
        backup = await backup_crud.get_by_id(self.db, backup_id)
        if backup is None:
            return BackupDeletionResult()
        if expected_user_id is not None and backup.user_id != expected_user_id:
            raise BackupOwnershipError(backup_id, expected_user_id)

        rows = await media_file_crud.list_for_backup(self.db, backup_id)
        archive_path = await self.get_archive_file_path(backup_id, backup.data)
        candidates = candidate_paths((r.file_path for r in rows), archive_path)

        shared: set[str] = set()
        if candidates:
            shared |= await media_file_crud.paths_referenced_elsewhere(self.db, candidates, backup_id)
            shared |= await self._archive_paths_elsewhere(candidates, backup_id)
        doomed = paths_to_delete(candidates, shared)

        try:
            await media_file_crud.delete_for_backup(self.db, backup_id)
            await backup_crud.delete_by_id(self.db, backup_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"{__name__}:delete_backup - {type(e).__name__}: {e}", extra={"backup_id": str(backup_id)})
            await self.db.rollback()
            raise

        deleted = await blob_store.delete(doomed) if doomed else 0
        result = BackupDeletionResult(
            media_files_checked=len(rows),
            candidate_paths_checked=len(candidates),
            storage_files_deleted=deleted,
            storage_files_delete_failed=len(doomed) - deleted,
            backup_deleted=True,
        )
        logger.info(
            f"{__name__}:delete_backup - Backup deleted",
            extra={"backup_id": str(backup_id), **result.model_dump()},
        )
        return result
