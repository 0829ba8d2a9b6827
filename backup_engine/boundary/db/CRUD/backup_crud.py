"""
Backup CRUD operations.

Dependencies: sqlalchemy, backup_engine.boundary.db.models
System role: Artifact persistence operations
"""

from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.boundary.db.CRUD.base_crud import BaseCRUD
from backup_engine.boundary.db.models.backup_model import BackupModel


class BackupCRUD(BaseCRUD[BackupModel]):
    """CRUD operations for BackupModel."""

    def __init__(self) -> None:
        super().__init__(BackupModel)

    async def get_for_user(
        self,
        session: AsyncSession,
        backup_id: UUID,
        user_id: str,
    ) -> BackupModel | None:
        """Fetch a backup only if it belongs to `user_id`."""
        stmt = select(BackupModel).where(
            BackupModel.id == backup_id,
            BackupModel.user_id == user_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_archive_paths_excluding(
        self,
        session: AsyncSession,
        paths: Sequence[str],
        exclude_backup_id: UUID,
    ) -> set[str]:
        """
        Return which of `paths` are the archive object of another backup.

        Args:
            session: Async database session
            paths: Candidate object keys
            exclude_backup_id: Backup being deleted

        Returns:
            Subset of paths still referenced by other backups' archive column
        """
        if not paths:
            return set()
        stmt = select(BackupModel.archive_file_path).where(
            BackupModel.archive_file_path.in_(list(paths)),
            BackupModel.id != exclude_backup_id,
        )
        result = await session.execute(stmt)
        return {row for row in result.scalars().all() if row}

    async def update_columns(
        self,
        session: AsyncSession,
        backup_id: UUID,
        **values: Any,
    ) -> bool:
        """
        Update columns with a single UPDATE statement.

        Used instead of attribute assignment so the deferred
        archive_file_path column can be written, or left out, explicitly.

        Returns:
            True if a row was updated
        """
        stmt = update(BackupModel).where(BackupModel.id == backup_id).values(**values)
        result = await session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def get_archive_file_path(self, session: AsyncSession, backup_id: UUID) -> str | None:
        """Read the archive_file_path column of one backup."""
        stmt = select(BackupModel.archive_file_path).where(BackupModel.id == backup_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


backup_crud = BackupCRUD()
