"""
Media file CRUD operations.

Inserts go through Core `insert()` so a caller can drop optional columns
that a lagging deployment has not migrated yet (see schema_tolerant).

Dependencies: sqlalchemy, backup_engine.boundary.db.models
System role: Media record persistence operations
"""

from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.boundary.db.base import utcnow
from backup_engine.boundary.db.CRUD.base_crud import BaseCRUD
from backup_engine.boundary.db.models.media_file_model import MediaFileModel


class MediaFileCRUD(BaseCRUD[MediaFileModel]):
    """CRUD operations for MediaFileModel."""

    def __init__(self) -> None:
        super().__init__(MediaFileModel)

    async def exists_for_backup(
        self,
        session: AsyncSession,
        backup_id: UUID,
        file_path: str,
    ) -> bool:
        """Check whether (backup_id, file_path) is already recorded."""
        stmt = select(MediaFileModel.id).where(
            MediaFileModel.backup_id == backup_id,
            MediaFileModel.file_path == file_path,
        )
        result = await session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def list_for_backup(
        self,
        session: AsyncSession,
        backup_id: UUID,
    ) -> Sequence[MediaFileModel]:
        """List every media record of a backup."""
        stmt = select(MediaFileModel).where(MediaFileModel.backup_id == backup_id)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def count_for_backup(self, session: AsyncSession, backup_id: UUID) -> int:
        """Count media records of a backup."""
        stmt = select(func.count(MediaFileModel.id)).where(MediaFileModel.backup_id == backup_id)
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def paths_referenced_elsewhere(
        self,
        session: AsyncSession,
        paths: Sequence[str],
        exclude_backup_id: UUID,
    ) -> set[str]:
        """
        Return which of `paths` are recorded by another backup's media rows.

        Args:
            session: Async database session
            paths: Candidate object keys
            exclude_backup_id: Backup being deleted

        Returns:
            Shared paths that must not be removed from blob storage
        """
        if not paths:
            return set()
        stmt = select(MediaFileModel.file_path).where(
            MediaFileModel.file_path.in_(list(paths)),
            MediaFileModel.backup_id != exclude_backup_id,
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def insert_record(self, session: AsyncSession, record: dict[str, Any]) -> None:
        """
        Insert one media record from a plain column mapping.

        Args:
            session: Async database session
            record: Column values; id and timestamps are filled when absent

        Raises:
            sqlalchemy.exc.DBAPIError: Propagated unchanged, including
                unknown-column errors the caller may recover from
        """
        now = utcnow()
        values = {"id": uuid4(), "created_at": now, "updated_at": now, **record}
        await session.execute(insert(MediaFileModel).values(**values))

    async def list_for_user(self, session: AsyncSession, user_id: str) -> Sequence[MediaFileModel]:
        """List every media record of an owner across backups."""
        stmt = select(MediaFileModel).where(MediaFileModel.user_id == user_id)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def delete_for_backup(self, session: AsyncSession, backup_id: UUID) -> int:
        """Delete every media record of a backup; returns the row count."""
        result = await session.execute(
            delete(MediaFileModel).where(MediaFileModel.backup_id == backup_id)
        )
        return result.rowcount or 0


media_file_crud = MediaFileCRUD()
