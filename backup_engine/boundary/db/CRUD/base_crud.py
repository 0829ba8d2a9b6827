"""
Base CRUD operations for SQLAlchemy models.

Generic create/read/update/delete helpers shared by the job, backup,
media file, and social profile CRUD singletons.

Dependencies: sqlalchemy
System role: Foundation for all database CRUD operations
"""

from typing import Any, Generic, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.boundary.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseCRUD(Generic[ModelT]):
    """
    Generic base class for CRUD operations.

    Methods flush but never commit; transaction boundaries belong to the
    service layer.

    Type Parameters:
        ModelT: SQLAlchemy model class inheriting from Base

    Attributes:
        model: The SQLAlchemy model class to operate on
    """

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    async def create(self, session: AsyncSession, **kwargs: Any) -> ModelT:
        """
        Insert a new row.

        Args:
            session: Async database session
            **kwargs: Model field values

        Returns:
            Created instance with generated ID and timestamps
        """
        instance = self.model(**kwargs)
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        return instance

    async def get_by_id(self, session: AsyncSession, id: UUID) -> ModelT | None:
        """
        Fetch a single row by primary key, or None.

        populate_existing refreshes an instance already held in the identity
        map; workers keep one session per run while other processes write
        the same rows.
        """
        stmt = (
            select(self.model)
            .where(self.model.id == id)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        session: AsyncSession,
        user_id: str,
        limit: int | None = None,
    ) -> Sequence[ModelT]:
        """
        List rows owned by a user, newest first.

        Args:
            session: Async database session
            user_id: Owner identifier
            limit: Maximum rows to return (None for all)

        Returns:
            Sequence of model instances
        """
        stmt = (
            select(self.model)
            .where(self.model.user_id == user_id)
            .order_by(self.model.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def update_by_id(
        self,
        session: AsyncSession,
        id: UUID,
        **kwargs: Any,
    ) -> ModelT | None:
        """
        Update fields of a row loaded through the identity map.

        Loading the instance first keeps `onupdate` timestamps and JSON
        reassignment tracked by the ORM.

        Args:
            session: Async database session
            id: UUID primary key
            **kwargs: Fields to overwrite

        Returns:
            Updated instance, or None if the row does not exist
        """
        instance = await self.get_by_id(session, id)
        if instance is None:
            return None
        for field, value in kwargs.items():
            setattr(instance, field, value)
        await session.flush()
        return instance

    async def delete_by_id(self, session: AsyncSession, id: UUID) -> bool:
        """
        Delete a row by primary key.

        Returns:
            True if a row was deleted, False if not found
        """
        result = await session.execute(delete(self.model).where(self.model.id == id))
        return (result.rowcount or 0) > 0
