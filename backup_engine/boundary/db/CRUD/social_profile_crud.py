"""
Social profile CRUD operations.

Dependencies: sqlalchemy, backup_engine.boundary.db.models
System role: Social profile persistence operations
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backup_engine.boundary.db.CRUD.base_crud import BaseCRUD
from backup_engine.boundary.db.models.social_profile_model import SocialProfileModel


class SocialProfileCRUD(BaseCRUD[SocialProfileModel]):
    """CRUD operations for SocialProfileModel."""

    def __init__(self) -> None:
        super().__init__(SocialProfileModel)

    async def get_by_identity(
        self,
        session: AsyncSession,
        user_id: str,
        platform: str,
        platform_username: str,
    ) -> SocialProfileModel | None:
        """Fetch the profile row for (user, platform, username)."""
        stmt = select(SocialProfileModel).where(
            SocialProfileModel.user_id == user_id,
            SocialProfileModel.platform == platform,
            SocialProfileModel.platform_username == platform_username,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        session: AsyncSession,
        user_id: str,
        platform: str,
        platform_username: str,
        **fields: Any,
    ) -> SocialProfileModel:
        """
        Insert or update the profile keyed on (user, platform, username).

        Fields passed as None do not overwrite existing values.

        Args:
            session: Async database session
            user_id: Owner identifier
            platform: Platform key (e.g. "twitter")
            platform_username: Handle on the platform
            **fields: platform_user_id, display_name, profile_url, added_via

        Returns:
            The stored profile row
        """
        existing = await self.get_by_identity(session, user_id, platform, platform_username)
        if existing is None:
            return await self.create(
                session,
                user_id=user_id,
                platform=platform,
                platform_username=platform_username,
                **fields,
            )

        for field, value in fields.items():
            if value is not None:
                setattr(existing, field, value)
        await session.flush()
        return existing


social_profile_crud = SocialProfileCRUD()
