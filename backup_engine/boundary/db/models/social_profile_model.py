"""
Social profile ORM model.

Denormalized reference to the platform account a backup belongs to.

Dependencies: sqlalchemy, backup_engine.boundary.db.base
System role: Social profile persistence
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backup_engine.boundary.db.base import Base, TimestampMixin, UUIDMixin


class SocialProfileModel(Base, UUIDMixin, TimestampMixin):
    """Platform account linked to an owner, unique per (user, platform, username)."""

    __tablename__ = "social_profiles"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "platform", "platform_username", name="uq_social_profiles_user_platform_username"
        ),
    )

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    platform_username: Mapped[str] = mapped_column(String(255), nullable=False)
    platform_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    added_via: Mapped[str | None] = mapped_column(String(32), nullable=True)
