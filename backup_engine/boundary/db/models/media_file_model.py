"""
Media file ORM model.

Metadata for one stored binary object belonging to a backup. Uniqueness on
(backup_id, file_path) is what makes media extraction resumable.

Dependencies: sqlalchemy, backup_engine.boundary.db.base
System role: Media record persistence
"""

import uuid

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from backup_engine.boundary.db.base import Base, TimestampMixin, UUIDMixin

ARCHIVE_MEDIA_TYPE = "archive_file"
OPTIONAL_MEDIA_FILE_COLUMNS = frozenset(
    {"file_name", "file_size", "mime_type", "media_type", "tweet_id"}
)


class MediaFileModel(Base, UUIDMixin, TimestampMixin):
    """
    Media record row.

    Attributes:
        user_id: Owner identifier
        backup_id: Owning backup (cascade delete)
        file_path: Object key in blob storage
        file_name: Original file name
        file_size: Stored byte size
        mime_type: Content type used for the upload
        media_type: Category tag (tweets_media, profile_media, archive_file, ...)
        tweet_id: Source tweet for scraped media

    Constraints:
        (backup_id, file_path): UNIQUE
    """

    __tablename__ = "media_files"
    __table_args__ = (
        UniqueConstraint("backup_id", "file_path", name="uq_media_files_backup_path"),
    )

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    backup_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("backups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    file_path: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    file_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    file_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    media_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tweet_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
