"""
Backup (artifact) ORM model.

The normalized snapshot produced by either pipeline. Records live in the
`data` JSON document; media binaries live in blob storage and are indexed
by MediaFileModel rows.

Dependencies: sqlalchemy, backup_engine.boundary.db.base
System role: Artifact persistence
"""

import uuid

from sqlalchemy import JSON, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from backup_engine.boundary.db.base import Base, TimestampMixin, UUIDMixin


class BackupModel(Base, UUIDMixin, TimestampMixin):
    """
    Backup row.

    Attributes:
        user_id: Owner identifier
        social_profile_id: Linked social profile, if resolved
        backup_type: "full_archive" or "snapshot"
        source: "archive" or "scrape"
        data: Normalized records plus profile, stats, scrape and storage blocks
        archive_file_path: Object key of the stored original archive
            (column added late; some deployments lack it)
    """

    __tablename__ = "backups"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    social_profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("social_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )

    backup_type: Mapped[str] = mapped_column(String(32), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)

    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Deferred with raiseload: lagging deployments lack the column, so it is
    # only ever read or written through explicit statements.
    archive_file_path: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
        deferred=True,
        deferred_raiseload=True,
    )
