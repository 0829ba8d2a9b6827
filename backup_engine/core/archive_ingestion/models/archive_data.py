"""
Intermediate results passed between archive ingestion tasks.

Dependencies: pydantic
System role: Data structures for the archive ingestion pipeline
"""

from typing import Any

from pydantic import BaseModel, Field

from .records import (
    ArchiveAccount,
    ArchiveConversation,
    ArchiveLike,
    ArchiveTweet,
    SocialConnection,
)


class ArchiveStats(BaseModel):
    """Per-category counts shown on the backup."""

    tweets: int = 0
    followers: int = 0
    following: int = 0
    likes: int = 0
    dms: int = Field(default=0, description="Total messages across all conversations")
    media_files: int | None = None


class NormalizedArchive(BaseModel):
    """Every record recovered from the export metadata files."""

    account: ArchiveAccount | None = None
    tweets: list[ArchiveTweet] = Field(default_factory=list)
    followers: list[SocialConnection] = Field(default_factory=list)
    following: list[SocialConnection] = Field(default_factory=list)
    likes: list[ArchiveLike] = Field(default_factory=list)
    direct_messages: list[ArchiveConversation] = Field(default_factory=list)

    @property
    def stats(self) -> ArchiveStats:
        return ArchiveStats(
            tweets=len(self.tweets),
            followers=len(self.followers),
            following=len(self.following),
            likes=len(self.likes),
            dms=sum(c.message_count for c in self.direct_messages),
        )

    def records_data(self) -> dict[str, Any]:
        """Record collections in the backup data document shape."""
        return {
            "tweets": [t.to_data() for t in self.tweets],
            "followers": [f.to_data() for f in self.followers],
            "following": [f.to_data() for f in self.following],
            "likes": [like.to_data() for like in self.likes],
            "direct_messages": [c.to_data() for c in self.direct_messages],
        }


class UploadedMedia(BaseModel):
    """A media entry stored in blob storage and recorded for the backup."""

    file_path: str
    file_name: str
    file_size: int
    mime_type: str
    media_type: str


class MediaUploadResult(BaseModel):
    media_files: list[UploadedMedia] = Field(default_factory=list)
    uploaded_count: int = 0
    skipped_count: int = 0
    total_entries: int = 0


class ArchiveProfile(BaseModel):
    """Profile block stored on an archive backup."""

    username: str
    display_name: str = Field(serialization_alias="displayName")
    profile_image_url: str | None = Field(default=None, serialization_alias="profileImageUrl")
    cover_image_url: str | None = Field(default=None, serialization_alias="coverImageUrl")

    def to_data(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
