"""
Models for the archive ingestion pipeline.

Exports: archive record variants, NormalizedArchive, ArchiveStats,
ArchiveProfile, UploadedMedia, MediaUploadResult
"""

from .archive_data import (
    ArchiveProfile,
    ArchiveStats,
    MediaUploadResult,
    NormalizedArchive,
    UploadedMedia,
)
from .records import (
    ArchiveAccount,
    ArchiveConversation,
    ArchiveItem,
    ArchiveLike,
    ArchiveRecord,
    ArchiveTweet,
    DirectMessage,
    DirectMessageMedia,
    SocialConnection,
    TweetAuthor,
    TweetEntities,
    TweetMedia,
)

__all__ = [
    "ArchiveAccount",
    "ArchiveConversation",
    "ArchiveItem",
    "ArchiveLike",
    "ArchiveProfile",
    "ArchiveRecord",
    "ArchiveStats",
    "ArchiveTweet",
    "DirectMessage",
    "DirectMessageMedia",
    "MediaUploadResult",
    "NormalizedArchive",
    "SocialConnection",
    "TweetAuthor",
    "TweetEntities",
    "TweetMedia",
    "UploadedMedia",
]
