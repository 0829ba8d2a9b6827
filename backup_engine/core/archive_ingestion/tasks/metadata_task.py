"""
Metadata extraction task.

Locates the export's data/*.js metadata files by category and reads each
one under the metadata byte ceiling.

Dependencies: re (stdlib), archive_reader
System role: Second stage of archive ingestion (metadata text extraction)
"""

import enum
import logging
import re
from typing import Awaitable, Callable

from ..archive_reader import ArchiveReader

logger = logging.getLogger(__name__)

EnsureActive = Callable[[], Awaitable[None]]


class MetadataBucket(str, enum.Enum):
    ACCOUNT = "account"
    TWEETS = "tweets"
    FOLLOWERS = "followers"
    FOLLOWING = "following"
    LIKES = "likes"
    DIRECT_MESSAGES = "direct_messages"


METADATA_FILE_PATTERNS: dict[MetadataBucket, tuple[re.Pattern[str], ...]] = {
    MetadataBucket.ACCOUNT: (re.compile(r"^data/account(?:-part\d+)?\.js$", re.IGNORECASE),),
    MetadataBucket.TWEETS: (re.compile(r"^data/tweets?(?:-part\d+)?\.js$", re.IGNORECASE),),
    MetadataBucket.FOLLOWERS: (re.compile(r"^data/followers?(?:-part\d+)?\.js$", re.IGNORECASE),),
    MetadataBucket.FOLLOWING: (re.compile(r"^data/following(?:-part\d+)?\.js$", re.IGNORECASE),),
    MetadataBucket.LIKES: (re.compile(r"^data/likes?(?:-part\d+)?\.js$", re.IGNORECASE),),
    MetadataBucket.DIRECT_MESSAGES: (
        re.compile(r"^data/direct[-_]messages(?:-part\d+)?\.js$", re.IGNORECASE),
    ),
}

MetadataFiles = dict[MetadataBucket, list[str]]


class MetadataExtractionTask:
    """Read the text of every metadata file, grouped by category."""

    def __init__(self, max_entry_bytes: int) -> None:
        """
        Args:
            max_entry_bytes: Ceiling on the uncompressed size of one data/*.js file
        """
        self._max_entry_bytes = max_entry_bytes

    async def extract(self, reader: ArchiveReader, ensure_active: EnsureActive) -> MetadataFiles:
        """
        Read metadata files in part order.

        Args:
            reader: Open archive reader
            ensure_active: Cancellation checkpoint awaited before each file

        Returns:
            MetadataFiles: Non-empty file contents per category

        Raises:
            ResourceLimitError: A metadata file exceeds the byte ceiling
            CancellationSignal: Cancellation requested between files
        """
        files: MetadataFiles = {bucket: [] for bucket in MetadataBucket}

        for bucket, patterns in METADATA_FILE_PATTERNS.items():
            for entry in reader.match(patterns):
                await ensure_active()
                content = reader.read(entry, self._max_entry_bytes, "max_metadata_entry_bytes")
                text = content.decode("utf-8", errors="replace")
                if text:
                    files[bucket].append(text)

        logger.info(
            f"{__name__}:extract - Metadata files read",
            extra={bucket.value: len(contents) for bucket, contents in files.items()},
        )
        return files
