"""
Archive parsing task.

Decodes the metadata files with the quirky-JSON extractor and maps every
item onto its typed record.

Dependencies: quirky_json, normalizers
System role: Third stage of archive ingestion (metadata -> records)
"""

import logging
from typing import Any, Callable, TypeVar

from backup_engine.core.exceptions import ArchiveFormatError

from ..models import NormalizedArchive
from ..normalizers import (
    normalize_account,
    normalize_connection,
    normalize_conversation,
    normalize_like,
    normalize_tweet,
)
from ..quirky_json import parse_archive_js
from .metadata_task import MetadataBucket, MetadataFiles

logger = logging.getLogger(__name__)

NOT_AN_ARCHIVE_MESSAGE = (
    "This doesn't look like a Twitter archive. Upload the ZIP file downloaded from Twitter."
)

RecordT = TypeVar("RecordT")


def _items(contents: list[str]) -> list[Any]:
    return [item for content in contents for item in parse_archive_js(content)]


def _collect(items: list[Any], normalize: Callable[[Any], RecordT | None]) -> list[RecordT]:
    return [record for record in map(normalize, items) if record is not None]


class ArchiveParsingTask:
    """Turn metadata file contents into a NormalizedArchive."""

    def parse(self, files: MetadataFiles, fallback_username: str | None) -> NormalizedArchive:
        """
        Parse all categories.

        Args:
            files: Metadata contents per category
            fallback_username: Handle used when account.js has none

        Returns:
            NormalizedArchive

        Raises:
            ArchiveFormatError: Neither account nor tweet files were found
        """
        if not files[MetadataBucket.ACCOUNT] and not files[MetadataBucket.TWEETS]:
            raise ArchiveFormatError(NOT_AN_ARCHIVE_MESSAGE)

        accounts = _collect(_items(files[MetadataBucket.ACCOUNT]), normalize_account)
        account = accounts[0] if accounts else None

        username = (account.username if account else None) or fallback_username
        display_name = (account.display_name if account else None) or fallback_username
        avatar_url = account.avatar_media_url if account else None

        archive = NormalizedArchive(
            account=account,
            tweets=_collect(
                _items(files[MetadataBucket.TWEETS]),
                lambda item: normalize_tweet(item, username, display_name, avatar_url),
            ),
            followers=_collect(
                _items(files[MetadataBucket.FOLLOWERS]),
                lambda item: normalize_connection(item, "follower"),
            ),
            following=_collect(
                _items(files[MetadataBucket.FOLLOWING]),
                lambda item: normalize_connection(item, "following"),
            ),
            likes=_collect(_items(files[MetadataBucket.LIKES]), normalize_like),
            direct_messages=_collect(_items(files[MetadataBucket.DIRECT_MESSAGES]), normalize_conversation),
        )

        logger.info(
            f"{__name__}:parse - Archive parsed",
            extra={"username": username, **archive.stats.model_dump(exclude_none=True)},
        )
        return archive
