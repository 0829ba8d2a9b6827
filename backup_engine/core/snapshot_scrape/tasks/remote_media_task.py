"""
Remote media re-hosting task.

Downloads the profile photo, the cover photo and tweet media referenced by a
scrape, stores them in blob storage, records them as media files of the
snapshot backup and hands back internal URLs for the stored copies. A file
that cannot be fetched, stored or recorded is logged and skipped.

Dependencies: backup_engine.boundary.scraping.media_fetcher, backup_engine.boundary.aws
System role: Media stage of the snapshot scrape pipeline
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable
from uuid import UUID

from backup_engine.application.services.backup_service import BackupService
from backup_engine.boundary.aws.s3_blob_store import BlobStore
from backup_engine.boundary.scraping.media_fetcher import RemoteMediaFetcher
from backup_engine.boundary.scraping.provider import ScrapedMedia, ScrapedTweet
from backup_engine.core.media_url import build_internal_media_url

logger = logging.getLogger(__name__)

PROFILE_PHOTO_NAME = "profile_photo_400x400.jpg"
COVER_PHOTO_NAME = "cover_photo.jpg"
PROFILE_MEDIA_TYPE = "profile_media"
SCRAPED_MEDIA_TYPE = "scraped_media"
DEFAULT_PROFILE_MIME_TYPE = "image/jpeg"

EnsureActive = Callable[[], Awaitable[None]]
OnItem = Callable[[], Awaitable[None]]


def scraped_mime_type(media_type: str) -> str:
    if media_type == "photo":
        return "image/jpeg"
    if media_type == "video":
        return "video/mp4"
    return "image/gif"


def scraped_file_name(url: str, tweet_id: str, media_type: str) -> str:
    """Last URL segment without query string, or `<tweet_id>-<type>`."""
    name = url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]
    return name or f"{tweet_id}-{media_type}"


@dataclass
class ProfileMediaResult:
    profile_image_url: str | None = None
    cover_image_url: str | None = None


class RemoteMediaTask:
    """Re-host remote media for a snapshot backup."""

    def __init__(
        self,
        blob_store: BlobStore,
        backup_service: BackupService,
        fetcher: RemoteMediaFetcher,
    ) -> None:
        self._blob_store = blob_store
        self._backup_service = backup_service
        self._fetcher = fetcher

    async def _store(
        self,
        url: str,
        storage_path: str,
        file_name: str,
        mime_type: str | None,
        record: dict,
    ) -> str | None:
        fetched = await self._fetcher.fetch(url)
        if fetched is None:
            return None

        content_type = mime_type or fetched.content_type or DEFAULT_PROFILE_MIME_TYPE
        await self._blob_store.put(storage_path, fetched.data, content_type)
        await self._backup_service.record_media(
            {
                **record,
                "file_path": storage_path,
                "file_name": file_name,
                "file_size": fetched.size,
                "mime_type": content_type,
            }
        )
        return storage_path

    async def upload_profile_media(
        self,
        user_id: str,
        backup_id: UUID,
        profile_image_url: str | None,
        cover_image_url: str | None,
        ensure_active: EnsureActive,
        on_item: OnItem | None = None,
    ) -> ProfileMediaResult:
        """
        Re-host the profile and cover photos.

        Returns:
            ProfileMediaResult with internal URLs of the stored copies
        """
        result = ProfileMediaResult()
        targets = (
            ("profile_image_url", profile_image_url, PROFILE_PHOTO_NAME),
            ("cover_image_url", cover_image_url, COVER_PHOTO_NAME),
        )
        for attribute, source_url, file_name in targets:
            if not source_url:
                continue
            await ensure_active()
            storage_path = f"{user_id}/profile_media/{backup_id}/{file_name}"
            try:
                stored = await self._store(
                    source_url,
                    storage_path,
                    file_name,
                    None,
                    {"user_id": user_id, "backup_id": backup_id, "media_type": PROFILE_MEDIA_TYPE},
                )
            except Exception as e:
                stored = None
                logger.error(
                    f"{__name__}:upload_profile_media - {type(e).__name__}: {e}",
                    extra={"backup_id": str(backup_id), "file_name": file_name},
                )
            if stored:
                setattr(result, attribute, build_internal_media_url(stored))
            if on_item:
                await on_item()
        return result

    async def upload_tweet_media(
        self,
        user_id: str,
        backup_id: UUID,
        tweets: list[ScrapedTweet],
        ensure_active: EnsureActive,
        on_item: OnItem | None = None,
    ) -> tuple[list[ScrapedTweet], int]:
        """
        Re-host media attached to timeline items.

        The same stored object is fetched once per run even when several
        items reference it.

        Args:
            user_id: Owner identifier (storage path prefix)
            backup_id: Snapshot backup the media belongs to
            tweets: Timeline items (tweets and replies)
            ensure_active: Cancellation checkpoint awaited before each file
            on_item: Called after each media item, whatever its outcome

        Returns:
            (tweets with rewritten media URLs, number of media items rehosted)

        Raises:
            CancellationSignal: Cancellation requested between files
        """
        stored_paths: dict[str, str] = {}
        rehosted = 0
        failed = 0
        rewritten: list[ScrapedTweet] = []

        for tweet in tweets:
            if not tweet.media:
                rewritten.append(tweet)
                continue

            media_items: list[ScrapedMedia] = []
            for media in tweet.media:
                await ensure_active()
                storage_path = await self._tweet_media_path(user_id, backup_id, tweet.id, media, stored_paths)
                if storage_path is None:
                    failed += 1
                    media_items.append(media)
                else:
                    internal = build_internal_media_url(storage_path)
                    media_items.append(media.model_copy(update={"media_url": internal, "media_url_https": internal}))
                    rehosted += 1
                if on_item:
                    await on_item()
            rewritten.append(tweet.model_copy(update={"media": media_items}))

        logger.info(
            f"{__name__}:upload_tweet_media - Tweet media processed",
            extra={"backup_id": str(backup_id), "rehosted": rehosted, "failed": failed},
        )
        return rewritten, rehosted

    async def _tweet_media_path(
        self,
        user_id: str,
        backup_id: UUID,
        tweet_id: str,
        media: ScrapedMedia,
        stored_paths: dict[str, str],
    ) -> str | None:
        source_url = media.media_url
        if not source_url:
            return None
        if source_url in stored_paths:
            return stored_paths[source_url]

        file_name = scraped_file_name(source_url, tweet_id, media.type)
        storage_path = f"{user_id}/scraped_media/{file_name}"
        try:
            stored = await self._store(
                source_url,
                storage_path,
                file_name,
                scraped_mime_type(media.type),
                {
                    "user_id": user_id,
                    "backup_id": backup_id,
                    "media_type": SCRAPED_MEDIA_TYPE,
                    "tweet_id": tweet_id,
                },
            )
        except Exception as e:
            logger.error(
                f"{__name__}:_tweet_media_path - {type(e).__name__}: {e}",
                extra={"backup_id": str(backup_id), "tweet_id": tweet_id},
            )
            return None

        if stored:
            stored_paths[source_url] = stored
        return stored
