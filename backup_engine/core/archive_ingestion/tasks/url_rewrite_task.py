"""
Media reference rewriting task.

After media is re-hosted, tweet and direct-message media URLs that still
point at the platform CDN are replaced by internal media URLs of the
uploaded copies. Matching is by file name: archive media files are named
`<tweet_id>-<cdn file name>`, so uploads are indexed both by full name and
by the part after the first dash.

Dependencies: backup_engine.core.media_url
System role: Fifth stage of archive ingestion (reference rewriting)
"""

import logging
import re
from typing import Iterable

from backup_engine.core.media_url import build_internal_media_url

from ..models import (
    ArchiveAccount,
    ArchiveConversation,
    ArchiveTweet,
    TweetMedia,
    UploadedMedia,
)

logger = logging.getLogger(__name__)

_MEDIA_FILE_NAME = re.compile(r"/([^/]+\.(jpg|jpeg|png|gif|mp4|webp))$", re.IGNORECASE)
_STEM = re.compile(r"\.[^.]+$")

PROFILE_MEDIA_TYPE = "profile_media"
_AVATAR_HINTS = ("profile_image", "avatar", "400x400")
_HEADER_HINTS = ("header", "banner", "cover")


def media_file_name(url: str | None) -> str | None:
    """File name at the end of a media URL, when it has a known media extension."""
    if not url:
        return None
    match = _MEDIA_FILE_NAME.search(url)
    return match.group(1) if match else None


def build_file_index(media_files: Iterable[UploadedMedia]) -> dict[str, str]:
    """Map file name (and dash-suffix) to storage path; exact names win."""
    index: dict[str, str] = {}
    uploads = list(media_files)
    for media in uploads:
        _, dash, suffix = media.file_name.partition("-")
        if dash and suffix:
            index.setdefault(suffix, media.file_path)
    for media in uploads:
        index[media.file_name] = media.file_path
    return index


class UrlRewriteTask:
    """Rewrite media URLs to internal ones and resolve profile images."""

    def _rewrite_media(self, media: list[TweetMedia] | None, index: dict[str, str]) -> tuple[list[TweetMedia] | None, int]:
        if not media:
            return media, 0
        rewritten: list[TweetMedia] = []
        count = 0
        for item in media:
            name = media_file_name(item.media_url) or media_file_name(item.media_url_https) or media_file_name(item.url)
            path = index.get(name) if name else None
            if path is None:
                rewritten.append(item)
                continue
            internal = build_internal_media_url(path)
            rewritten.append(
                item.model_copy(update={"media_url": internal, "media_url_https": internal, "url": internal})
            )
            count += 1
        return rewritten, count

    def rewrite(
        self,
        tweets: list[ArchiveTweet],
        conversations: list[ArchiveConversation],
        media_files: list[UploadedMedia],
    ) -> tuple[list[ArchiveTweet], list[ArchiveConversation]]:
        """
        Return copies of tweets and conversations with internal media URLs.

        Args:
            tweets: Normalized tweets
            conversations: Normalized DM conversations
            media_files: Uploaded media of the backup

        Returns:
            (tweets, conversations) with matching media rewritten
        """
        index = build_file_index(media_files)
        if not index:
            return tweets, conversations

        rewritten_count = 0
        new_tweets: list[ArchiveTweet] = []
        for tweet in tweets:
            update: dict = {}
            for field in ("extended_entities", "entities"):
                entities = getattr(tweet, field)
                if entities is not None and entities.media:
                    media, count = self._rewrite_media(entities.media, index)
                    if count:
                        update[field] = entities.model_copy(update={"media": media})
                        rewritten_count += count
            media, count = self._rewrite_media(tweet.media, index)
            if count:
                update["media"] = media
                rewritten_count += count
            new_tweets.append(tweet.model_copy(update=update) if update else tweet)

        new_conversations: list[ArchiveConversation] = []
        for conversation in conversations:
            messages = []
            changed = False
            for message in conversation.messages:
                media = []
                for item in message.media:
                    name = media_file_name(item.url)
                    path = index.get(name) if name else None
                    if path is None:
                        media.append(item)
                    else:
                        media.append(item.model_copy(update={"url": build_internal_media_url(path)}))
                        changed = True
                        rewritten_count += 1
                messages.append(message.model_copy(update={"media": media}))
            new_conversations.append(
                conversation.model_copy(update={"messages": messages}) if changed else conversation
            )

        logger.info(
            f"{__name__}:rewrite - Media references rewritten",
            extra={"rewritten": rewritten_count, "indexed_files": len(index)},
        )
        return new_tweets, new_conversations

    def resolve_profile_images(
        self,
        account: ArchiveAccount | None,
        media_files: list[UploadedMedia],
    ) -> tuple[str | None, str | None]:
        """
        Internal URLs for the avatar and header among uploaded profile media.

        The exported CDN URLs are matched by file name first; otherwise the
        avatar falls back to a name hint or the first profile file, and the
        header (only when there are at least two files) to a name hint or
        any file other than the avatar.

        Returns:
            (profile_image_url, cover_image_url), each None when unresolved
        """
        profile_files = [m for m in media_files if m.media_type == PROFILE_MEDIA_TYPE]

        def by_cdn_url(cdn_url: str | None) -> str | None:
            if not cdn_url:
                return None
            cdn_name = cdn_url.rsplit("/", 1)[-1].split("?", 1)[0]
            if not cdn_name:
                return None
            stem = _STEM.sub("", cdn_name)
            for media in profile_files:
                if media.file_name == cdn_name or (stem and stem in media.file_name):
                    return build_internal_media_url(media.file_path)
            return None

        def by_hint(hints: tuple[str, ...]) -> UploadedMedia | None:
            return next((m for m in profile_files if any(h in m.file_name for h in hints)), None)

        avatar = by_cdn_url(account.avatar_media_url if account else None)
        header = by_cdn_url(account.header_media_url if account else None)

        if avatar is None and profile_files:
            avatar_file = by_hint(_AVATAR_HINTS) or profile_files[0]
            avatar = build_internal_media_url(avatar_file.file_path)

        if header is None and len(profile_files) > 1:
            header_file = by_hint(_HEADER_HINTS) or next(
                (m for m in profile_files if build_internal_media_url(m.file_path) != avatar),
                None,
            )
            if header_file is not None:
                header = build_internal_media_url(header_file.file_path)

        return avatar, header
