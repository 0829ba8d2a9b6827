"""
Test suite for the metadata, parsing and reference rewriting tasks.

System role: Verification of the archive ingestion stages that need no database
"""

import pytest

from backup_engine.core.archive_ingestion.archive_reader import ArchiveReader
from backup_engine.core.archive_ingestion.models import UploadedMedia
from backup_engine.core.archive_ingestion.tasks import (
    NOT_AN_ARCHIVE_MESSAGE,
    ArchiveParsingTask,
    MetadataBucket,
    MetadataExtractionTask,
    UrlRewriteTask,
    build_file_index,
    media_file_name,
)
from backup_engine.core.exceptions import ArchiveFormatError, CancellationSignal, ResourceLimitError


async def _always_active() -> None:
    return None


def _empty_files() -> dict:
    return {bucket: [] for bucket in MetadataBucket}


def _uploaded(path: str, media_type: str = "tweets_media") -> UploadedMedia:
    return UploadedMedia(
        file_path=path,
        file_name=path.rsplit("/", 1)[-1],
        file_size=10,
        mime_type="image/jpeg",
        media_type=media_type,
    )


class TestMetadataExtractionTask:
    """Test category lookup and the metadata byte ceiling."""

    async def test_groups_files_by_category_in_part_order(self, build_zip, export_js):
        # Arrange
        path = build_zip(
            {
                "data/tweets-part1.js": export_js("tweets", [{"tweet": {"id_str": "2"}}]),
                "data/tweets.js": export_js("tweets", [{"tweet": {"id_str": "1"}}]),
                "data/direct_messages.js": export_js("dmConversation", []),
                "data/unrelated.js": "ignored",
            }
        )
        task = MetadataExtractionTask(max_entry_bytes=1024)

        # Act
        with ArchiveReader(path, max_entries=10) as reader:
            files = await task.extract(reader, _always_active)

        # Assert
        assert len(files[MetadataBucket.TWEETS]) == 2
        assert '"1"' in files[MetadataBucket.TWEETS][0]
        assert '"2"' in files[MetadataBucket.TWEETS][1]
        assert len(files[MetadataBucket.DIRECT_MESSAGES]) == 1
        assert files[MetadataBucket.ACCOUNT] == []

    async def test_metadata_ceiling(self, build_zip):
        # Arrange
        path = build_zip({"data/account.js": "x" * 100})
        task = MetadataExtractionTask(max_entry_bytes=10)

        # Act / Assert
        with ArchiveReader(path, max_entries=10) as reader:
            with pytest.raises(ResourceLimitError) as exc_info:
                await task.extract(reader, _always_active)
        assert exc_info.value.limit_name == "max_metadata_entry_bytes"

    async def test_cancellation_between_files(self, build_zip):
        # Arrange
        path = build_zip({"data/account.js": "x"})
        task = MetadataExtractionTask(max_entry_bytes=10)

        async def cancelled() -> None:
            raise CancellationSignal()

        # Act / Assert
        with ArchiveReader(path, max_entries=10) as reader:
            with pytest.raises(CancellationSignal):
                await task.extract(reader, cancelled)


class TestArchiveParsingTask:
    """Test parsing into a NormalizedArchive."""

    def test_parses_every_category(self, sample_export_files):
        # Arrange
        files = _empty_files()
        files[MetadataBucket.ACCOUNT] = [sample_export_files["data/account.js"]]
        files[MetadataBucket.TWEETS] = [sample_export_files["data/tweets.js"]]
        files[MetadataBucket.FOLLOWERS] = [sample_export_files["data/follower.js"]]
        files[MetadataBucket.FOLLOWING] = [sample_export_files["data/following.js"]]
        files[MetadataBucket.LIKES] = [sample_export_files["data/like.js"]]
        files[MetadataBucket.DIRECT_MESSAGES] = [sample_export_files["data/direct-messages.js"]]

        # Act
        archive = ArchiveParsingTask().parse(files, fallback_username="fallback")

        # Assert
        assert archive.account.username == "alice"
        assert [t.id for t in archive.tweets] == ["1001", "1002"]
        assert archive.tweets[0].tweet_url == "https://x.com/alice/status/1001"
        assert archive.followers[0].user_id == "7"
        assert archive.following[0].username == "carol"
        assert archive.likes[0].tweet_id == "3003"
        stats = archive.stats
        assert (stats.tweets, stats.followers, stats.following, stats.likes, stats.dms) == (2, 1, 1, 1, 1)

    def test_tweets_only_export_uses_fallback_username(self, export_js):
        # Arrange
        files = _empty_files()
        files[MetadataBucket.TWEETS] = [export_js("tweets", [{"tweet": {"id_str": "5"}}, {"tweet": {}}])]

        # Act
        archive = ArchiveParsingTask().parse(files, fallback_username="bob")

        # Assert
        assert archive.account is None
        assert len(archive.tweets) == 1
        assert archive.tweets[0].tweet_url == "https://x.com/bob/status/5"

    def test_missing_core_categories_is_fatal(self, export_js):
        # Arrange
        files = _empty_files()
        files[MetadataBucket.LIKES] = [export_js("like", [])]

        # Act / Assert
        with pytest.raises(ArchiveFormatError) as exc_info:
            ArchiveParsingTask().parse(files, fallback_username=None)
        assert exc_info.value.message == NOT_AN_ARCHIVE_MESSAGE
        assert exc_info.value.public is True


class TestUrlRewriteTask:
    """Test media reference rewriting by file name."""

    def test_media_file_name(self):
        assert media_file_name("https://pbs.twimg.com/media/AbC123.jpg") == "AbC123.jpg"
        assert media_file_name("https://example.com/page") is None
        assert media_file_name(None) is None

    def test_index_prefers_exact_names(self):
        # Arrange
        uploads = [_uploaded("u/tweets_media/1001-AbC.jpg"), _uploaded("u/tweets_media/AbC.jpg")]

        # Act
        index = build_file_index(uploads)

        # Assert
        assert index["AbC.jpg"] == "u/tweets_media/AbC.jpg"
        assert index["1001-AbC.jpg"] == "u/tweets_media/1001-AbC.jpg"

    def test_rewrites_tweet_and_message_media(self, sample_export_files, export_js):
        # Arrange
        files = _empty_files()
        files[MetadataBucket.TWEETS] = [sample_export_files["data/tweets.js"]]
        files[MetadataBucket.DIRECT_MESSAGES] = [
            export_js(
                "dmConversation",
                [
                    {
                        "dmConversation": {
                            "conversationId": "c1",
                            "messages": [
                                {"messageCreate": {"text": "pic", "mediaUrls": ["https://ton.twitter.com/dm/9/Zz.png"]}}
                            ],
                        }
                    }
                ],
            )
        ]
        archive = ArchiveParsingTask().parse(files, fallback_username="alice")
        uploads = [
            _uploaded("user-1/tweets_media/1001-AbC123.jpg"),
            _uploaded("user-1/direct_messages_media/9-Zz.png", "direct_messages_media"),
        ]

        # Act
        tweets, conversations = UrlRewriteTask().rewrite(archive.tweets, archive.direct_messages, uploads)

        # Assert
        expected = "/api/platforms/twitter/media?path=user-1%2Ftweets_media%2F1001-AbC123.jpg"
        media = tweets[0].extended_entities.media[0]
        assert media.media_url == expected
        assert media.media_url_https == expected
        assert tweets[0].media[0].media_url == expected
        assert archive.tweets[0].media[0].media_url == "http://pbs.twimg.com/media/AbC123.jpg"
        assert conversations[0].messages[0].media[0].url == (
            "/api/platforms/twitter/media?path=user-1%2Fdirect_messages_media%2F9-Zz.png"
        )

    def test_resolve_profile_images_by_hint(self):
        # Arrange
        uploads = [
            _uploaded("u/profile_media/42-header.jpg", "profile_media"),
            _uploaded("u/profile_media/42-avatar.jpg", "profile_media"),
        ]

        # Act
        avatar, header = UrlRewriteTask().resolve_profile_images(None, uploads)

        # Assert
        assert avatar.endswith("42-avatar.jpg")
        assert header.endswith("42-header.jpg")

    def test_single_profile_file_is_avatar_only(self):
        avatar, header = UrlRewriteTask().resolve_profile_images(
            None, [_uploaded("u/profile_media/42-x.jpg", "profile_media")]
        )
        assert avatar is not None
        assert header is None
