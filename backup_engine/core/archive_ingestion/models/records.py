"""
Typed archive record variants.

Each export category is one pydantic model tagged by `kind`. Raw items from
the export are mapped onto these models by `normalizers.py`; fields not
declared here are dropped. Serialized with `to_data()` into the shape stored
in the backup's data document (camelCase link fields kept for the viewer).

Dependencies: pydantic
System role: Domain records produced by the archive parsing stage
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class ArchiveRecord(BaseModel):
    """Base for archive records: unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_data(self) -> dict[str, Any]:
        """JSON-compatible dict for the backup data document."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"kind"})


class ArchiveAccount(ArchiveRecord):
    kind: Literal["account"] = "account"
    account_id: str | None = None
    username: str | None = None
    display_name: str | None = None
    avatar_media_url: str | None = None
    header_media_url: str | None = None
    created_at: str | None = None


class TweetMedia(ArchiveRecord):
    """Photo, video or GIF attached to a tweet."""

    id_str: str | None = None
    type: str | None = None
    media_url: str | None = None
    media_url_https: str | None = None
    url: str | None = None
    expanded_url: str | None = None
    display_url: str | None = None
    video_info: dict[str, Any] | None = None


class TweetEntities(ArchiveRecord):
    hashtags: list[dict[str, Any]] | None = None
    user_mentions: list[dict[str, Any]] | None = None
    urls: list[dict[str, Any]] | None = None
    media: list[TweetMedia] | None = None


class TweetAuthor(ArchiveRecord):
    username: str | None = None
    name: str | None = None
    profile_image_url: str | None = Field(default=None, alias="profileImageUrl")


class ArchiveTweet(ArchiveRecord):
    kind: Literal["tweet"] = "tweet"
    id: str
    id_str: str
    text: str | None = None
    full_text: str | None = None
    created_at: str | None = None
    retweet_count: int | None = None
    favorite_count: int | None = None
    reply_count: int | None = None
    quote_count: int | None = None
    conversation_id_str: str | None = None
    in_reply_to_status_id: str | None = None
    in_reply_to_status_id_str: str | None = None
    in_reply_to_user_id: str | None = None
    in_reply_to_user_id_str: str | None = None
    in_reply_to_screen_name: str | None = None
    extended_entities: TweetEntities | None = None
    entities: TweetEntities | None = None
    media: list[TweetMedia] | None = None
    tweet_url: str | None = None
    author: TweetAuthor = Field(default_factory=TweetAuthor)


class SocialConnection(ArchiveRecord):
    """A follower or followed account."""

    kind: Literal["follower", "following"]
    user_id: str
    username: str | None = None
    name: str | None = None
    user_link: str = Field(alias="userLink")


class ArchiveLike(ArchiveRecord):
    kind: Literal["like"] = "like"
    tweet_id: str
    full_text: str | None = None
    expanded_url: str | None = None


class DirectMessageMedia(ArchiveRecord):
    url: str


class DirectMessage(ArchiveRecord):
    text: str = ""
    created_at: str | None = None
    sender_id: str | None = None
    recipient_id: str | None = None
    sender_link: str | None = Field(default=None, alias="senderLink")
    recipient_link: str | None = Field(default=None, alias="recipientLink")
    media: list[DirectMessageMedia] = Field(default_factory=list)


class ArchiveConversation(ArchiveRecord):
    kind: Literal["conversation"] = "conversation"
    conversation_id: str
    messages: list[DirectMessage] = Field(default_factory=list)
    message_count: int = 0


ArchiveItem = Annotated[
    Union[ArchiveAccount, ArchiveTweet, SocialConnection, ArchiveLike, ArchiveConversation],
    Field(discriminator="kind"),
]
