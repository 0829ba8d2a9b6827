"""
Normalization of raw export items into typed archive records.

Each `normalize_*` function takes one untyped item as parsed from a
data/*.js file and returns the typed record, or None when the item lacks
its mandatory identifier or does not validate. Invalid items are logged
and skipped; they never fail the whole archive.

Dependencies: pydantic, backup_engine.core.archive_ingestion.models
System role: Boundary between the export's loose JSON and domain records
"""

import logging
import re
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .models.records import (
    ArchiveAccount,
    ArchiveConversation,
    ArchiveItem,
    ArchiveLike,
    ArchiveRecord,
    ArchiveTweet,
    SocialConnection,
)

logger = logging.getLogger(__name__)

_ITEM_ADAPTER: TypeAdapter[ArchiveRecord] = TypeAdapter(ArchiveItem)
_PROFILE_LINK = re.compile(r"^https?://(twitter\.com|x\.com)/([A-Za-z0-9_]+)/?$")

INTENT_USER_URL = "https://twitter.com/intent/user?user_id={user_id}"
TWEET_URL = "https://x.com/{username}/status/{tweet_id}"


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, str)):
        text = str(value).strip()
        return text or None
    return None


def _as_count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _dict_list(value: Any) -> list[dict[str, Any]] | None:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, dict)]


def _validate(candidate: dict[str, Any]) -> ArchiveRecord | None:
    try:
        return _ITEM_ADAPTER.validate_python(candidate)
    except PydanticValidationError as e:
        logger.warning(
            f"{__name__}:_validate - Dropping invalid {candidate.get('kind')} record: {e.error_count()} errors",
            extra={"record_kind": candidate.get("kind")},
        )
        return None


def username_from_profile_link(link: str | None) -> str | None:
    """Handle from `https://twitter.com/<handle>` or `https://x.com/<handle>`."""
    if not link:
        return None
    match = _PROFILE_LINK.match(link)
    return match.group(2) if match else None


def intent_link(user_id: str) -> str:
    return INTENT_USER_URL.format(user_id=user_id)


def normalize_account(item: Any) -> ArchiveAccount | None:
    """Map an `account.js` item (`{"account": {...}}`)."""
    raw = _as_dict(_as_dict(item).get("account"))
    if not raw:
        return None
    record = _validate(
        {
            "kind": "account",
            "account_id": _as_str(raw.get("accountId")),
            "username": _as_str(raw.get("username")),
            "display_name": _as_str(raw.get("accountDisplayName")),
            "avatar_media_url": _as_str(raw.get("avatarMediaUrl")),
            "header_media_url": _as_str(raw.get("headerMediaUrl")),
            "created_at": _as_str(raw.get("createdAt")),
        }
    )
    return record if isinstance(record, ArchiveAccount) else None


def _entities(value: Any) -> dict[str, Any] | None:
    raw = _as_dict(value)
    if not raw:
        return None
    return {
        "hashtags": _dict_list(raw.get("hashtags")),
        "user_mentions": _dict_list(raw.get("user_mentions")),
        "urls": _dict_list(raw.get("urls")),
        "media": _dict_list(raw.get("media")),
    }


def normalize_tweet(
    item: Any,
    username: str | None,
    display_name: str | None = None,
    avatar_url: str | None = None,
) -> ArchiveTweet | None:
    """
    Map a `tweets.js` item (`{"tweet": {...}}` or a bare tweet object).

    Args:
        item: Raw export item
        username: Account handle used for the author block and tweet URL
        display_name: Account display name
        avatar_url: Account avatar URL as exported

    Returns:
        ArchiveTweet | None: None when the item has no id
    """
    raw = _as_dict(item)
    tweet = _as_dict(raw.get("tweet")) or raw
    tweet_id = _as_str(tweet.get("id_str")) or _as_str(tweet.get("id"))
    if not tweet_id:
        return None

    extended = _entities(tweet.get("extended_entities"))
    entities = _entities(tweet.get("entities"))
    media = (extended or {}).get("media") or (entities or {}).get("media")
    text = tweet.get("full_text") or tweet.get("text")
    reply_status = _as_str(tweet.get("in_reply_to_status_id_str"))
    reply_user = _as_str(tweet.get("in_reply_to_user_id_str"))

    record = _validate(
        {
            "kind": "tweet",
            "id": tweet_id,
            "id_str": tweet_id,
            "text": text if isinstance(text, str) else None,
            "full_text": text if isinstance(text, str) else None,
            "created_at": _as_str(tweet.get("created_at")),
            "retweet_count": _as_count(tweet.get("retweet_count")),
            "favorite_count": _as_count(tweet.get("favorite_count")),
            "reply_count": _as_count(tweet.get("reply_count")),
            "quote_count": _as_count(tweet.get("quote_count")),
            "conversation_id_str": _as_str(tweet.get("conversation_id_str")),
            "in_reply_to_status_id": reply_status or _as_str(tweet.get("in_reply_to_status_id")),
            "in_reply_to_status_id_str": reply_status,
            "in_reply_to_user_id": reply_user or _as_str(tweet.get("in_reply_to_user_id")),
            "in_reply_to_user_id_str": reply_user,
            "in_reply_to_screen_name": _as_str(tweet.get("in_reply_to_screen_name")),
            "extended_entities": extended,
            "entities": entities,
            "media": media,
            "tweet_url": TWEET_URL.format(username=username, tweet_id=tweet_id) if username else None,
            "author": {
                "username": username,
                "name": display_name or username,
                "profileImageUrl": avatar_url,
            },
        }
    )
    return record if isinstance(record, ArchiveTweet) else None


def normalize_connection(item: Any, kind: str) -> SocialConnection | None:
    """
    Map a `follower.js` / `following.js` item.

    Args:
        item: Raw export item (`{"follower": {...}}` or `{"following": {...}}`)
        kind: "follower" or "following"
    """
    raw = _as_dict(_as_dict(item).get(kind))
    user_id = _as_str(raw.get("accountId"))
    if not user_id:
        return None

    link = _as_str(raw.get("userLink"))
    username = username_from_profile_link(link)
    record = _validate(
        {
            "kind": kind,
            "user_id": user_id,
            "username": username,
            "name": username,
            "userLink": link or intent_link(user_id),
        }
    )
    return record if isinstance(record, SocialConnection) else None


def normalize_like(item: Any) -> ArchiveLike | None:
    raw = _as_dict(_as_dict(item).get("like"))
    tweet_id = _as_str(raw.get("tweetId"))
    if not tweet_id:
        return None
    full_text = raw.get("fullText")
    record = _validate(
        {
            "kind": "like",
            "tweet_id": tweet_id,
            "full_text": full_text if isinstance(full_text, str) else None,
            "expanded_url": _as_str(raw.get("expandedUrl")),
        }
    )
    return record if isinstance(record, ArchiveLike) else None


def _message_media(message: dict[str, Any]) -> list[dict[str, str]]:
    raw_media = message.get("mediaUrls") or message.get("media") or []
    media: list[dict[str, str]] = []
    for entry in raw_media if isinstance(raw_media, list) else []:
        url = entry if isinstance(entry, str) else _as_dict(entry).get("url")
        if isinstance(url, str) and url:
            media.append({"url": url})
    return media


def normalize_conversation(item: Any) -> ArchiveConversation | None:
    """
    Map a direct-messages item (`{"dmConversation": {...}}`).

    Only `messageCreate` events become messages; join/leave events are
    dropped. message_count is the number of kept messages.
    """
    raw = _as_dict(_as_dict(item).get("dmConversation"))
    conversation_id = _as_str(raw.get("conversationId"))
    if not conversation_id:
        return None

    messages = []
    raw_messages = raw.get("messages")
    for event in raw_messages if isinstance(raw_messages, list) else []:
        message = _as_dict(_as_dict(event).get("messageCreate"))
        if not message:
            continue
        sender_id = _as_str(message.get("senderId"))
        recipient_id = _as_str(message.get("recipientId"))
        text = message.get("text")
        messages.append(
            {
                "text": text if isinstance(text, str) else "",
                "created_at": _as_str(message.get("createdAt")),
                "sender_id": sender_id,
                "recipient_id": recipient_id,
                "senderLink": intent_link(sender_id) if sender_id else None,
                "recipientLink": intent_link(recipient_id) if recipient_id else None,
                "media": _message_media(message),
            }
        )

    record = _validate(
        {
            "kind": "conversation",
            "conversation_id": conversation_id,
            "messages": messages,
            "message_count": len(messages),
        }
    )
    return record if isinstance(record, ArchiveConversation) else None
