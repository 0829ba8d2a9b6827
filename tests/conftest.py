"""
Shared test fixtures and configuration for entire test suite.

Provides: In-memory SQLite database, session factory, in-memory blob store,
export ZIP builder, sample export contents
Dependencies: pytest, sqlalchemy, aiosqlite
System role: Test infrastructure and fixture management
"""

import json
import os
import uuid
import zipfile
from pathlib import Path
from typing import Callable, Sequence

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backup_engine.boundary.db.base import Base
from backup_engine.core.exceptions import BlobStorageError

# Importing the models registers every table on Base.metadata.
import backup_engine.boundary.db.models  # noqa: F401


class InMemoryBlobStore:
    """BlobStore keeping objects in a dict."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.put_calls: list[str] = []
        self.deleted: list[str] = []

    async def put(self, path: str, data: bytes, content_type: str, overwrite: bool = True) -> bool:
        self.put_calls.append(path)
        if not overwrite and path in self.objects:
            return False
        self.objects[path] = bytes(data)
        self.content_types[path] = content_type
        return True

    async def upload_file(self, path: str, local_path: str, content_type: str, overwrite: bool = True) -> bool:
        return await self.put(path, Path(local_path).read_bytes(), content_type, overwrite)

    async def download_to_file(self, path: str, local_path: str) -> None:
        if path not in self.objects:
            raise BlobStorageError("Object not found", path=path)
        Path(local_path).write_bytes(self.objects[path])

    async def get(self, path: str) -> bytes | None:
        return self.objects.get(path)

    async def delete(self, paths: Sequence[str]) -> int:
        deleted = 0
        for path in paths:
            if self.objects.pop(path, None) is not None:
                self.content_types.pop(path, None)
                self.deleted.append(path)
                deleted += 1
        return deleted


def _sqlite_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite/aiosqlite defer BEGIN; emit it ourselves so SAVEPOINTs behave.
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine with every table created."""
    engine = _sqlite_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def test_async_db(session_factory):
    """
    Create in-memory SQLite async database session for testing.

    Yields:
        AsyncSession: Test database session
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def user_id() -> str:
    return "user-123"


@pytest.fixture
def job_id() -> uuid.UUID:
    """Generate a test job ID."""
    return uuid.uuid4()


def js_assignment(variable: str, items: list) -> str:
    """Render items the way the export writes its data/*.js files."""
    return f"window.YTD.{variable}.part0 = {json.dumps(items)}"


@pytest.fixture
def export_js() -> Callable[[str, list], str]:
    return js_assignment


@pytest.fixture
def build_zip(tmp_path: Path) -> Callable[..., str]:
    """
    Build a ZIP on disk from {entry name: bytes | str}.

    Returns:
        Callable returning the local path of the archive
    """

    def _build(files: dict[str, bytes | str], name: str = "archive.zip") -> str:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for entry_name, content in files.items():
                data = content.encode("utf-8") if isinstance(content, str) else content
                archive.writestr(entry_name, data)
        return os.fspath(path)

    return _build


@pytest.fixture
def sample_export_files() -> dict[str, bytes | str]:
    """A small but complete export: account, tweets, social graph, likes, DMs, media."""
    account = [
        {
            "account": {
                "accountId": "42",
                "username": "alice",
                "accountDisplayName": "Alice",
                "createdAt": "2015-01-01T00:00:00.000Z",
            }
        }
    ]
    tweets = [
        {
            "tweet": {
                "id_str": "1001",
                "full_text": "hello world",
                "created_at": "Mon Jan 01 00:00:00 +0000 2024",
                "favorite_count": "3",
                "retweet_count": "1",
                "extended_entities": {
                    "media": [
                        {
                            "id_str": "9001",
                            "type": "photo",
                            "media_url": "http://pbs.twimg.com/media/AbC123.jpg",
                            "media_url_https": "https://pbs.twimg.com/media/AbC123.jpg",
                        }
                    ]
                },
            }
        },
        {
            "tweet": {
                "id_str": "1002",
                "full_text": "@bob reply",
                "in_reply_to_status_id_str": "555",
                "in_reply_to_screen_name": "bob",
            }
        },
    ]
    followers = [{"follower": {"accountId": "7", "userLink": "https://twitter.com/intent/user?user_id=7"}}]
    following = [{"following": {"accountId": "8", "userLink": "https://twitter.com/carol"}}]
    likes = [{"like": {"tweetId": "3003", "fullText": "liked", "expandedUrl": "https://x.com/i/web/status/3003"}}]
    dms = [
        {
            "dmConversation": {
                "conversationId": "7-42",
                "messages": [
                    {
                        "messageCreate": {
                            "senderId": "7",
                            "recipientId": "42",
                            "text": "hi",
                            "createdAt": "2024-01-01T00:00:00.000Z",
                            "mediaUrls": [],
                        }
                    },
                    {"joinConversation": {"initiatingUserId": "7"}},
                ],
            }
        }
    ]
    return {
        "data/account.js": js_assignment("account", account),
        "data/tweets.js": js_assignment("tweets", tweets),
        "data/follower.js": js_assignment("follower", followers),
        "data/following.js": js_assignment("following", following),
        "data/like.js": js_assignment("like", likes),
        "data/direct-messages.js": js_assignment("dmConversation", dms),
        "data/tweets_media/1001-AbC123.jpg": b"\xff\xd8jpeg-bytes",
        "data/tweets_media/1001-clip.mp4": b"mp4-bytes",
        "data/profile_media/42-avatar.jpg": b"avatar-bytes",
    }
