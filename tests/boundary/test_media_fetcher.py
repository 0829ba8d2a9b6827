"""Tests for RemoteMediaFetcher against httpx.MockTransport origins."""

import httpx
import pytest

from backup_engine.boundary.scraping.media_fetcher import RemoteMediaFetcher

URL = "https://pbs.twimg.com/media/P1.jpg"


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


def _fetcher(handler, max_bytes: int = 10) -> RemoteMediaFetcher:
    return RemoteMediaFetcher(max_bytes=max_bytes, timeout_seconds=5, transport=httpx.MockTransport(handler))


class TestRemoteMediaFetcher:
    async def test_fetch_returns_body_and_bare_content_type(self):
        # Arrange
        fetcher = _fetcher(
            lambda request: httpx.Response(200, content=b"jpeg", headers={"content-type": "image/jpeg; q=1"})
        )

        # Act
        media = await fetcher.fetch(URL)
        await fetcher.aclose()

        # Assert
        assert media.data == b"jpeg"
        assert media.size == 4
        assert media.content_type == "image/jpeg"

    async def test_missing_content_type(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, content=b"x"))
        media = await fetcher.fetch(URL)
        assert media.content_type is None

    @pytest.mark.parametrize("status_code", [403, 404, 500])
    async def test_error_status_returns_none(self, status_code):
        fetcher = _fetcher(lambda request: httpx.Response(status_code, content=b"nope"))
        assert await fetcher.fetch(URL) is None

    async def test_declared_length_over_ceiling_returns_none(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, content=b"x" * 11))
        assert await fetcher.fetch(URL) is None

    async def test_streamed_body_over_ceiling_returns_none(self):
        # Arrange
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_chunks(b"x" * 6, b"y" * 6)))

        # Act / Assert
        assert await fetcher.fetch(URL) is None

    async def test_streamed_body_within_ceiling(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_chunks(b"ab", b"cd")))
        assert (await fetcher.fetch(URL)).data == b"abcd"

    async def test_transport_error_returns_none(self):
        # Arrange
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        # Act / Assert
        assert await _fetcher(handler).fetch(URL) is None
