"""
Remote media fetcher.

Downloads profile images and tweet media referenced by a scrape so they can
be re-hosted in blob storage. Bodies are streamed and abandoned as soon as
they exceed the configured ceiling.

Dependencies: httpx
System role: Outbound media download for the snapshot scrape pipeline
"""

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedMedia:
    """Downloaded media body plus the content type reported by the origin."""

    data: bytes
    content_type: str | None

    @property
    def size(self) -> int:
        return len(self.data)


class RemoteMediaFetcher:
    """Fetch remote media with a per-file byte ceiling."""

    def __init__(
        self,
        max_bytes: int,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize fetcher.

        Args:
            max_bytes: Largest body accepted; bigger files are skipped
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._max_bytes = max_bytes
        self._client = httpx.AsyncClient(
            timeout=timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )

    async def fetch(self, url: str) -> FetchedMedia | None:
        """
        Download `url`.

        Returns:
            FetchedMedia | None: None when the origin refused the request,
                the body is too large, or the transfer failed
        """
        try:
            async with self._client.stream("GET", url) as response:
                if response.status_code >= 400:
                    logger.warning(
                        f"{__name__}:fetch - Origin refused media request",
                        extra={"url": url, "status_code": response.status_code},
                    )
                    return None

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self._max_bytes:
                    logger.warning(
                        f"{__name__}:fetch - Media exceeds size ceiling",
                        extra={"url": url, "declared_bytes": int(declared), "limit": self._max_bytes},
                    )
                    return None

                chunks: list[bytes] = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self._max_bytes:
                        logger.warning(
                            f"{__name__}:fetch - Media stream exceeded size ceiling",
                            extra={"url": url, "limit": self._max_bytes},
                        )
                        return None
                    chunks.append(chunk)

                content_type = response.headers.get("content-type")
                if content_type:
                    content_type = content_type.split(";")[0].strip() or None
                return FetchedMedia(data=b"".join(chunks), content_type=content_type)
        except httpx.HTTPError as e:
            logger.warning(f"{__name__}:fetch - Media download failed", extra={"url": url, "error": str(e)})
            return None

    async def aclose(self) -> None:
        await self._client.aclose()
