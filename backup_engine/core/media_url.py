"""
Internal media URL construction.

Re-hosted media is served by the presentation layer through a single proxy
route; records store that route instead of the platform CDN URL.

Dependencies: urllib (stdlib)
System role: Shared URL builder for archive and snapshot media
"""

from urllib.parse import quote

MEDIA_ROUTE = "/api/platforms/twitter/media"


def normalize_storage_path(path: str) -> str:
    """Strip whitespace and leading slashes from an object key."""
    return path.strip().lstrip("/")


def build_internal_media_url(storage_path: str) -> str:
    """
    Build the internal URL for a stored media object.

    Args:
        storage_path: Object key in blob storage

    Returns:
        str: Proxy URL with the key percent-encoded

    Example:
        >>> build_internal_media_url("/u1/tweets_media/a b.jpg")
        '/api/platforms/twitter/media?path=u1%2Ftweets_media%2Fa%20b.jpg'
    """
    encoded = quote(normalize_storage_path(storage_path), safe="!*'()")
    return f"{MEDIA_ROUTE}?path={encoded}"
