"""
Scrape provider boundary.

Exports:
  - ScrapeProvider and its transfer models
  - ApifyScrapeProvider: Apify actor implementation
  - RemoteMediaFetcher, FetchedMedia: Re-hosting downloads
"""

from backup_engine.boundary.scraping.apify_provider import ApifyScrapeProvider
from backup_engine.boundary.scraping.media_fetcher import FetchedMedia, RemoteMediaFetcher
from backup_engine.boundary.scraping.provider import (
    ScrapeCost,
    ScrapedConnection,
    ScrapedMedia,
    ScrapedTweet,
    ScrapeMetadata,
    ScrapeParams,
    ScrapeProgress,
    ScrapeProvider,
    ScrapeResult,
    ScrapeTargets,
    ShouldCancel,
)

__all__ = [
    "ApifyScrapeProvider",
    "FetchedMedia",
    "RemoteMediaFetcher",
    "ScrapeCost",
    "ScrapedConnection",
    "ScrapedMedia",
    "ScrapedTweet",
    "ScrapeMetadata",
    "ScrapeParams",
    "ScrapeProgress",
    "ScrapeProvider",
    "ScrapeResult",
    "ScrapeTargets",
    "ShouldCancel",
]
