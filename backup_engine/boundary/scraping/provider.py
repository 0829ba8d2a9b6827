"""
Scrape provider contract and transfer models.

A provider turns a username plus a target selection into timeline items
and social-graph entries. Progress is reported as an async stream: zero or
more ScrapeProgress events followed by exactly one ScrapeResult.

Dependencies: pydantic
System role: Boundary contract between the scrape orchestrator and paid providers
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncIterator, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

ShouldCancel = Callable[[], Awaitable[bool]]


class ScrapeTargets(BaseModel):
    """Which parts of an account to scrape."""

    profile: bool = False
    tweets: bool = False
    replies: bool = False
    followers: bool = False
    following: bool = False

    @property
    def wants_timeline(self) -> bool:
        return self.tweets or self.replies

    @property
    def wants_social_graph(self) -> bool:
        return self.followers or self.following

    @property
    def any_selected(self) -> bool:
        return self.profile or self.wants_timeline or self.wants_social_graph


class ScrapeParams(BaseModel):
    """Inputs for one provider run."""

    username: str
    max_tweets: int = Field(ge=1, description="Timeline items to request")
    targets: ScrapeTargets
    social_graph_max_items: int | None = Field(default=None, ge=1)


class ScrapedMedia(BaseModel):
    """Media attached to a scraped tweet."""

    model_config = ConfigDict(extra="ignore")

    url: str
    type: str = "photo"
    media_url: str | None = None
    media_url_https: str | None = None


class ScrapedAuthor(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    username: str
    name: str = ""
    profile_image_url: str | None = Field(default=None, serialization_alias="profileImageUrl")


class ScrapedTweet(BaseModel):
    """Provider-neutral timeline item."""

    model_config = ConfigDict(extra="ignore")

    id: str
    text: str = ""
    created_at: str | None = None
    retweet_count: int = 0
    favorite_count: int = 0
    reply_count: int = 0
    type: str = "tweet"
    in_reply_to_status_id: str | None = None
    in_reply_to_user_id: str | None = None
    in_reply_to_screen_name: str | None = None
    tweet_url: str | None = None
    author: ScrapedAuthor | None = None
    media: list[ScrapedMedia] = Field(default_factory=list)


class ScrapedConnection(BaseModel):
    """Follower or followed account."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str
    username: str | None = None
    name: str | None = None
    user_link: str = Field(serialization_alias="userLink")
    profile_image_url: str | None = Field(default=None, serialization_alias="profileImageUrl")


class ScrapeCost(BaseModel):
    provider: str
    total_cost: Decimal = Decimal("0")
    tweets_count: int = 0
    breakdown: dict[str, Decimal] = Field(default_factory=dict)


class ScrapeMetadata(BaseModel):
    """Run-level facts about the scrape and the scraped profile."""

    username: str
    scraped_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    is_partial: bool = False
    partial_reasons: list[str] = Field(default_factory=list)
    timeline_limit_hit: bool = False
    social_graph_limit_hit: bool = False
    tweets_requested: int = 0
    tweets_received: int = 0
    profile_image_url: str | None = None
    cover_image_url: str | None = None
    display_name: str | None = None
    profile_bio: str | None = None
    profile_followers_count: int | None = None
    profile_following_count: int | None = None
    profile_statuses_count: int | None = None
    selected_targets: ScrapeTargets = Field(default_factory=ScrapeTargets)


class ScrapeProgress(BaseModel):
    """Intermediate counters reported while a provider run is active."""

    phase: str = "scraping"
    tweets_fetched: int = 0
    replies_fetched: int = 0
    followers_fetched: int = 0
    following_fetched: int = 0
    api_cost_usd: Decimal = Decimal("0")
    timeline_run_id: str | None = None
    social_graph_run_id: str | None = None


class ScrapeResult(BaseModel):
    """Final output of a provider run."""

    tweets: list[ScrapedTweet] = Field(default_factory=list)
    replies: list[ScrapedTweet] = Field(default_factory=list)
    followers: list[ScrapedConnection] = Field(default_factory=list)
    following: list[ScrapedConnection] = Field(default_factory=list)
    cost: ScrapeCost
    metadata: ScrapeMetadata

    def records_payload(self) -> dict[str, list[dict[str, Any]]]:
        """Serialize records in the shape stored inside a backup's data."""
        return {
            "tweets": [t.model_dump(mode="json", by_alias=True, exclude_none=True) for t in self.tweets],
            "replies": [t.model_dump(mode="json", by_alias=True, exclude_none=True) for t in self.replies],
            "followers": [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in self.followers],
            "following": [c.model_dump(mode="json", by_alias=True, exclude_none=True) for c in self.following],
        }


class ScrapeProvider(ABC):
    """Interface every paid scraping provider implements."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Short provider key stored with the backup (e.g. "apify")."""

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials are present."""

    @abstractmethod
    def run_scrape(
        self,
        params: ScrapeParams,
        should_cancel: ShouldCancel,
    ) -> AsyncIterator[ScrapeProgress | ScrapeResult]:
        """
        Scrape an account.

        Args:
            params: Username, timeline window, targets and social graph cap
            should_cancel: Polled between upstream calls; when it returns
                True the active upstream run is aborted

        Yields:
            ScrapeProgress events, then a single ScrapeResult

        Raises:
            CancellationSignal: Cancellation was observed through should_cancel
            ScrapeProviderError: Upstream run failed or could not be reached
        """
