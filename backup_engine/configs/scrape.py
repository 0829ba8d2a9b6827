"""
Snapshot scrape configuration.

Provider credentials, monetary ceilings, per-item pricing and the live
metrics throttle used by the budget-aware scrape orchestrator.

Prices are expressed per 1000 items and kept as Decimal so that budget
arithmetic is exact to the cent.

Dependencies: pydantic_settings
System role: Scrape provider and budget configuration
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from backup_engine.configs.base import BaseSettings


class ScrapeSettings(BaseSettings):
    """Settings for the paid scraping provider and its budget."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCRAPE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider
    provider_token: str = Field(default="", description="Apify API token")
    api_base_url: str = Field(default="https://api.apify.com/v2", description="Apify REST base URL")
    timeline_actor_id: str = Field(default="apidojo~tweet-scraper", description="Timeline actor")
    social_graph_actor_id: str = Field(
        default="apidojo~twitter-user-scraper", description="Followers/following actor"
    )
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    poll_interval_seconds: float = Field(default=2.0, gt=0)
    max_run_seconds: int = Field(default=1800, gt=0, description="Give up on a provider run after this")

    # Budget
    max_cost_per_month_usd: Decimal = Field(default=Decimal("10.00"), ge=0)
    max_cost_per_run_usd: Decimal = Field(default=Decimal("5.00"), ge=0)
    default_tweets: int = Field(default=500, gt=0, description="Timeline window kept for mixed runs")

    # Pricing
    timeline_base_usd: Decimal = Field(default=Decimal("0"), ge=0, description="Flat cost per timeline query")
    timeline_included_items: int = Field(default=0, ge=0, description="Items covered by the base cost")
    timeline_usd_per_1000: Decimal = Field(default=Decimal("0.40"), ge=0)
    social_graph_usd_per_1000: Decimal = Field(default=Decimal("0.40"), ge=0)

    # Live metrics throttle
    live_timeline_step: int = Field(default=10, gt=0)
    live_social_step: int = Field(default=50, gt=0)
    live_media_step: int = Field(default=25, gt=0)
    live_min_persist_seconds: float = Field(default=0.5, ge=0)
    live_max_silence_seconds: float = Field(default=1.5, gt=0)
    live_cost_delta_usd: Decimal = Field(default=Decimal("0.01"), gt=0)

    # Remote media
    max_remote_media_bytes: int = Field(default=64 * 1024 * 1024, gt=0)
