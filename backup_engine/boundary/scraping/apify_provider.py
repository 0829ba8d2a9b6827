"""
Apify scrape provider.

Runs the tweet-scraper and twitter-user-scraper actors through the Apify
REST API: start a run, poll it while reporting dataset item counts, then
read the dataset. Runs are aborted upstream as soon as cancellation is
observed so no further items are billed.

Dependencies: httpx, tenacity, pydantic
System role: Paid scraping provider used by the snapshot scrape orchestrator
"""

import asyncio
from contextlib import aclosing
import logging
import time
from decimal import Decimal
from typing import Any, AsyncIterator

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from backup_engine.boundary.scraping.provider import (
    ScrapeCost,
    ScrapedAuthor,
    ScrapedConnection,
    ScrapedMedia,
    ScrapedTweet,
    ScrapeMetadata,
    ScrapeParams,
    ScrapeProgress,
    ScrapeProvider,
    ScrapeResult,
    ShouldCancel,
)
from backup_engine.configs.scrape import ScrapeSettings
from backup_engine.core.exceptions import CancellationSignal, ScrapeProviderError

logger = logging.getLogger(__name__)

TERMINAL_RUN_STATUSES = {"SUCCEEDED", "FAILED", "TIMED-OUT", "ABORTED"}
_MAX_ATTEMPTS = 4


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return False


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value is not None else Decimal("0")
    except ArithmeticError:
        return Decimal("0")


def _as_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _best_media_url(media: dict[str, Any]) -> str | None:
    variants = (media.get("video_info") or {}).get("variants") or []
    mp4 = [v for v in variants if v.get("content_type") == "video/mp4" and v.get("url")]
    if mp4:
        return max(mp4, key=lambda v: v.get("bitrate") or 0)["url"]
    return media.get("media_url_https") or media.get("media_url")


def map_tweet(item: dict[str, Any], username: str) -> ScrapedTweet | None:
    """Convert one tweet-scraper dataset item. Items without an id are dropped."""
    tweet_id = item.get("id") or item.get("id_str")
    if not tweet_id:
        return None
    author = item.get("author") or {}
    author_username = author.get("userName") or author.get("screen_name") or username

    media_items = (item.get("extendedEntities") or {}).get("media") or (item.get("entities") or {}).get("media") or []
    media = []
    for entry in media_items:
        preview = entry.get("media_url_https") or entry.get("media_url")
        media_url = _best_media_url(entry)
        if not media_url:
            continue
        media.append(
            ScrapedMedia(
                url=entry.get("expanded_url") or entry.get("url") or media_url,
                type=entry.get("type") or "photo",
                media_url=media_url,
                media_url_https=preview,
            )
        )

    is_reply = bool(item.get("isReply") or item.get("inReplyToId"))
    return ScrapedTweet(
        id=str(tweet_id),
        text=item.get("fullText") or item.get("text") or "",
        created_at=item.get("createdAt"),
        retweet_count=_as_int(item.get("retweetCount")) or 0,
        favorite_count=_as_int(item.get("likeCount")) or 0,
        reply_count=_as_int(item.get("replyCount")) or 0,
        type="reply" if is_reply else "tweet",
        in_reply_to_status_id=item.get("inReplyToId"),
        in_reply_to_user_id=item.get("inReplyToUserId"),
        in_reply_to_screen_name=item.get("inReplyToUsername"),
        tweet_url=item.get("url") or item.get("twitterUrl") or f"https://x.com/{author_username}/status/{tweet_id}",
        author=ScrapedAuthor(
            username=author_username,
            name=author.get("name") or "",
            profile_image_url=author.get("profilePicture"),
        ),
        media=media,
    )


def map_connection(item: dict[str, Any]) -> ScrapedConnection | None:
    """Convert one user-scraper dataset item. Items without an id are dropped."""
    user_id = item.get("id") or item.get("userId") or item.get("id_str")
    if not user_id:
        return None
    username = item.get("userName") or item.get("screen_name") or item.get("username")
    link = f"https://x.com/{username}" if username else f"https://twitter.com/intent/user?user_id={user_id}"
    return ScrapedConnection(
        user_id=str(user_id),
        username=username,
        name=item.get("name"),
        user_link=link,
        profile_image_url=item.get("profilePicture") or item.get("profile_image_url_https"),
    )


class ApifyScrapeProvider(ScrapeProvider):
    """ScrapeProvider backed by Apify actors."""

    def __init__(
        self,
        settings: ScrapeSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize provider.

        Args:
            settings: Token, actor ids, base URL and polling limits
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._settings = settings
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "apify"

    def is_configured(self) -> bool:
        return bool(self._settings.provider_token.strip())

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.api_base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {self._settings.provider_token}"},
            timeout=self._settings.request_timeout_seconds,
            transport=self._transport,
        )

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, max=8) + wait_random(0, 1),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"{__name__}:_request - Retry {retry_state.attempt_number}/{_MAX_ATTEMPTS} after transient error"
        ),
    )
    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> Any:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        body = response.json()
        return body.get("data", body) if isinstance(body, dict) else body

    async def _call(self, client: httpx.AsyncClient, method: str, url: str, run_id: str | None = None, **kwargs: Any) -> Any:
        try:
            return await self._request(client, method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ScrapeProviderError(f"Apify request failed: {method} {url}: {e}", run_id) from e
        except ValueError as e:
            raise ScrapeProviderError(f"Apify returned invalid JSON for {url}", run_id) from e

    async def _abort(self, client: httpx.AsyncClient, run_id: str) -> None:
        try:
            await self._request(client, "POST", f"/actor-runs/{run_id}/abort")
            logger.info(f"{__name__}:_abort - Aborted provider run", extra={"run_id": run_id})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"{__name__}:_abort - Failed to abort provider run", extra={"run_id": run_id, "error": str(e)})

    async def _run_actor(
        self,
        client: httpx.AsyncClient,
        actor_id: str,
        actor_input: dict[str, Any],
        should_cancel: ShouldCancel,
        progress: ScrapeProgress,
        run_kind: str,
        count_field: str,
        spent_before: Decimal,
    ) -> AsyncIterator[tuple[ScrapeProgress, list[dict[str, Any]] | None, Decimal, bool]]:
        """
        Start one actor run and poll it to completion.

        Yields (progress, None, cost, False) while running and finally
        (progress, items, cost, timed_out) once the dataset is read.
        """
        run = await self._call(client, "POST", f"/acts/{actor_id}/runs", json=actor_input)
        run_id = run["id"]
        dataset_id = run.get("defaultDatasetId")
        setattr(progress, f"{run_kind}_run_id", run_id)
        logger.info(
            f"{__name__}:_run_actor - Provider run started",
            extra={"actor_id": actor_id, "run_id": run_id},
        )
        yield progress.model_copy(), None, spent_before, False

        started = time.monotonic()
        status = run.get("status", "READY")
        cost = spent_before
        timed_out = False
        finished = False
        try:
            while status not in TERMINAL_RUN_STATUSES:
                if await should_cancel():
                    raise CancellationSignal(reason="Cancellation requested during provider run")
                if time.monotonic() - started > self._settings.max_run_seconds:
                    timed_out = True
                    await self._abort(client, run_id)
                    break

                await asyncio.sleep(self._settings.poll_interval_seconds)
                run = await self._call(client, "GET", f"/actor-runs/{run_id}", run_id=run_id)
                status = run.get("status", status)
                dataset_id = run.get("defaultDatasetId") or dataset_id
                cost = spent_before + _to_decimal(run.get("usageTotalUsd"))

                if dataset_id:
                    dataset = await self._call(client, "GET", f"/datasets/{dataset_id}", run_id=run_id)
                    setattr(progress, count_field, int(dataset.get("itemCount") or 0))
                progress.api_cost_usd = cost
                yield progress.model_copy(), None, cost, False

            if status in {"FAILED", "ABORTED"} and not timed_out:
                raise ScrapeProviderError(f"Apify run ended with status {status}", run_id)

            items: list[dict[str, Any]] = []
            if dataset_id:
                items = await self._call(
                    client,
                    "GET",
                    f"/datasets/{dataset_id}/items",
                    run_id=run_id,
                    params={"clean": "true", "format": "json"},
                )
            finished = True
            yield progress.model_copy(), list(items or []), cost, timed_out or status == "TIMED-OUT"
        finally:
            if not finished and status not in TERMINAL_RUN_STATUSES and not timed_out:
                await self._abort(client, run_id)

    async def run_scrape(
        self,
        params: ScrapeParams,
        should_cancel: ShouldCancel,
    ) -> AsyncIterator[ScrapeProgress | ScrapeResult]:
        if not self.is_configured():
            raise ScrapeProviderError(f"{self.provider_name} is not configured. Please set up API keys.")

        targets = params.targets
        metadata = ScrapeMetadata(
            username=params.username,
            tweets_requested=params.max_tweets if targets.wants_timeline else 0,
            selected_targets=targets,
        )
        progress = ScrapeProgress(phase="scraping")
        tweets: list[ScrapedTweet] = []
        replies: list[ScrapedTweet] = []
        followers: list[ScrapedConnection] = []
        following: list[ScrapedConnection] = []
        breakdown: dict[str, Decimal] = {}
        spent = Decimal("0")

        async with self._client() as client:
            if targets.wants_timeline or targets.profile:
                items: list[dict[str, Any]] = []
                timeline_input = {
                    "twitterHandles": [params.username],
                    "maxItems": params.max_tweets,
                    "sort": "Latest",
                }
                runs = self._run_actor(
                    client,
                    self._settings.timeline_actor_id,
                    timeline_input,
                    should_cancel,
                    progress,
                    "timeline",
                    "tweets_fetched",
                    spent,
                )
                async with aclosing(runs):
                    async for snapshot, run_items, cost, timed_out in runs:
                        if run_items is None:
                            yield snapshot
                            continue
                        items = run_items
                        breakdown["timeline"] = cost - spent
                        spent = cost
                        if timed_out:
                            metadata.partial_reasons.append("timeline_run_timeout")

                for item in items:
                    tweet = map_tweet(item, params.username)
                    if tweet is None:
                        continue
                    if tweet.type == "reply":
                        if targets.replies:
                            replies.append(tweet)
                    elif targets.tweets:
                        tweets.append(tweet)
                    if metadata.display_name is None:
                        self._apply_profile(metadata, item.get("author") or {})

                if targets.wants_timeline and len(items) >= params.max_tweets:
                    metadata.timeline_limit_hit = True
                    metadata.partial_reasons.append("timeline_limit_reached")
                progress.tweets_fetched = len(tweets)
                progress.replies_fetched = len(replies)

            if targets.wants_social_graph:
                for relation, cap in self._social_graph_caps(params):
                    relation_input = {
                        "twitterHandles": [params.username],
                        "getFollowers": relation == "followers",
                        "getFollowing": relation == "following",
                        "maxItems": cap,
                    }
                    items = []
                    runs = self._run_actor(
                        client,
                        self._settings.social_graph_actor_id,
                        relation_input,
                        should_cancel,
                        progress,
                        "social_graph",
                        f"{relation}_fetched",
                        spent,
                    )
                    async with aclosing(runs):
                        async for snapshot, run_items, cost, timed_out in runs:
                            if run_items is None:
                                yield snapshot
                                continue
                            items = run_items
                            breakdown[relation] = cost - spent
                            spent = cost
                            if timed_out:
                                metadata.partial_reasons.append(f"{relation}_run_timeout")

                    connections = [c for c in (map_connection(i) for i in items) if c is not None]
                    if relation == "followers":
                        followers = connections
                    else:
                        following = connections
                    setattr(progress, f"{relation}_fetched", len(connections))
                    if cap is not None and len(items) >= cap:
                        metadata.social_graph_limit_hit = True
                        metadata.partial_reasons.append(f"{relation}_limit_reached")

        metadata.tweets_received = len(tweets) + len(replies)
        metadata.is_partial = bool(metadata.partial_reasons)
        progress.api_cost_usd = spent
        yield progress.model_copy()

        logger.info(
            f"{__name__}:run_scrape - Scrape finished",
            extra={
                "username": params.username,
                "tweets": len(tweets),
                "replies": len(replies),
                "followers": len(followers),
                "following": len(following),
                "total_cost": str(spent),
            },
        )
        yield ScrapeResult(
            tweets=tweets,
            replies=replies,
            followers=followers,
            following=following,
            cost=ScrapeCost(
                provider=self.provider_name,
                total_cost=spent,
                tweets_count=len(tweets) + len(replies),
                breakdown=breakdown,
            ),
            metadata=metadata,
        )

    @staticmethod
    def _social_graph_caps(params: ScrapeParams) -> list[tuple[str, int | None]]:
        relations = [r for r in ("followers", "following") if getattr(params.targets, r)]
        cap = params.social_graph_max_items
        if cap is None or len(relations) == 1:
            return [(r, cap) for r in relations]
        first = max(1, (cap + 1) // 2)
        return [(relations[0], first), (relations[1], max(1, cap - first))]

    @staticmethod
    def _apply_profile(metadata: ScrapeMetadata, author: dict[str, Any]) -> None:
        if not author:
            return
        metadata.display_name = author.get("name")
        metadata.profile_bio = author.get("description")
        metadata.profile_image_url = author.get("profilePicture")
        metadata.cover_image_url = author.get("coverPicture")
        metadata.profile_followers_count = _as_int(author.get("followers"))
        metadata.profile_following_count = _as_int(author.get("following"))
        metadata.profile_statuses_count = _as_int(author.get("statusesCount"))
