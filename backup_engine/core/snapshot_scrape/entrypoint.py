"""
Snapshot scrape pipeline orchestrator.

Runs one snapshot_scrape job: plans the budget, drives the provider stream,
saves the snapshot backup, re-hosts its media and completes the job. Live
counters are published through a throttle; cancellation is checked before
each phase and on each provider event, and is passed down to the provider
so the upstream run is aborted.

Dependencies: ScrapeProvider, RemoteMediaFetcher, JobService, BackupService, BlobStore
System role: Pipeline orchestration (coordinates only)
"""

import functools
import logging
import time
from contextlib import aclosing
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import UUID

from backup_engine.application.services.backup_service import BackupService
from backup_engine.application.services.job_service import JobService
from backup_engine.boundary.aws.s3_blob_store import BlobStore
from backup_engine.boundary.scraping.media_fetcher import RemoteMediaFetcher
from backup_engine.boundary.scraping.provider import (
    ScrapeParams,
    ScrapeProgress,
    ScrapeProvider,
    ScrapeResult,
    ScrapeTargets,
    ShouldCancel,
)
from backup_engine.configs.scrape import ScrapeSettings
from backup_engine.core.exceptions import (
    CancellationSignal,
    ScrapeProviderError,
    public_message,
)
from backup_engine.models.job import (
    JobError,
    JobOutcome,
    JobPayload,
    JobRunResult,
    LifecycleState,
    ProviderRuns,
    partial_backup_fields,
)
from backup_engine.observability.log_utils import log_exception_with_context

from .budget import BudgetCaps, ScrapeBudgetPlan, plan_scrape_budget
from .live_metrics import Clock, LiveMetricsThrottle
from .pricing import ScrapePricing, round_usd
from .tasks import RemoteMediaTask
from .tasks.remote_media_task import EnsureActive
from .usage import month_start_utc, summarize_monthly_usage

logger = logging.getLogger(__name__)

SyncMetrics = Callable[..., Awaitable[None]]

BACKUP_TYPE = "snapshot"
BACKUP_SOURCE = "scrape"

GENERIC_FAILURE_MESSAGE = "Failed to scrape Twitter data"
COMPLETED_MESSAGE = "Snapshot backup completed successfully."
CLEANUP_MESSAGE = "Cancellation requested. Cleaning up partial data..."

PHASE_PROGRESS = {
    "queued": 5,
    "preparing": 8,
    "scraping": 20,
    "saving": 60,
    "finalizing": 94,
}
MEDIA_PROGRESS_START = 72
MEDIA_PROGRESS_SPAN = 20
DEFAULT_PHASE_PROGRESS = 25


def snapshot_phase_progress(phase: str, media_processed: int = 0, media_total: int = 0) -> int:
    """Overall progress for a snapshot phase."""
    if phase == "media":
        ratio = min(1.0, media_processed / media_total) if media_total > 0 else 0.0
        return MEDIA_PROGRESS_START + round(ratio * MEDIA_PROGRESS_SPAN)
    return PHASE_PROGRESS.get(phase, DEFAULT_PHASE_PROGRESS)


def retention_block(retention: dict[str, Any] | None) -> dict[str, Any]:
    """Guest retention when a guest expiry is given, account retention otherwise."""
    if retention and retention.get("mode") == "guest_30d" and retention.get("expires_at"):
        return {"mode": "guest_30d", "expires_at": retention["expires_at"]}
    return {"mode": "account"}


def build_snapshot_data(
    result: ScrapeResult,
    targets: ScrapeTargets,
    plan: ScrapeBudgetPlan,
    include_media: bool,
    media_total: int,
    retention: dict[str, Any] | None,
) -> dict[str, Any]:
    """Data document of a freshly scraped snapshot backup."""
    metadata = result.metadata
    followers_display = max(len(result.followers), metadata.profile_followers_count or 0)
    following_display = max(len(result.following), metadata.profile_following_count or 0)

    return {
        **result.records_payload(),
        "likes": [],
        "direct_messages": [],
        "profile": {
            "username": metadata.username,
            "displayName": metadata.display_name,
            "description": metadata.profile_bio,
            "bio": metadata.profile_bio,
            "profileImageUrl": metadata.profile_image_url,
            "coverImageUrl": metadata.cover_image_url,
            "followersCount": metadata.profile_followers_count,
            "followingCount": metadata.profile_following_count,
            "statusesCount": metadata.profile_statuses_count,
        },
        "stats": {
            "tweets": len(result.tweets),
            "replies": len(result.replies),
            "followers": followers_display,
            "following": following_display,
            "likes": 0,
            "dms": 0,
            "media_files": media_total,
        },
        "scrape": {
            "provider": result.cost.provider,
            "total_cost": float(round_usd(result.cost.total_cost)),
            "scraped_at": metadata.scraped_at,
            "is_partial": metadata.is_partial,
            "partial_reasons": list(metadata.partial_reasons),
            "timeline_limit_hit": metadata.timeline_limit_hit,
            "social_graph_limit_hit": metadata.social_graph_limit_hit,
            "targets": targets.model_dump(),
            "budget": plan.to_payload(include_media),
        },
        "retention": retention_block(retention),
        "storage": {
            "media_bytes": 0,
            "archive_bytes": 0,
            "total_bytes": 0,
            "media_files": 0,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        },
    }


class SnapshotScrapePipeline:
    """Scrape an account through the paid provider into a snapshot backup."""

    def __init__(
        self,
        job_service: JobService,
        backup_service: BackupService,
        blob_store: BlobStore,
        provider: ScrapeProvider,
        fetcher: RemoteMediaFetcher,
        settings: ScrapeSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize pipeline with its collaborators.

        Args:
            job_service: Progress, payload and terminal job writes
            backup_service: Backup and media record persistence
            blob_store: Media storage
            provider: Paid scraping provider
            fetcher: Downloads remote media for re-hosting
            settings: Budget, pricing and throttle settings (defaults from environment)
            clock: Monotonic clock for the live metrics throttle
        """
        self._jobs = job_service
        self._backups = backup_service
        self._blob_store = blob_store
        self._provider = provider
        self._settings = settings or ScrapeSettings()
        self._clock = clock or time.monotonic

        self._pricing = ScrapePricing.from_settings(self._settings)
        self._caps = BudgetCaps.from_settings(self._settings)
        self._media_task = RemoteMediaTask(blob_store, backup_service, fetcher)

    async def plan_budget(
        self,
        user_id: str,
        targets: ScrapeTargets,
        max_tweets: Any = None,
    ) -> ScrapeBudgetPlan:
        """
        Plan the budget of a run from the owner's spend this month.

        Raises:
            ValidationError: Invalid target selection or timeline window
            BudgetExceededError: Nothing affordable in this run
        """
        payloads = await self._jobs.list_snapshot_payloads_since(user_id, month_start_utc())
        usage = summarize_monthly_usage(payloads, self._caps.monthly_limit_usd)
        return plan_scrape_budget(targets, usage.monthly_spent_usd, self._pricing, self._caps, max_tweets)

    async def run(
        self,
        job_id: UUID,
        user_id: str,
        username: str,
        targets: ScrapeTargets,
        max_tweets: Any = None,
        include_media: bool = True,
        retention: dict[str, Any] | None = None,
    ) -> JobRunResult:
        """
        Process one snapshot scrape job end to end.

        Args:
            job_id: Job being executed
            user_id: Owner of the job and the resulting backup
            username: Account to scrape
            targets: Selected scrape targets
            max_tweets: Explicit timeline window (None lets the budget decide)
            include_media: Re-host profile and tweet media
            retention: {"mode": "guest_30d", "expires_at": ...} for guest backups

        Returns:
            JobRunResult: completed, cancelled or failed

        Raises:
            SQLAlchemyError: A terminal job write failed (the caller retries)
        """
        start_time = time.perf_counter()
        ensure_active = functools.partial(self._jobs.ensure_not_cancelled, job_id)
        throttle = LiveMetricsThrottle.from_settings(self._settings, clock=self._clock)
        runs = ProviderRuns()
        backup_id: UUID | None = None

        def elapsed_ms() -> float:
            return (time.perf_counter() - start_time) * 1000

        async def sync(force: bool = False, **changes: Any) -> None:
            metrics = throttle.update(**changes)
            if not throttle.should_persist(force):
                return
            fields: dict[str, Any] = {"live_metrics": metrics, "provider_runs": runs.model_copy()}
            if backup_id is not None:
                fields["partial_backup_id"] = str(backup_id)
            await self._jobs.merge_payload(job_id, JobPayload(**fields))
            await self._jobs.report_progress(
                job_id,
                snapshot_phase_progress(metrics.phase, metrics.media_processed, metrics.media_total),
                f"In progress ({metrics.phase})",
            )
            throttle.mark_persisted()

        async def should_cancel() -> bool:
            return await self._jobs.is_cancellation_requested(job_id)

        try:
            await self._jobs.start_processing(job_id, PHASE_PROGRESS["preparing"], "In progress")
            await self._jobs.merge_payload(job_id, JobPayload(lifecycle_state=LifecycleState.PROCESSING))
            await sync(phase="preparing")
            await ensure_active()

            plan = await self.plan_budget(user_id, targets, max_tweets)
            await self._jobs.merge_payload(
                job_id,
                JobPayload(
                    api_budget=plan.to_payload(include_media),
                    username=username,
                    targets=targets.model_dump(),
                    max_tweets=plan.max_tweets,
                    social_graph_max_items=plan.social_graph_max_items,
                    include_media=include_media,
                    retention=retention_block(retention),
                ),
            )

            if not self._provider.is_configured():
                raise ScrapeProviderError(
                    f"{self._provider.provider_name} is not configured. Please set up API keys."
                )

            await sync(phase="scraping")
            await ensure_active()

            params = ScrapeParams(
                username=username,
                max_tweets=plan.max_tweets,
                targets=targets,
                social_graph_max_items=plan.social_graph_max_items,
            )
            result = await self._consume_provider(job_id, params, should_cancel, ensure_active, runs, sync)
            await ensure_active()

            timeline_with_media = [t for t in (*result.tweets, *result.replies) if t.media]
            tweet_media_count = sum(len(t.media) for t in timeline_with_media)
            profile_media_count = 0
            if include_media and targets.profile:
                metadata = result.metadata
                profile_media_count = int(bool(metadata.profile_image_url)) + int(bool(metadata.cover_image_url))
            media_total = tweet_media_count + profile_media_count if include_media else 0

            await sync(
                phase="saving",
                tweets_fetched=len(result.tweets),
                replies_fetched=len(result.replies),
                followers_fetched=len(result.followers),
                following_fetched=len(result.following),
                media_total=media_total,
                api_cost_usd=float(round_usd(result.cost.total_cost)),
            )
            await ensure_active()

            data = build_snapshot_data(result, targets, plan, include_media, media_total, retention)
            backup = await self._backups.create_backup(user_id, BACKUP_TYPE, BACKUP_SOURCE, data)
            backup_id = backup.id
            await self._jobs.merge_payload(job_id, JobPayload(partial_backup_id=str(backup_id)))
            await ensure_active()

            await sync(phase="media" if media_total > 0 else "finalizing")
            await ensure_active()

            if include_media and media_total > 0:
                await self._rehost_media(user_id, backup_id, result, targets, ensure_active, sync)

            await sync(phase="finalizing")
            await ensure_active()
            await self._backups.recalculate_storage(backup_id)

            await self._jobs.merge_payload(
                job_id,
                JobPayload(
                    lifecycle_state=LifecycleState.COMPLETED,
                    partial_backup_id=None,
                    completed_backup_id=str(backup_id),
                    live_metrics=throttle.current,
                    provider_runs=ProviderRuns(),
                ),
            )

        except CancellationSignal:
            logger.info(f"{__name__}:run - Cancellation requested, cleaning up", extra={"job_id": str(job_id)})
            await self._jobs.enter_cleanup(job_id, CLEANUP_MESSAGE)
            discarded = await self._discard_partial_backup(backup_id, user_id)
            await self._jobs.mark_cancelled(
                job_id,
                JobPayload(
                    live_metrics=throttle.current,
                    provider_runs=ProviderRuns(),
                    **partial_backup_fields(discarded),
                ),
            )
            return JobRunResult(job_id=job_id, outcome=JobOutcome.CANCELLED, processing_time_ms=elapsed_ms())

        except Exception as e:
            log_exception_with_context(
                logger,
                f"{__name__}:run - Snapshot job failed",
                e,
                job_id=job_id,
                user_id=user_id,
                backup_id=backup_id,
            )
            discarded = await self._discard_partial_backup(backup_id, user_id)
            message = public_message(e, GENERIC_FAILURE_MESSAGE)
            await self._jobs.fail_with(
                job_id,
                message,
                payload=JobPayload(
                    lifecycle_state=LifecycleState.FAILED,
                    live_metrics=throttle.current,
                    provider_runs=ProviderRuns(),
                    error=JobError(type=type(e).__name__, message=str(e), details=getattr(e, "details", {})),
                    **partial_backup_fields(discarded),
                ),
            )
            return JobRunResult(
                job_id=job_id,
                outcome=JobOutcome.FAILED,
                error_message=message,
                processing_time_ms=elapsed_ms(),
            )

        # Terminal write errors propagate without cleanup; the worker retries them.
        await self._jobs.complete_with_result(job_id, backup_id, COMPLETED_MESSAGE)
        logger.info(
            f"{__name__}:run - Snapshot job completed",
            extra={
                "job_id": str(job_id),
                "backup_id": str(backup_id),
                "api_cost_usd": throttle.current.api_cost_usd,
            },
        )
        return JobRunResult(
            job_id=job_id,
            outcome=JobOutcome.COMPLETED,
            backup_id=backup_id,
            processing_time_ms=elapsed_ms(),
        )

    async def _consume_provider(
        self,
        job_id: UUID,
        params: ScrapeParams,
        should_cancel: ShouldCancel,
        ensure_active: EnsureActive,
        runs: ProviderRuns,
        sync: SyncMetrics,
    ) -> ScrapeResult:
        result: ScrapeResult | None = None
        async with aclosing(self._provider.run_scrape(params, should_cancel)) as events:
            async for event in events:
                await ensure_active()
                if isinstance(event, ScrapeResult):
                    result = event
                    break
                if not isinstance(event, ScrapeProgress):
                    continue

                force = False
                if event.timeline_run_id and event.timeline_run_id != runs.timeline_run_id:
                    runs.timeline_run_id = event.timeline_run_id
                    force = True
                if event.social_graph_run_id and event.social_graph_run_id != runs.social_graph_run_id:
                    runs.social_graph_run_id = event.social_graph_run_id
                    force = True

                await sync(
                    force,
                    phase=event.phase,
                    tweets_fetched=event.tweets_fetched,
                    replies_fetched=event.replies_fetched,
                    followers_fetched=event.followers_fetched,
                    following_fetched=event.following_fetched,
                    api_cost_usd=float(round_usd(event.api_cost_usd)),
                )

        if result is None:
            raise ScrapeProviderError("Scrape provider finished without a result")

        logger.info(
            f"{__name__}:_consume_provider - Provider run finished",
            extra={
                "job_id": str(job_id),
                "tweets": len(result.tweets),
                "replies": len(result.replies),
                "followers": len(result.followers),
                "following": len(result.following),
                "is_partial": result.metadata.is_partial,
            },
        )
        return result

    async def _rehost_media(
        self,
        user_id: str,
        backup_id: UUID,
        result: ScrapeResult,
        targets: ScrapeTargets,
        ensure_active: EnsureActive,
        sync: SyncMetrics,
    ) -> None:
        processed = 0

        async def on_item() -> None:
            nonlocal processed
            processed += 1
            await sync(phase="media", media_processed=processed)

        patch: dict[str, Any] = {}

        if targets.profile:
            metadata = result.metadata
            profile_media = await self._media_task.upload_profile_media(
                user_id,
                backup_id,
                metadata.profile_image_url,
                metadata.cover_image_url,
                ensure_active,
                on_item,
            )
            if profile_media.profile_image_url or profile_media.cover_image_url:
                backup = await self._backups.get_backup(backup_id)
                profile = dict((backup.data or {}).get("profile") or {})
                if profile_media.profile_image_url:
                    profile["profileImageUrl"] = profile_media.profile_image_url
                if profile_media.cover_image_url:
                    profile["coverImageUrl"] = profile_media.cover_image_url
                patch["profile"] = profile

        if any(t.media for t in (*result.tweets, *result.replies)):
            tweets, tweets_rehosted = await self._media_task.upload_tweet_media(
                user_id, backup_id, result.tweets, ensure_active, on_item
            )
            replies, replies_rehosted = await self._media_task.upload_tweet_media(
                user_id, backup_id, result.replies, ensure_active, on_item
            )
            if tweets_rehosted or replies_rehosted:
                rewritten = result.model_copy(update={"tweets": tweets, "replies": replies})
                records = rewritten.records_payload()
                patch["tweets"] = records["tweets"]
                patch["replies"] = records["replies"]

        if patch:
            await self._backups.patch_backup_data(backup_id, patch)

        logger.info(
            f"{__name__}:_rehost_media - Media stage finished",
            extra={"backup_id": str(backup_id), "media_processed": processed},
        )

    async def _discard_partial_backup(self, backup_id: UUID | None, user_id: str) -> bool:
        if backup_id is None:
            return True
        try:
            result = await self._backups.delete_backup(backup_id, self._blob_store, expected_user_id=user_id)
        except Exception as e:
            logger.error(
                f"{__name__}:_discard_partial_backup - Cleanup failed: {type(e).__name__}: {e}",
                extra={"backup_id": str(backup_id)},
            )
            return False
        logger.info(
            f"{__name__}:_discard_partial_backup - Partial backup removed",
            extra={"backup_id": str(backup_id), "storage_files_deleted": result.storage_files_deleted},
        )
        return True
