"""
Live metrics throttling.

Scrape progress events arrive far more often than the job row should be
written. The throttle keeps the latest counters in memory and decides when
they are worth persisting into payload.live_metrics.

Dependencies: backup_engine.models.job
System role: Write-rate limiter for snapshot progress
"""

import time
from decimal import Decimal
from typing import Any, Callable

from backup_engine.configs.scrape import ScrapeSettings
from backup_engine.models.job import LiveMetrics

Clock = Callable[[], float]

TIMELINE_FIELDS = ("tweets_fetched", "replies_fetched")
SOCIAL_FIELDS = ("followers_fetched", "following_fetched")
MEDIA_FIELDS = ("media_processed", "media_total")


class LiveMetricsThrottle:
    """
    Decide when live metrics should be written.

    A write is due when it is forced, when the phase changed, when the cost
    moved by at least `cost_delta_usd`, or when `max_silence_seconds` passed
    since the last write, even with nothing changed. A counter that moved by at
    least its step (or left zero) also makes a write due, but only once
    `min_interval_seconds` passed since the last write.

    Usage:
        throttle = LiveMetricsThrottle.from_settings(settings)
        throttle.update(phase="scraping", tweets_fetched=40)
        if throttle.should_persist():
            await jobs.merge_payload(job_id, {"live_metrics": throttle.snapshot()})
            throttle.mark_persisted()
    """

    def __init__(
        self,
        timeline_step: int = 10,
        social_step: int = 50,
        media_step: int = 25,
        min_interval_seconds: float = 0.5,
        max_silence_seconds: float = 1.5,
        cost_delta_usd: Decimal = Decimal("0.01"),
        clock: Clock = time.monotonic,
    ) -> None:
        self._steps: dict[str, int] = {
            **{name: timeline_step for name in TIMELINE_FIELDS},
            **{name: social_step for name in SOCIAL_FIELDS},
            **{name: media_step for name in MEDIA_FIELDS},
        }
        self._min_interval = min_interval_seconds
        self._max_silence = max_silence_seconds
        self._cost_delta = Decimal(cost_delta_usd)
        self._clock = clock

        self.current = LiveMetrics()
        self._persisted: LiveMetrics | None = None
        self._persisted_at: float | None = None

    @classmethod
    def from_settings(cls, settings: ScrapeSettings, clock: Clock = time.monotonic) -> "LiveMetricsThrottle":
        return cls(
            timeline_step=settings.live_timeline_step,
            social_step=settings.live_social_step,
            media_step=settings.live_media_step,
            min_interval_seconds=settings.live_min_persist_seconds,
            max_silence_seconds=settings.live_max_silence_seconds,
            cost_delta_usd=settings.live_cost_delta_usd,
            clock=clock,
        )

    def update(self, **changes: Any) -> LiveMetrics:
        """Apply counter changes; unknown fields raise a pydantic error."""
        data = self.current.model_dump()
        data.update(changes)
        self.current = LiveMetrics.model_validate(data)
        return self.current

    def snapshot(self) -> dict[str, Any]:
        return self.current.model_dump(mode="json")

    def should_persist(self, force: bool = False) -> bool:
        if force or self._persisted is None or self._persisted_at is None:
            return True

        elapsed = self._clock() - self._persisted_at
        if elapsed >= self._max_silence:
            return True

        previous = self._persisted
        current = self.current
        if current == previous:
            return False
        if current.phase != previous.phase:
            return True

        cost_moved = abs(Decimal(str(current.api_cost_usd)) - Decimal(str(previous.api_cost_usd)))
        if cost_moved >= self._cost_delta:
            return True

        if elapsed < self._min_interval:
            return False

        for name, step in self._steps.items():
            before = getattr(previous, name)
            after = getattr(current, name)
            if before == 0 and after != 0:
                return True
            if abs(after - before) >= step:
                return True
        return False

    def mark_persisted(self) -> None:
        self._persisted = self.current.model_copy()
        self._persisted_at = self._clock()
