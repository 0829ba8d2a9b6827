"""
Test suite for LiveMetricsThrottle.

System role: Verification of the live metrics write-rate limiter
"""

from decimal import Decimal

from backup_engine.core.snapshot_scrape.live_metrics import LiveMetricsThrottle


class FakeClock:
    def __init__(self) -> None:
        self.ticks = 0

    def advance(self, ticks: int = 1) -> None:
        self.ticks += ticks

    def __call__(self) -> float:
        return self.ticks * 0.1


def _persisted(throttle: LiveMetricsThrottle) -> LiveMetricsThrottle:
    throttle.should_persist(force=True)
    throttle.mark_persisted()
    return throttle


class TestLiveMetricsThrottle:
    """Test when live metrics are written."""

    def test_first_update_is_always_written(self):
        throttle = LiveMetricsThrottle(clock=FakeClock())
        throttle.update(tweets_fetched=1)
        assert throttle.should_persist() is True

    def test_hundred_increments_every_100ms_write_ten_times(self):
        # Arrange
        clock = FakeClock()
        throttle = LiveMetricsThrottle(clock=clock)
        written: list[int] = []

        # Act
        for count in range(1, 101):
            clock.advance()
            throttle.update(phase="scraping", tweets_fetched=count)
            if throttle.should_persist():
                throttle.mark_persisted()
                written.append(count)

        # Assert
        assert written == [1, 11, 21, 31, 41, 51, 61, 71, 81, 91]
        assert throttle.should_persist(force=True) is True

    def test_unchanged_metrics_wait_within_max_silence(self):
        # Arrange
        clock = FakeClock()
        throttle = _persisted(LiveMetricsThrottle(clock=clock))

        # Act
        clock.advance(10)

        # Assert
        assert throttle.should_persist() is False

    def test_stalled_run_still_writes_heartbeat(self):
        # Arrange
        clock = FakeClock()
        throttle = LiveMetricsThrottle(clock=clock)
        written: list[int] = []

        # Act: the same counters every 2 s for 20 s
        for tick in range(0, 201, 20):
            clock.ticks = tick
            throttle.update(phase="scraping", tweets_fetched=5)
            if throttle.should_persist():
                throttle.mark_persisted()
                written.append(tick)

        # Assert
        assert written == list(range(0, 201, 20))

    def test_phase_change_is_written_immediately(self):
        throttle = _persisted(LiveMetricsThrottle(clock=FakeClock()))
        throttle.update(phase="media")
        assert throttle.should_persist() is True

    def test_cost_change_is_written_immediately(self):
        throttle = _persisted(LiveMetricsThrottle(clock=FakeClock()))
        throttle.update(api_cost_usd=0.01)
        assert throttle.should_persist() is True

    def test_small_cost_change_waits(self):
        throttle = _persisted(LiveMetricsThrottle(clock=FakeClock(), cost_delta_usd=Decimal("0.05")))
        throttle.update(api_cost_usd=0.01)
        assert throttle.should_persist() is False

    def test_step_waits_for_min_interval(self):
        # Arrange
        clock = FakeClock()
        throttle = _persisted(LiveMetricsThrottle(clock=clock))
        throttle.update(followers_fetched=500)

        # Act / Assert
        clock.advance(2)
        assert throttle.should_persist() is False
        clock.advance(3)
        assert throttle.should_persist() is True

    def test_small_change_written_after_max_silence(self):
        # Arrange
        clock = FakeClock()
        throttle = LiveMetricsThrottle(clock=clock)
        throttle.update(tweets_fetched=5)
        _persisted(throttle)
        throttle.update(tweets_fetched=6)

        # Act / Assert
        clock.advance(10)
        assert throttle.should_persist() is False
        clock.advance(5)
        assert throttle.should_persist() is True

    def test_snapshot_is_json_ready(self):
        throttle = LiveMetricsThrottle(clock=FakeClock())
        throttle.update(phase="media", media_processed=2, media_total=4)
        snapshot = throttle.snapshot()
        assert snapshot["phase"] == "media"
        assert snapshot["media_total"] == 4
        assert snapshot["api_cost_usd"] == 0.0
