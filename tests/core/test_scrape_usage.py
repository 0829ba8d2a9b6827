"""
Test suite for monthly snapshot spend accounting.

System role: Verification of the monthly budget inputs
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from backup_engine.core.snapshot_scrape.usage import (
    month_start_utc,
    snapshot_job_cost,
    summarize_monthly_usage,
)


class TestMonthStartUtc:
    def test_aware_datetime_is_converted_to_utc_first(self):
        # Arrange
        plus_five = timezone(timedelta(hours=5))
        now = datetime(2026, 3, 1, 2, 0, tzinfo=plus_five)

        # Act
        start = month_start_utc(now)

        # Assert
        assert start == datetime(2026, 2, 1, tzinfo=timezone.utc)

    def test_naive_datetime_is_treated_as_utc(self):
        assert month_start_utc(datetime(2026, 7, 19, 13, 45)) == datetime(2026, 7, 1, tzinfo=timezone.utc)


class TestSnapshotJobCost:
    """Test where a job's cost is read from."""

    def test_live_metrics_cost_wins(self):
        payload = {"live_metrics": {"api_cost_usd": 0.5}, "api_cost_usd": 2, "scrape": {"total_cost": 3}}
        assert snapshot_job_cost(payload) == Decimal("0.5")

    def test_falls_back_to_top_level_then_scrape_total(self):
        assert snapshot_job_cost({"api_cost_usd": "1.25"}) == Decimal("1.25")
        assert snapshot_job_cost({"scrape": {"total_cost": 3}}) == Decimal("3")

    def test_first_present_value_decides_even_when_invalid(self):
        assert snapshot_job_cost({"live_metrics": {"api_cost_usd": -1}, "api_cost_usd": 4}) == Decimal("0.00")
        assert snapshot_job_cost({"api_cost_usd": "n/a"}) == Decimal("0.00")

    def test_missing_payload_costs_nothing(self):
        assert snapshot_job_cost(None) == Decimal("0.00")
        assert snapshot_job_cost({}) == Decimal("0.00")


class TestSummarizeMonthlyUsage:
    def test_sums_and_rounds(self):
        # Act
        summary = summarize_monthly_usage(
            [{"api_cost_usd": "1.234"}, {"scrape": {"total_cost": 2}}, None],
            "10",
        )

        # Assert
        assert summary.monthly_spent_usd == Decimal("3.23")
        assert summary.monthly_limit_usd == Decimal("10.00")
        assert summary.monthly_remaining_usd == Decimal("6.77")
        assert summary.job_count == 3
