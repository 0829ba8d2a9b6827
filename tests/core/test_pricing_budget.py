"""
Test suite for scrape pricing and per-run budget planning.

System role: Verification of the budget gate in front of the scrape provider
"""

from decimal import Decimal

import pytest

from backup_engine.boundary.scraping.provider import ScrapeTargets
from backup_engine.core.exceptions import BudgetExceededError, ValidationError
from backup_engine.core.snapshot_scrape.budget import (
    INVALID_MAX_TWEETS_MESSAGE,
    NO_TARGETS_MESSAGE,
    SOCIAL_GRAPH_UNAFFORDABLE_MESSAGE,
    BudgetCaps,
    plan_scrape_budget,
)
from backup_engine.core.snapshot_scrape.pricing import UNBOUNDED_ITEMS, ScrapePricing, round_usd

CAPS = BudgetCaps(monthly_limit_usd=Decimal("10.00"), per_run_limit_usd=Decimal("5.00"), default_tweets=500)


class TestRoundUsd:
    def test_rounds_half_up_to_cents(self):
        assert round_usd("1.005") == Decimal("1.01")
        assert round_usd(2) == Decimal("2.00")

    def test_invalid_amounts_become_zero(self):
        assert round_usd(-1) == Decimal("0.00")
        assert round_usd("abc") == Decimal("0.00")
        assert round_usd(None) == Decimal("0.00")
        assert round_usd(float("inf")) == Decimal("0.00")


class TestScrapePricing:
    """Test cost estimates and their inverses."""

    def test_default_prices_buy_5000_items_for_two_dollars(self):
        # Arrange
        pricing = ScrapePricing()

        # Act / Assert
        assert pricing.max_social_graph_items_for_budget(Decimal("2.00")) == 5000
        assert pricing.max_timeline_items_for_budget("2.00") == 5000
        assert pricing.estimate_timeline_cost(500) == Decimal("0.20")
        assert pricing.estimate_social_graph_cost(5000) == Decimal("2.00")

    def test_zero_or_invalid_counts_cost_nothing(self):
        pricing = ScrapePricing()
        assert pricing.estimate_timeline_cost(0) == Decimal("0.00")
        assert pricing.estimate_social_graph_cost("many") == Decimal("0.00")

    def test_base_cost_with_included_items(self):
        # Arrange
        pricing = ScrapePricing(
            timeline_base_usd=Decimal("0.05"),
            timeline_included_items=20,
            timeline_usd_per_item=Decimal("0.0004"),
        )

        # Act / Assert
        assert pricing.estimate_timeline_cost(20) == Decimal("0.05")
        assert pricing.estimate_timeline_cost(100) == Decimal("0.08")
        assert pricing.max_timeline_items_for_budget("0.04") == 0
        assert pricing.max_timeline_items_for_budget("1.05") == 2520

    def test_free_items_are_unbounded(self):
        pricing = ScrapePricing(timeline_usd_per_item=Decimal("0"))
        assert pricing.max_timeline_items_for_budget(1) == UNBOUNDED_ITEMS

    def test_nothing_fits_in_an_empty_budget(self):
        pricing = ScrapePricing()
        assert pricing.max_timeline_items_for_budget(0) == 0
        assert pricing.max_social_graph_items_for_budget(-3) == 0


class TestPlanScrapeBudget:
    """Test planning against monthly and per-run ceilings."""

    def test_mixed_run_keeps_default_timeline_and_spends_rest_on_social_graph(self):
        # Act
        plan = plan_scrape_budget(ScrapeTargets(tweets=True, followers=True), 0, ScrapePricing(), CAPS)

        # Assert
        assert plan.effective_run_budget_usd == Decimal("5.00")
        assert plan.max_tweets == 500
        assert plan.estimated_timeline_cost_usd == Decimal("0.20")
        assert plan.social_graph_max_items == 12000
        assert plan.estimated_max_run_cost_usd == Decimal("5.00")

    def test_social_graph_only_with_two_dollars_left(self):
        # Act
        plan = plan_scrape_budget(ScrapeTargets(followers=True), "8.00", ScrapePricing(), CAPS)

        # Assert
        assert plan.monthly_remaining_usd == Decimal("2.00")
        assert plan.effective_run_budget_usd == Decimal("2.00")
        assert plan.max_tweets == 1
        assert plan.social_graph_max_items == 5000

    def test_timeline_only_uses_whole_budget(self):
        plan = plan_scrape_budget(ScrapeTargets(tweets=True), 0, ScrapePricing(), CAPS)
        assert plan.max_tweets == 12500
        assert plan.social_graph_max_items is None

    def test_explicit_window_is_kept(self):
        plan = plan_scrape_budget(ScrapeTargets(replies=True), 0, ScrapePricing(), CAPS, requested_max_tweets="100")
        assert plan.max_tweets == 100
        assert plan.estimated_timeline_cost_usd == Decimal("0.04")

    def test_payload_shape(self):
        # Act
        payload = plan_scrape_budget(ScrapeTargets(tweets=True), 0, ScrapePricing(), CAPS).to_payload(
            include_media=True
        )

        # Assert
        assert payload["monthly_limit_usd"] == 10.0
        assert payload["effective_run_budget_usd"] == 5.0
        assert payload["max_tweets"] == 12500
        assert payload["include_media"] is True
        assert payload["social_graph_max_items"] is None

    def test_monthly_budget_reached(self):
        with pytest.raises(BudgetExceededError) as exc_info:
            plan_scrape_budget(ScrapeTargets(tweets=True), "10.00", ScrapePricing(), CAPS)
        assert exc_info.value.message == "Monthly snapshot token budget reached ($10.00 / $10.00)."
        assert exc_info.value.public is True

    def test_explicit_window_too_expensive(self):
        with pytest.raises(BudgetExceededError) as exc_info:
            plan_scrape_budget(ScrapeTargets(tweets=True), 0, ScrapePricing(), CAPS, requested_max_tweets=20000)
        assert exc_info.value.message == (
            "This request needs at least $8.00 in snapshot tokens for timeline/profile data, "
            "but only $5.00 is currently available for a single run."
        )

    def test_social_graph_unaffordable(self):
        with pytest.raises(BudgetExceededError) as exc_info:
            plan_scrape_budget(ScrapeTargets(tweets=True, following=True), "9.99", ScrapePricing(), CAPS)
        assert exc_info.value.message == SOCIAL_GRAPH_UNAFFORDABLE_MESSAGE

    def test_no_targets(self):
        with pytest.raises(ValidationError) as exc_info:
            plan_scrape_budget(ScrapeTargets(), 0, ScrapePricing(), CAPS)
        assert exc_info.value.message == NO_TARGETS_MESSAGE

    @pytest.mark.parametrize("value", ["abc", 0, -5, 1.5, True])
    def test_invalid_explicit_window(self, value):
        with pytest.raises(ValidationError) as exc_info:
            plan_scrape_budget(ScrapeTargets(tweets=True), 0, ScrapePricing(), CAPS, requested_max_tweets=value)
        assert exc_info.value.message == INVALID_MAX_TWEETS_MESSAGE

    def test_window_ignored_without_timeline_targets(self):
        plan = plan_scrape_budget(ScrapeTargets(profile=True), 0, ScrapePricing(), CAPS, requested_max_tweets="abc")
        assert plan.max_tweets == 1
