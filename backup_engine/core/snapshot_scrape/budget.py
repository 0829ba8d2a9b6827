"""
Per-run scrape budget planning.

Decides, before the provider is called, how many timeline items and social
graph entries a run may request so that the estimated cost stays under both
the per-run ceiling and what is left of the monthly ceiling. A request that
cannot fit is rejected with BudgetExceededError and never reaches the
provider.

Dependencies: backup_engine.core.snapshot_scrape.pricing
System role: Budget gate of the snapshot scrape pipeline
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from backup_engine.boundary.scraping.provider import ScrapeTargets
from backup_engine.configs.scrape import ScrapeSettings
from backup_engine.core.exceptions import BudgetExceededError, ValidationError

from .pricing import ScrapePricing, round_usd

logger = logging.getLogger(__name__)

NO_TARGETS_MESSAGE = "Select at least one type of data to scrape."
INVALID_MAX_TWEETS_MESSAGE = "Invalid maxTweets value. It must be a positive integer."
SOCIAL_GRAPH_UNAFFORDABLE_MESSAGE = (
    "Current snapshot token budget cannot fetch followers/following in this run. "
    "Increase token limits or uncheck followers/following."
)


@dataclass(frozen=True)
class BudgetCaps:
    """Monetary ceilings and the default timeline window."""

    monthly_limit_usd: Decimal
    per_run_limit_usd: Decimal
    default_tweets: int = 500

    @classmethod
    def from_settings(cls, settings: ScrapeSettings) -> "BudgetCaps":
        return cls(
            monthly_limit_usd=settings.max_cost_per_month_usd,
            per_run_limit_usd=settings.max_cost_per_run_usd,
            default_tweets=settings.default_tweets,
        )


@dataclass(frozen=True)
class ScrapeBudgetPlan:
    """Outcome of budget planning for one run."""

    monthly_spent_usd: Decimal
    monthly_limit_usd: Decimal
    monthly_remaining_usd: Decimal
    per_run_limit_usd: Decimal
    effective_run_budget_usd: Decimal
    max_tweets: int
    estimated_timeline_cost_usd: Decimal
    social_graph_max_items: int | None
    estimated_social_graph_cost_usd: Decimal

    @property
    def estimated_max_run_cost_usd(self) -> Decimal:
        return round_usd(self.estimated_timeline_cost_usd + self.estimated_social_graph_cost_usd)

    def to_payload(self, include_media: bool | None = None) -> dict[str, Any]:
        """Shape stored in payload.api_budget (amounts as floats)."""
        payload: dict[str, Any] = {
            "monthly_spent_usd": float(self.monthly_spent_usd),
            "monthly_limit_usd": float(self.monthly_limit_usd),
            "monthly_remaining_usd": float(self.monthly_remaining_usd),
            "per_run_limit_usd": float(self.per_run_limit_usd),
            "effective_run_budget_usd": float(self.effective_run_budget_usd),
            "estimated_timeline_cost_usd": float(self.estimated_timeline_cost_usd),
            "estimated_social_graph_cost_usd": float(self.estimated_social_graph_cost_usd),
            "estimated_max_run_cost_usd": float(self.estimated_max_run_cost_usd),
            "max_tweets": self.max_tweets,
            "social_graph_max_items": self.social_graph_max_items,
        }
        if include_media is not None:
            payload["include_media"] = include_media
        return payload


def _explicit_count(value: Any) -> int | None:
    """Validate an explicitly requested timeline window."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(INVALID_MAX_TWEETS_MESSAGE, field="max_tweets")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValidationError(INVALID_MAX_TWEETS_MESSAGE, field="max_tweets")
        value = int(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(INVALID_MAX_TWEETS_MESSAGE, field="max_tweets")
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(INVALID_MAX_TWEETS_MESSAGE, field="max_tweets")
    return value


def _timeline_window(
    targets: ScrapeTargets,
    requested: int | None,
    pricing: ScrapePricing,
    caps: BudgetCaps,
    budget: Decimal,
) -> int:
    if not targets.wants_timeline:
        # The timeline actor still runs once to read the profile.
        return 1
    if requested is not None:
        return requested

    affordable = pricing.max_timeline_items_for_budget(budget)
    if targets.wants_social_graph:
        default_cost = pricing.estimate_timeline_cost(caps.default_tweets)
        count = caps.default_tweets if default_cost <= budget else affordable
    else:
        count = affordable
    return max(1, count)


def plan_scrape_budget(
    targets: ScrapeTargets,
    monthly_spent_usd: Any,
    pricing: ScrapePricing,
    caps: BudgetCaps,
    requested_max_tweets: Any = None,
) -> ScrapeBudgetPlan:
    """
    Plan the spend of one snapshot run.

    Args:
        targets: Selected scrape targets
        monthly_spent_usd: Spend of the owner since the start of the UTC month
        pricing: Provider pricing
        caps: Monthly and per-run ceilings
        requested_max_tweets: Explicit timeline window, None to let the budget decide

    Returns:
        ScrapeBudgetPlan

    Raises:
        ValidationError: No target selected or invalid explicit window
        BudgetExceededError: The request cannot fit in the available budget
    """
    if not targets.any_selected:
        raise ValidationError(NO_TARGETS_MESSAGE, field="targets")
    requested = _explicit_count(requested_max_tweets) if targets.wants_timeline else None

    spent = round_usd(monthly_spent_usd)
    monthly_limit = round_usd(caps.monthly_limit_usd)
    per_run_limit = round_usd(caps.per_run_limit_usd)
    remaining = round_usd(monthly_limit - spent)
    if remaining <= 0:
        raise BudgetExceededError(
            f"Monthly snapshot token budget reached (${spent:.2f} / ${monthly_limit:.2f}).",
            field="budget",
            details={"monthly_spent_usd": str(spent), "monthly_limit_usd": str(monthly_limit)},
        )

    effective = round_usd(min(per_run_limit, remaining))
    max_tweets = _timeline_window(targets, requested, pricing, caps, effective)
    timeline_cost = pricing.estimate_timeline_cost(max_tweets)
    if timeline_cost > effective:
        raise BudgetExceededError(
            f"This request needs at least ${timeline_cost:.2f} in snapshot tokens for "
            f"timeline/profile data, but only ${effective:.2f} is currently available for a single run.",
            field="budget",
            details={"estimated_timeline_cost_usd": str(timeline_cost), "effective_run_budget_usd": str(effective)},
        )

    social_graph_items: int | None = None
    social_graph_cost = Decimal("0.00")
    if targets.wants_social_graph:
        social_graph_items = pricing.max_social_graph_items_for_budget(effective - timeline_cost)
        if social_graph_items <= 0:
            raise BudgetExceededError(SOCIAL_GRAPH_UNAFFORDABLE_MESSAGE, field="budget")
        social_graph_cost = pricing.estimate_social_graph_cost(social_graph_items)

    plan = ScrapeBudgetPlan(
        monthly_spent_usd=spent,
        monthly_limit_usd=monthly_limit,
        monthly_remaining_usd=remaining,
        per_run_limit_usd=per_run_limit,
        effective_run_budget_usd=effective,
        max_tweets=max_tweets,
        estimated_timeline_cost_usd=timeline_cost,
        social_graph_max_items=social_graph_items,
        estimated_social_graph_cost_usd=social_graph_cost,
    )
    logger.info(
        f"{__name__}:plan_scrape_budget - Budget planned",
        extra={
            "effective_run_budget_usd": str(effective),
            "max_tweets": max_tweets,
            "social_graph_max_items": social_graph_items,
        },
    )
    return plan
