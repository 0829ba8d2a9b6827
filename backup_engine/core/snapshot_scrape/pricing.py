"""
Scrape provider pricing.

Cost estimates and their inverses (how many items a budget buys) for the
timeline and social-graph actors. All arithmetic is Decimal and every
amount that leaves this module is rounded to the cent, half-up.

Dependencies: decimal (stdlib), backup_engine.configs.scrape
System role: Cost model for the budget-aware scrape orchestrator
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from backup_engine.configs.scrape import ScrapeSettings

CENT = Decimal("0.01")
ZERO_USD = Decimal("0.00")
UNBOUNDED_ITEMS = 2**53 - 1


def to_decimal(value: Any) -> Decimal:
    """Best-effort Decimal conversion; unparsable input becomes NaN."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        return Decimal("NaN")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("NaN")


def round_usd(value: Any) -> Decimal:
    """
    Round a dollar amount to cents, half-up.

    Negative, zero, non-finite and unparsable amounts all become 0.00.

    Example:
        >>> round_usd("1.005")
        Decimal('1.01')
    """
    amount = to_decimal(value)
    if not amount.is_finite() or amount <= 0:
        return ZERO_USD
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _item_count(items: Any) -> int:
    amount = to_decimal(items)
    if not amount.is_finite() or amount <= 0:
        return 0
    return _floor(amount)


@dataclass(frozen=True)
class ScrapePricing:
    """Per-item prices of the scraping provider."""

    timeline_base_usd: Decimal = Decimal("0")
    timeline_included_items: int = 0
    timeline_usd_per_item: Decimal = Decimal("0.0004")
    social_graph_usd_per_item: Decimal = Decimal("0.0004")

    @classmethod
    def from_settings(cls, settings: ScrapeSettings) -> "ScrapePricing":
        """Build pricing from settings, converting per-1000 prices to per-item."""
        return cls(
            timeline_base_usd=settings.timeline_base_usd,
            timeline_included_items=settings.timeline_included_items,
            timeline_usd_per_item=settings.timeline_usd_per_1000 / 1000,
            social_graph_usd_per_item=settings.social_graph_usd_per_1000 / 1000,
        )

    def estimate_timeline_cost(self, items: Any) -> Decimal:
        """Cost of `items` timeline items: base + items beyond the included ones."""
        count = _item_count(items)
        if count <= 0:
            return ZERO_USD
        extra = max(0, count - self.timeline_included_items)
        return round_usd(self.timeline_base_usd + extra * self.timeline_usd_per_item)

    def max_timeline_items_for_budget(self, budget_usd: Any) -> int:
        """
        Largest timeline window that fits in the budget.

        Returns 0 when the budget does not cover the base cost.
        """
        budget = round_usd(budget_usd)
        if budget <= 0:
            return 0

        base = self.timeline_base_usd
        per_item = self.timeline_usd_per_item

        if base <= 0:
            if per_item <= 0:
                return UNBOUNDED_ITEMS
            return max(0, _floor(budget / per_item))

        if budget < base:
            return 0
        if per_item <= 0:
            return UNBOUNDED_ITEMS

        included = max(1, self.timeline_included_items)
        return included + max(0, _floor((budget - base) / per_item))

    def estimate_social_graph_cost(self, items: Any) -> Decimal:
        count = _item_count(items)
        if count <= 0:
            return ZERO_USD
        return round_usd(count * self.social_graph_usd_per_item)

    def max_social_graph_items_for_budget(self, budget_usd: Any) -> int:
        budget = round_usd(budget_usd)
        if budget <= 0 or self.social_graph_usd_per_item <= 0:
            return 0
        return max(0, _floor(budget / self.social_graph_usd_per_item))
