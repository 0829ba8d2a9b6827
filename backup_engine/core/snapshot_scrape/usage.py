"""
Monthly snapshot spend.

The cost of every snapshot run is kept in its job payload; the monthly
spend of an owner is the sum over the jobs created since the start of the
current UTC month.

Dependencies: backup_engine.core.snapshot_scrape.pricing
System role: Spend accounting behind the monthly budget ceiling
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from .pricing import ZERO_USD, round_usd, to_decimal


def month_start_utc(now: datetime | None = None) -> datetime:
    """First instant of the UTC month containing `now`."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _nested(payload: dict[str, Any], *keys: str) -> Any:
    current: Any = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def snapshot_job_cost(payload: dict[str, Any] | None) -> Decimal:
    """
    Cost recorded for one snapshot job.

    Looks at live_metrics.api_cost_usd, then api_cost_usd, then
    scrape.total_cost; the first value present wins. Missing, negative
    or unparsable costs count as zero.
    """
    if not isinstance(payload, dict):
        return ZERO_USD
    for keys in (("live_metrics", "api_cost_usd"), ("api_cost_usd",), ("scrape", "total_cost")):
        value = _nested(payload, *keys)
        if value is None:
            continue
        amount = to_decimal(value)
        if amount.is_finite() and amount > 0:
            return amount
        return ZERO_USD
    return ZERO_USD


@dataclass(frozen=True)
class ScrapeUsageSummary:
    monthly_spent_usd: Decimal
    monthly_limit_usd: Decimal
    job_count: int

    @property
    def monthly_remaining_usd(self) -> Decimal:
        return round_usd(self.monthly_limit_usd - self.monthly_spent_usd)


def summarize_monthly_usage(payloads: Iterable[dict[str, Any] | None], monthly_limit_usd: Any) -> ScrapeUsageSummary:
    """Sum job costs and pair them with the monthly ceiling."""
    total = ZERO_USD
    count = 0
    for payload in payloads:
        total += snapshot_job_cost(payload)
        count += 1
    return ScrapeUsageSummary(
        monthly_spent_usd=round_usd(total),
        monthly_limit_usd=round_usd(monthly_limit_usd),
        job_count=count,
    )
