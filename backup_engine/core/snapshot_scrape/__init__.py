"""
Budget-aware snapshot scrape through a paid provider.

Flow: monthly spend -> budget plan -> provider stream (throttled live
metrics) -> snapshot backup -> re-hosted media -> completed job.

Exports: SnapshotScrapePipeline, plan_scrape_budget, ScrapePricing, LiveMetricsThrottle
"""

from .budget import BudgetCaps, ScrapeBudgetPlan, plan_scrape_budget
from .entrypoint import SnapshotScrapePipeline, snapshot_phase_progress
from .live_metrics import LiveMetricsThrottle
from .pricing import ScrapePricing, round_usd
from .usage import ScrapeUsageSummary, month_start_utc, snapshot_job_cost, summarize_monthly_usage

__all__ = [
    "BudgetCaps",
    "LiveMetricsThrottle",
    "ScrapeBudgetPlan",
    "ScrapePricing",
    "ScrapeUsageSummary",
    "SnapshotScrapePipeline",
    "month_start_utc",
    "plan_scrape_budget",
    "round_usd",
    "snapshot_job_cost",
    "snapshot_phase_progress",
    "summarize_monthly_usage",
]
