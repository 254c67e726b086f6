"""Aggregation for the LLM metrics overview, dashboard stats and failure analytics."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from fnol_console.formatting import format_duration, parse_cost, round_half_up
from fnol_console.models import (
    CostTrendPoint,
    DashboardStats,
    FailureAnalytics,
    LLMMetricsOverview,
)


@dataclass(frozen=True)
class ModelDistributionRow:
    model_name: str
    count: int
    total_tokens: int
    avg_tokens_per_request: int | None


@dataclass(frozen=True)
class MetricsOverviewView:
    total_tokens_today: int
    total_cost_today: Decimal
    avg_cost_per_fnol: Decimal
    cost_trend: tuple[CostTrendPoint, ...]
    model_distribution: tuple[ModelDistributionRow, ...]

    @property
    def has_cost_trend(self) -> bool:
        return bool(self.cost_trend)

    @property
    def has_model_distribution(self) -> bool:
        return bool(self.model_distribution)


@dataclass(frozen=True)
class DashboardSummary:
    stats: DashboardStats
    success_pct: float | None
    failure_pct: float | None
    partial_pct: float | None
    avg_processing_time: str

    @property
    def is_empty(self) -> bool:
        return self.stats.total_fnols_today == 0


def average_tokens_per_request(total_tokens: int, count: int) -> int | None:
    """``round(total_tokens / count)`` with halves rounded up; ``None`` when ``count <= 0``."""
    if count <= 0:
        return None
    return round_half_up(Decimal(total_tokens) / Decimal(count))


def build_metrics_overview(overview: LLMMetricsOverview) -> MetricsOverviewView:
    """Totals pass through verbatim; only per-model averages are computed here."""
    return MetricsOverviewView(
        total_tokens_today=overview.total_tokens_today,
        total_cost_today=parse_cost(overview.total_cost_today),
        avg_cost_per_fnol=parse_cost(overview.avg_cost_per_fnol),
        cost_trend=tuple(overview.cost_trend),
        model_distribution=tuple(
            ModelDistributionRow(
                model_name=row.model_name,
                count=row.count,
                total_tokens=row.total_tokens,
                avg_tokens_per_request=average_tokens_per_request(row.total_tokens, row.count),
            )
            for row in overview.model_distribution
        ),
    )


def summarize_dashboard_stats(stats: DashboardStats) -> DashboardSummary:
    # Shares use the sum of the status buckets; total_fnols_today may also
    # count cases still in flight.
    bucket_total = stats.success_count + stats.failure_count + stats.partial_count
    return DashboardSummary(
        stats=stats,
        success_pct=_share(stats.success_count, bucket_total),
        failure_pct=_share(stats.failure_count, bucket_total),
        partial_pct=_share(stats.partial_count, bucket_total),
        avg_processing_time=format_duration(stats.avg_processing_time_ms),
    )


def top_failing_stage(analytics: FailureAnalytics) -> str | None:
    if not analytics.failure_by_stage:
        return None
    best = max(analytics.failure_by_stage, key=lambda row: row.failure_count)
    return best.stage_name if best.failure_count > 0 else None


def total_failures(analytics: FailureAnalytics) -> int:
    return sum(row.failure_count for row in analytics.failure_trend)


def _share(part: int, whole: int) -> float | None:
    if whole <= 0:
        return None
    return round(100.0 * part / whole, 1)
