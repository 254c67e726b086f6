"""Per-case aggregation: ordered stage timeline and LLM cost/token rollups."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from fnol_console.formatting import (
    format_cost,
    format_duration,
    humanize_stage_name,
    parse_cost,
    parse_timestamp,
)
from fnol_console.models import FNOLDetail, FNOLTrace, LLMMetric, StageExecution

_UNPARSEABLE_SORT_KEY = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class TimelineEntry:
    stage: StageExecution
    label: str
    duration: str
    has_error: bool

    @property
    def error_title(self) -> str:
        return f"Error: {self.stage.error_code or 'Unknown'}"


@dataclass(frozen=True)
class LLMRollup:
    total_cost: Decimal = Decimal(0)
    total_tokens: int = 0
    call_count: int = 0

    @property
    def total_cost_display(self) -> str:
        return format_cost(self.total_cost)


@dataclass(frozen=True)
class FNOLDetailView:
    trace: FNOLTrace
    timeline: tuple[TimelineEntry, ...]
    rollup: LLMRollup
    llm_metrics: tuple[LLMMetric, ...]

    @property
    def total_cost(self) -> Decimal:
        return self.rollup.total_cost

    @property
    def total_tokens(self) -> int:
        return self.rollup.total_tokens

    @property
    def total_duration(self) -> str:
        return format_duration(self.trace.total_duration_ms)

    @property
    def show_metrics_panel(self) -> bool:
        return bool(self.llm_metrics)


def sort_stages(stages: Iterable[StageExecution]) -> list[StageExecution]:
    """Order stages by ``start_time``.

    The sort is stable, so equal timestamps keep their input order.
    Stages with a missing or malformed ``start_time`` go last, also in input
    order.
    """
    return sorted(stages, key=_stage_sort_key)


def build_timeline(stages: Iterable[StageExecution]) -> tuple[TimelineEntry, ...]:
    return tuple(
        TimelineEntry(
            stage=stage,
            label=humanize_stage_name(stage.stage_name),
            duration=format_duration(stage.duration_ms),
            has_error=bool(stage.error_message),
        )
        for stage in sort_stages(stages)
    )


def rollup_llm_metrics(metrics: Sequence[LLMMetric]) -> LLMRollup:
    """Sum decimal cost and total tokens over every metric for one case.

    Always recomputed from the full list; permuting ``metrics`` yields the
    same totals.
    """
    total_cost = sum((parse_cost(metric.cost_usd) for metric in metrics), Decimal(0))
    total_tokens = sum(metric.total_tokens for metric in metrics)
    return LLMRollup(total_cost=total_cost, total_tokens=total_tokens, call_count=len(metrics))


def build_detail_view(detail: FNOLDetail) -> FNOLDetailView:
    return FNOLDetailView(
        trace=detail.trace,
        timeline=build_timeline(detail.stage_executions),
        rollup=rollup_llm_metrics(detail.llm_metrics),
        llm_metrics=tuple(detail.llm_metrics),
    )


def _stage_sort_key(stage: StageExecution) -> datetime:
    parsed = parse_timestamp(stage.start_time)
    return _UNPARSEABLE_SORT_KEY if parsed is None else parsed
