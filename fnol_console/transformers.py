"""Derived views normalized into pandas DataFrames for display."""

from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from fnol_console.config import STATUS_LABELS
from fnol_console.detail import TimelineEntry
from fnol_console.formatting import (
    EMPTY_CELL,
    NOT_AVAILABLE,
    format_cost,
    format_duration,
    format_timestamp,
    humanize_stage_name,
)
from fnol_console.metrics import ModelDistributionRow
from fnol_console.models import (
    CostTrendPoint,
    FailureAnalytics,
    FNOLListItem,
    LLMMetric,
)

LIST_COLUMNS = ["FNOL ID", "Status", "Duration", "Failure Stage", "Created At"]
TIMELINE_COLUMNS = ["Stage", "Status", "Started", "Duration", "Error Code", "Error Message"]
LLM_METRIC_COLUMNS = [
    "Stage",
    "Model",
    "Cost (USD)",
    "Tokens",
    "Prompt Tokens",
    "Completion Tokens",
    "Latency",
    "Prompt Version",
    "Temperature",
]
COST_TREND_COLUMNS = ["date", "total_cost"]
MODEL_DISTRIBUTION_COLUMNS = ["model_name", "count", "total_tokens", "avg_tokens_per_request"]


def status_label(status: object) -> str:
    key = getattr(status, "value", status)
    return STATUS_LABELS.get(str(key), str(key).title())


def build_list_df(items: Iterable[FNOLListItem]) -> pd.DataFrame:
    rows = [
        {
            "FNOL ID": item.fnol_id,
            "Status": status_label(item.status),
            "Duration": format_duration(item.total_duration_ms),
            "Failure Stage": item.failure_stage or EMPTY_CELL,
            "Created At": format_timestamp(item.created_at),
        }
        for item in items
    ]
    return pd.DataFrame(rows, columns=LIST_COLUMNS)


def build_timeline_df(timeline: Iterable[TimelineEntry]) -> pd.DataFrame:
    rows = [
        {
            "Stage": entry.label,
            "Status": status_label(entry.stage.status),
            "Started": format_timestamp(entry.stage.start_time, fmt="%H:%M:%S"),
            "Duration": entry.duration,
            "Error Code": entry.stage.error_code or EMPTY_CELL,
            "Error Message": entry.stage.error_message or EMPTY_CELL,
        }
        for entry in timeline
    ]
    return pd.DataFrame(rows, columns=TIMELINE_COLUMNS)


def build_llm_metrics_df(metrics: Iterable[LLMMetric]) -> pd.DataFrame:
    rows = [
        {
            "Stage": humanize_stage_name(metric.stage_name),
            "Model": metric.model_name,
            "Cost (USD)": format_cost(metric.cost_usd),
            "Tokens": metric.total_tokens,
            "Prompt Tokens": metric.prompt_tokens,
            "Completion Tokens": metric.completion_tokens,
            "Latency": f"{metric.latency_ms}ms",
            "Prompt Version": metric.prompt_version or EMPTY_CELL,
            "Temperature": metric.temperature or NOT_AVAILABLE,
        }
        for metric in metrics
    ]
    return pd.DataFrame(rows, columns=LLM_METRIC_COLUMNS)


def build_cost_trend_df(points: Iterable[CostTrendPoint]) -> pd.DataFrame:
    """Chart-ready cost series in backend order.

    Costs become floats here and nowhere else; the canonical records keep
    the decimal strings.
    """
    rows = [{"date": point.date, "total_cost": point.total_cost} for point in points]
    df = pd.DataFrame(rows, columns=COST_TREND_COLUMNS)
    if df.empty:
        return df
    df["total_cost"] = pd.to_numeric(df["total_cost"], errors="coerce").fillna(0.0)
    return df


def build_model_distribution_df(rows: Iterable[ModelDistributionRow]) -> pd.DataFrame:
    records = [
        {
            "model_name": row.model_name,
            "count": row.count,
            "total_tokens": row.total_tokens,
            "avg_tokens_per_request": row.avg_tokens_per_request,
        }
        for row in rows
    ]
    df = pd.DataFrame(records, columns=MODEL_DISTRIBUTION_COLUMNS)
    if df.empty:
        return df
    df["avg_tokens_per_request"] = df["avg_tokens_per_request"].astype("Int64")
    return df


def build_model_distribution_display_df(model_df: pd.DataFrame) -> pd.DataFrame:
    if model_df.empty:
        return pd.DataFrame(columns=["Model Name", "Requests", "Total Tokens", "Avg Tokens/Request"])

    display = pd.DataFrame(
        {
            "Model Name": model_df["model_name"],
            "Requests": model_df["count"],
            "Total Tokens": model_df["total_tokens"].map(lambda value: f"{int(value):,}"),
            "Avg Tokens/Request": model_df["avg_tokens_per_request"].map(
                lambda value: EMPTY_CELL if pd.isna(value) else f"{int(value):,}"
            ),
        }
    )
    return display


def build_failure_by_stage_df(analytics: FailureAnalytics) -> pd.DataFrame:
    rows = [
        {"stage_name": humanize_stage_name(row.stage_name), "failure_count": row.failure_count}
        for row in analytics.failure_by_stage
    ]
    df = pd.DataFrame(rows, columns=["stage_name", "failure_count"])
    if df.empty:
        return df
    return df.sort_values("failure_count", ascending=False, kind="stable").reset_index(drop=True)


def build_error_codes_df(analytics: FailureAnalytics) -> pd.DataFrame:
    rows = [
        {"error_code": row.error_code, "error_count": row.error_count}
        for row in analytics.top_error_codes
    ]
    return pd.DataFrame(rows, columns=["error_code", "error_count"])


def build_failure_trend_df(analytics: FailureAnalytics) -> pd.DataFrame:
    rows = [{"date": row.date, "failure_count": row.failure_count} for row in analytics.failure_trend]
    return pd.DataFrame(rows, columns=["date", "failure_count"])
