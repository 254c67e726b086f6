"""Plotly chart builders for the Streamlit console."""

from __future__ import annotations

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from fnol_console.config import STATUS_COLORS
from fnol_console.metrics import DashboardSummary

PLOTLY_TEMPLATE = "plotly_white"
CHART_COLORS = ["#3B82F6", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6"]


def empty_figure(message: str) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(
        x=0.5,
        y=0.5,
        text=message,
        showarrow=False,
        xref="paper",
        yref="paper",
        font={"size": 14},
    )
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    fig.update_layout(template=PLOTLY_TEMPLATE, height=320, margin=dict(l=10, r=10, t=40, b=10))
    return fig


def cost_trend_chart(cost_trend_df: pd.DataFrame, title: str = "Cost Trend (Last 7 Days)") -> go.Figure:
    if cost_trend_df.empty:
        return empty_figure("No cost data available")

    fig = px.line(
        cost_trend_df,
        x="date",
        y="total_cost",
        title=title,
        markers=True,
        labels={"date": "Date", "total_cost": "Cost (USD)"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_traces(line={"width": 2, "color": CHART_COLORS[0]})
    fig.update_layout(height=320, margin=dict(l=10, r=10, t=50, b=10))
    return fig


def model_distribution_pie(model_df: pd.DataFrame) -> go.Figure:
    if model_df.empty:
        return empty_figure("No model data available")

    fig = px.pie(
        model_df,
        names="model_name",
        values="count",
        title="Model Distribution",
        color_discrete_sequence=CHART_COLORS,
        template=PLOTLY_TEMPLATE,
    )
    fig.update_layout(height=320, margin=dict(l=10, r=10, t=50, b=10))
    return fig


def model_usage_chart(model_df: pd.DataFrame) -> go.Figure:
    if model_df.empty:
        return empty_figure("No model usage data available")

    melt_df = model_df.melt(
        id_vars=["model_name"],
        value_vars=["total_tokens", "count"],
        var_name="metric",
        value_name="value",
    )
    melt_df["metric"] = melt_df["metric"].map({"total_tokens": "Total Tokens", "count": "Request Count"})

    fig = px.bar(
        melt_df,
        x="model_name",
        y="value",
        color="metric",
        barmode="group",
        title="Model Usage Details",
        labels={"model_name": "Model", "value": "", "metric": ""},
        color_discrete_sequence=CHART_COLORS,
        template=PLOTLY_TEMPLATE,
    )
    fig.update_layout(height=320, margin=dict(l=10, r=10, t=50, b=10), legend_title_text="")
    return fig


def status_breakdown_chart(summary: DashboardSummary) -> go.Figure:
    stats = summary.stats
    df = pd.DataFrame(
        [
            {"status": "SUCCESS", "count": stats.success_count},
            {"status": "FAILED", "count": stats.failure_count},
            {"status": "PARTIAL", "count": stats.partial_count},
        ]
    )
    if df["count"].sum() <= 0:
        return empty_figure("No FNOLs processed today")

    fig = px.pie(
        df,
        names="status",
        values="count",
        hole=0.4,
        title="Today's Outcomes",
        color="status",
        color_discrete_map=STATUS_COLORS,
        template=PLOTLY_TEMPLATE,
    )
    fig.update_layout(height=320, margin=dict(l=10, r=10, t=50, b=10))
    return fig


def failure_by_stage_chart(stage_df: pd.DataFrame) -> go.Figure:
    if stage_df.empty:
        return empty_figure("No stage failures recorded")

    fig = px.bar(
        stage_df,
        x="stage_name",
        y="failure_count",
        title="Failures by Stage",
        labels={"stage_name": "Stage", "failure_count": "Failures"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_traces(marker_color=STATUS_COLORS["FAILED"])
    fig.update_layout(height=320, margin=dict(l=10, r=10, t=50, b=10))
    return fig


def error_codes_chart(error_df: pd.DataFrame) -> go.Figure:
    if error_df.empty:
        return empty_figure("No error codes recorded")

    fig = px.bar(
        error_df,
        x="error_count",
        y="error_code",
        orientation="h",
        title="Top Error Codes",
        labels={"error_code": "Error Code", "error_count": "Occurrences"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_layout(height=320, margin=dict(l=10, r=10, t=50, b=10), yaxis={"autorange": "reversed"})
    return fig


def failure_trend_chart(trend_df: pd.DataFrame) -> go.Figure:
    if trend_df.empty:
        return empty_figure("No failure trend data")

    fig = px.line(
        trend_df,
        x="date",
        y="failure_count",
        markers=True,
        title="Failure Trend",
        labels={"date": "Date", "failure_count": "Failures"},
        template=PLOTLY_TEMPLATE,
    )
    fig.update_traces(line={"width": 2, "color": STATUS_COLORS["FAILED"]})
    fig.update_layout(height=320, margin=dict(l=10, r=10, t=50, b=10))
    return fig
