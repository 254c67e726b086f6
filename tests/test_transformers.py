import pandas as pd

from fnol_console.charts import cost_trend_chart, failure_by_stage_chart, status_breakdown_chart
from fnol_console.detail import build_timeline
from fnol_console.metrics import ModelDistributionRow, summarize_dashboard_stats
from fnol_console.models import (
    CostTrendPoint,
    DashboardStats,
    FailureAnalytics,
    FNOLListItem,
    LLMMetric,
    StageExecution,
    StageFailureCount,
    TraceStatus,
)
from fnol_console.transformers import (
    build_cost_trend_df,
    build_failure_by_stage_df,
    build_list_df,
    build_llm_metrics_df,
    build_model_distribution_df,
    build_model_distribution_display_df,
    build_timeline_df,
    status_label,
)


def test_build_list_df_formats_rows() -> None:
    df = build_list_df(
        [
            FNOLListItem(
                fnol_id="F1",
                status=TraceStatus.FAILED,
                total_duration_ms=1500,
                failure_stage="llm_extract",
                created_at="2024-01-01T08:30:00Z",
            ),
            FNOLListItem(fnol_id="F2", status="RETRYING"),
        ]
    )

    assert list(df.columns) == ["FNOL ID", "Status", "Duration", "Failure Stage", "Created At"]
    assert df.iloc[0].to_dict() == {
        "FNOL ID": "F1",
        "Status": "Failed",
        "Duration": "1.50s",
        "Failure Stage": "llm_extract",
        "Created At": "2024-01-01 08:30:00 UTC",
    }
    assert df.iloc[1]["Status"] == "Retrying"
    assert df.iloc[1]["Duration"] == "N/A"
    assert df.iloc[1]["Failure Stage"] == "-"


def test_empty_inputs_keep_columns() -> None:
    assert build_list_df([]).empty
    assert list(build_list_df([]).columns)[0] == "FNOL ID"
    assert build_cost_trend_df([]).empty
    assert build_model_distribution_df([]).empty
    assert list(build_model_distribution_display_df(pd.DataFrame()).columns)[-1] == "Avg Tokens/Request"


def test_timeline_df_follows_timeline_order() -> None:
    stages = [
        StageExecution(id="s2", fnol_id="F1", stage_name="ocr", status="SUCCESS", start_time="2024-01-01T00:00:02Z"),
        StageExecution(
            id="s1",
            fnol_id="F1",
            stage_name="parse_email",
            status="FAILED",
            start_time="2024-01-01T00:00:01Z",
            error_code="BAD_MIME",
        ),
    ]

    df = build_timeline_df(build_timeline(stages))

    assert df["Stage"].tolist() == ["parse email", "ocr"]
    assert df["Error Code"].tolist() == ["BAD_MIME", "-"]
    assert df["Started"].tolist() == ["00:00:01", "00:00:02"]


def test_llm_metrics_df_shows_decimal_cost() -> None:
    df = build_llm_metrics_df(
        [
            LLMMetric(
                id="m1",
                fnol_id="F1",
                stage_name="llm_extract",
                model_name="gpt-4o",
                total_tokens=150,
                cost_usd="0.00125",
                latency_ms=820,
            )
        ]
    )

    row = df.iloc[0]
    assert row["Cost (USD)"] == "$0.0013"
    assert row["Latency"] == "820ms"
    assert row["Temperature"] == "N/A"


def test_cost_trend_df_coerces_costs_to_numbers() -> None:
    df = build_cost_trend_df(
        [
            CostTrendPoint(date="2024-01-01", total_cost="0.25"),
            CostTrendPoint(date="2024-01-02", total_cost="oops"),
        ]
    )

    assert df["total_cost"].tolist() == [0.25, 0.0]
    assert df["date"].tolist() == ["2024-01-01", "2024-01-02"]


def test_model_distribution_display_uses_placeholder_for_missing_average() -> None:
    model_df = build_model_distribution_df(
        [
            ModelDistributionRow(model_name="gpt-4o", count=3, total_tokens=1000, avg_tokens_per_request=333),
            ModelDistributionRow(model_name="idle", count=0, total_tokens=0, avg_tokens_per_request=None),
        ]
    )

    display = build_model_distribution_display_df(model_df)

    assert display["Avg Tokens/Request"].tolist() == ["333", "-"]
    assert display["Total Tokens"].tolist() == ["1,000", "0"]


def test_failure_by_stage_df_sorted_descending() -> None:
    analytics = FailureAnalytics(
        failure_by_stage=(
            StageFailureCount(stage_name="ocr", failure_count=1),
            StageFailureCount(stage_name="llm_extract", failure_count=4),
            StageFailureCount(stage_name="parse_email", failure_count=1),
        )
    )

    df = build_failure_by_stage_df(analytics)

    assert df["stage_name"].tolist() == ["llm extract", "ocr", "parse email"]


def test_status_label() -> None:
    assert status_label(TraceStatus.PARTIAL) == "Partial"
    assert status_label("SKIPPED") == "Skipped"


def test_charts_render_placeholders_for_empty_data() -> None:
    empty = cost_trend_chart(build_cost_trend_df([]))
    assert empty.layout.annotations[0].text == "No cost data available"

    stage_fig = failure_by_stage_chart(
        build_failure_by_stage_df(FailureAnalytics(failure_by_stage=(StageFailureCount("ocr", 2),)))
    )
    assert len(stage_fig.data) == 1

    no_cases = status_breakdown_chart(summarize_dashboard_stats(DashboardStats()))
    assert len(no_cases.layout.annotations) == 1
