import itertools
from decimal import Decimal

import pytest

from fnol_console.detail import build_detail_view, build_timeline, rollup_llm_metrics, sort_stages
from fnol_console.formatting import format_cost, format_duration, humanize_stage_name
from fnol_console.models import FNOLDetail, FNOLTrace, LLMMetric, StageExecution


def _stage(stage_id: str, start_time: str, **kwargs) -> StageExecution:
    return StageExecution(
        id=stage_id,
        fnol_id="F1",
        stage_name=kwargs.pop("stage_name", "parse_email"),
        status=kwargs.pop("status", "SUCCESS"),
        start_time=start_time,
        **kwargs,
    )


def _metric(metric_id: str, cost: str, tokens: int) -> LLMMetric:
    return LLMMetric(
        id=metric_id,
        fnol_id="F1",
        stage_name="llm_extract",
        model_name="gpt-4o",
        total_tokens=tokens,
        cost_usd=cost,
    )


def test_stages_are_ordered_by_start_time() -> None:
    later = _stage("s2", "2024-01-01T00:00:05Z")
    earlier = _stage("s1", "2024-01-01T00:00:01Z")

    assert [stage.id for stage in sort_stages([later, earlier])] == ["s1", "s2"]


def test_equal_start_times_keep_input_order() -> None:
    stages = [_stage(f"s{i}", "2024-01-01T00:00:00Z") for i in range(4)]
    assert [stage.id for stage in sort_stages(stages)] == ["s0", "s1", "s2", "s3"]


def test_offsets_are_compared_as_instants() -> None:
    utc = _stage("utc", "2024-01-01T01:30:00Z")
    offset = _stage("offset", "2024-01-01T02:00:00+01:00")

    assert [stage.id for stage in sort_stages([utc, offset])] == ["offset", "utc"]


def test_unparseable_start_times_sort_last_in_input_order() -> None:
    stages = [
        _stage("bad1", "not-a-date"),
        _stage("ok", "2024-01-01T00:00:00Z"),
        _stage("bad2", ""),
    ]
    assert [stage.id for stage in sort_stages(stages)] == ["ok", "bad1", "bad2"]


def test_timeline_entries_carry_display_fields() -> None:
    timeline = build_timeline(
        [
            _stage(
                "s1",
                "2024-01-01T00:00:00Z",
                stage_name="llm_extract",
                status="FAILED",
                duration_ms=1500,
                error_code="LLM_TIMEOUT",
                error_message="model did not answer",
            ),
            _stage("s2", "2024-01-01T00:00:02Z", duration_ms=None),
        ]
    )

    first, second = timeline
    assert first.label == "llm extract"
    assert first.duration == "1.50s"
    assert first.has_error
    assert first.error_title == "Error: LLM_TIMEOUT"
    assert second.duration == "N/A"
    assert not second.has_error


@pytest.mark.parametrize(
    ("ms", "expected"),
    [
        (None, "N/A"),
        (0, "0ms"),
        (999, "999ms"),
        (1000, "1.00s"),
        (1500, "1.50s"),
        (1005, "1.01s"),
        (61234, "61.23s"),
    ],
)
def test_format_duration(ms, expected) -> None:
    assert format_duration(ms) == expected


def test_cost_rollup_is_exact_decimal() -> None:
    metrics = [_metric("m1", "0.0010", 100), _metric("m2", "0.0040", 250)]

    rollup = rollup_llm_metrics(metrics)

    assert rollup.total_cost == Decimal("0.0050")
    assert rollup.total_cost_display == "$0.0050"
    assert rollup.total_tokens == 350
    assert rollup.call_count == 2


def test_rollup_is_independent_of_metric_order() -> None:
    metrics = [_metric("a", "0.1", 1), _metric("b", "0.2", 2), _metric("c", "0.3", 3)]
    expected = rollup_llm_metrics(metrics)

    for permutation in itertools.permutations(metrics):
        assert rollup_llm_metrics(list(permutation)) == expected
    assert expected.total_cost == Decimal("0.6")


def test_malformed_cost_counts_as_zero() -> None:
    rollup = rollup_llm_metrics([_metric("m1", "abc", 10), _metric("m2", "0.5", 5), _metric("m3", "NaN", 1)])
    assert rollup.total_cost == Decimal("0.5")
    assert rollup.total_tokens == 16


def test_detail_without_metrics_hides_metrics_panel() -> None:
    detail = FNOLDetail(
        trace=FNOLTrace(fnol_id="F1", status="SUCCESS", start_time="2024-01-01T00:00:00Z", total_duration_ms=250),
        stage_executions=(),
        llm_metrics=(),
    )

    view = build_detail_view(detail)

    assert view.timeline == ()
    assert view.total_cost == Decimal(0)
    assert view.total_tokens == 0
    assert view.total_duration == "250ms"
    assert not view.show_metrics_panel


def test_detail_view_combines_timeline_and_rollup() -> None:
    detail = FNOLDetail(
        trace=FNOLTrace(fnol_id="F1", status="FAILED", start_time="2024-01-01T00:00:00Z", total_duration_ms=1500),
        stage_executions=(
            _stage("s2", "2024-01-01T00:00:01Z"),
            _stage("s1", "2024-01-01T00:00:00Z"),
        ),
        llm_metrics=(_metric("m1", "0.0025", 40),),
    )

    view = build_detail_view(detail)

    assert [entry.stage.id for entry in view.timeline] == ["s1", "s2"]
    assert view.total_duration == "1.50s"
    assert format_cost(view.total_cost) == "$0.0025"
    assert view.show_metrics_panel


def test_humanize_stage_name() -> None:
    assert humanize_stage_name("validate_policy_number") == "validate policy number"
    assert humanize_stage_name("") == "-"
    assert humanize_stage_name(None) == "-"
