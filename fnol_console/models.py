"""Record types returned by the FNOL backend.

Every record is immutable once parsed. Parsers are tolerant: missing optional
fields become ``None``, missing counters become ``0`` and unknown status
strings are kept verbatim so the console renders whatever the backend sends.
``cost_usd`` style fields stay as decimal strings; they are only parsed to
``Decimal`` at aggregation time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TraceStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"


class StageStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class FNOLTrace:
    fnol_id: str
    status: TraceStatus | str
    start_time: str
    end_time: str | None = None
    total_duration_ms: int | None = None
    created_at: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FNOLTrace":
        return cls(
            fnol_id=str(payload.get("fnol_id") or ""),
            status=_coerce_status(payload.get("status"), TraceStatus),
            start_time=str(payload.get("start_time") or ""),
            end_time=_as_optional_str(payload.get("end_time")),
            total_duration_ms=_as_optional_int(payload.get("total_duration_ms")),
            created_at=str(payload.get("created_at") or ""),
        )


@dataclass(frozen=True)
class StageExecution:
    id: str
    fnol_id: str
    stage_name: str
    status: StageStatus | str
    start_time: str
    end_time: str | None = None
    duration_ms: int | None = None
    error_code: str | None = None
    error_message: str | None = None
    created_at: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "StageExecution":
        return cls(
            id=str(payload.get("id") or ""),
            fnol_id=str(payload.get("fnol_id") or ""),
            stage_name=str(payload.get("stage_name") or ""),
            status=_coerce_status(payload.get("status"), StageStatus),
            start_time=str(payload.get("start_time") or ""),
            end_time=_as_optional_str(payload.get("end_time")),
            duration_ms=_as_optional_int(payload.get("duration_ms")),
            error_code=_as_optional_str(payload.get("error_code")),
            error_message=_as_optional_str(payload.get("error_message")),
            created_at=str(payload.get("created_at") or ""),
        )


@dataclass(frozen=True)
class LLMMetric:
    """One recorded language-model invocation.

    ``total_tokens`` is trusted as sent; it is not re-derived from the prompt
    and completion counts even when they disagree.
    """

    id: str
    fnol_id: str
    stage_name: str
    model_name: str
    prompt_version: str = ""
    prompt_hash: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost_usd: str = "0"
    latency_ms: int = 0
    temperature: str | None = None
    created_at: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "LLMMetric":
        return cls(
            id=str(payload.get("id") or ""),
            fnol_id=str(payload.get("fnol_id") or ""),
            stage_name=str(payload.get("stage_name") or ""),
            model_name=str(payload.get("model_name") or "unknown"),
            prompt_version=str(payload.get("prompt_version") or ""),
            prompt_hash=str(payload.get("prompt_hash") or ""),
            prompt_tokens=_as_int(payload.get("prompt_tokens")),
            completion_tokens=_as_int(payload.get("completion_tokens")),
            total_tokens=_as_int(payload.get("total_tokens")),
            cost_usd=_as_decimal_str(payload.get("cost_usd")),
            latency_ms=_as_int(payload.get("latency_ms")),
            temperature=_as_optional_str(payload.get("temperature")),
            created_at=str(payload.get("created_at") or ""),
        )


@dataclass(frozen=True)
class FNOLListItem:
    fnol_id: str
    status: TraceStatus | str
    total_duration_ms: int | None = None
    failure_stage: str | None = None
    created_at: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FNOLListItem":
        return cls(
            fnol_id=str(payload.get("fnol_id") or ""),
            status=_coerce_status(payload.get("status"), TraceStatus),
            total_duration_ms=_as_optional_int(payload.get("total_duration_ms")),
            failure_stage=_as_optional_str(payload.get("failure_stage")),
            created_at=str(payload.get("created_at") or ""),
        )


@dataclass(frozen=True)
class FNOLListResponse:
    items: tuple[FNOLListItem, ...] = ()
    total: int = 0
    page: int = 1
    page_size: int = 0
    total_pages: int = 0

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FNOLListResponse":
        return cls(
            items=tuple(FNOLListItem.from_dict(item) for item in _as_list(payload.get("items"))),
            total=_as_int(payload.get("total")),
            page=_as_int(payload.get("page"), default=1),
            page_size=_as_int(payload.get("page_size")),
            total_pages=_as_int(payload.get("total_pages")),
        )


@dataclass(frozen=True)
class FNOLDetail:
    trace: FNOLTrace
    stage_executions: tuple[StageExecution, ...] = ()
    llm_metrics: tuple[LLMMetric, ...] = ()

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FNOLDetail":
        trace_payload = payload.get("trace")
        return cls(
            trace=FNOLTrace.from_dict(trace_payload if isinstance(trace_payload, dict) else {}),
            stage_executions=tuple(
                StageExecution.from_dict(row) for row in _as_list(payload.get("stage_executions"))
            ),
            llm_metrics=tuple(LLMMetric.from_dict(row) for row in _as_list(payload.get("llm_metrics"))),
        )


@dataclass(frozen=True)
class CostTrendPoint:
    date: str
    total_cost: str


@dataclass(frozen=True)
class ModelUsage:
    model_name: str
    count: int
    total_tokens: int


@dataclass(frozen=True)
class LLMMetricsOverview:
    total_tokens_today: int = 0
    total_cost_today: str = "0"
    avg_cost_per_fnol: str = "0"
    cost_trend: tuple[CostTrendPoint, ...] = ()
    model_distribution: tuple[ModelUsage, ...] = ()

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "LLMMetricsOverview":
        return cls(
            total_tokens_today=_as_int(payload.get("total_tokens_today")),
            total_cost_today=_as_decimal_str(payload.get("total_cost_today")),
            avg_cost_per_fnol=_as_decimal_str(payload.get("avg_cost_per_fnol")),
            cost_trend=tuple(
                CostTrendPoint(
                    date=str(row.get("date") or ""),
                    total_cost=_as_decimal_str(row.get("total_cost")),
                )
                for row in _as_list(payload.get("cost_trend"))
            ),
            model_distribution=tuple(
                ModelUsage(
                    model_name=str(row.get("model_name") or "unknown"),
                    count=_as_int(row.get("count")),
                    total_tokens=_as_int(row.get("total_tokens")),
                )
                for row in _as_list(payload.get("model_distribution"))
            ),
        )


@dataclass(frozen=True)
class StageFailureCount:
    stage_name: str
    failure_count: int


@dataclass(frozen=True)
class ErrorCodeCount:
    error_code: str
    error_count: int


@dataclass(frozen=True)
class FailureTrendPoint:
    date: str
    failure_count: int


@dataclass(frozen=True)
class FailureAnalytics:
    failure_by_stage: tuple[StageFailureCount, ...] = ()
    top_error_codes: tuple[ErrorCodeCount, ...] = ()
    failure_trend: tuple[FailureTrendPoint, ...] = ()

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "FailureAnalytics":
        return cls(
            failure_by_stage=tuple(
                StageFailureCount(
                    stage_name=str(row.get("stage_name") or "unknown"),
                    failure_count=_as_int(row.get("failure_count")),
                )
                for row in _as_list(payload.get("failure_by_stage"))
            ),
            top_error_codes=tuple(
                ErrorCodeCount(
                    error_code=str(row.get("error_code") or "unknown"),
                    error_count=_as_int(row.get("error_count")),
                )
                for row in _as_list(payload.get("top_error_codes"))
            ),
            failure_trend=tuple(
                FailureTrendPoint(
                    date=str(row.get("date") or ""),
                    failure_count=_as_int(row.get("failure_count")),
                )
                for row in _as_list(payload.get("failure_trend"))
            ),
        )


@dataclass(frozen=True)
class DashboardStats:
    total_fnols_today: int = 0
    success_count: int = 0
    failure_count: int = 0
    partial_count: int = 0
    avg_processing_time_ms: int | None = None
    manual_review_percentage: float = 0.0

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "DashboardStats":
        return cls(
            total_fnols_today=_as_int(payload.get("total_fnols_today")),
            success_count=_as_int(payload.get("success_count")),
            failure_count=_as_int(payload.get("failure_count")),
            partial_count=_as_int(payload.get("partial_count")),
            avg_processing_time_ms=_as_optional_int(payload.get("avg_processing_time_ms")),
            manual_review_percentage=_as_float(payload.get("manual_review_percentage")),
        )


@dataclass(frozen=True)
class IngestPayload:
    """Parsed email submitted to the intake endpoint."""

    subject: str
    body: str
    sender: str
    received_at: str
    attachments: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "body": self.body,
            "attachments": list(self.attachments),
            "sender": self.sender,
            "received_at": self.received_at,
        }


def _coerce_status(value: Any, enum_cls: type[Enum]) -> Any:
    raw = str(value or "").strip().upper()
    try:
        return enum_cls(raw)
    except ValueError:
        return str(value or "UNKNOWN")


def _as_list(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [row for row in value if isinstance(row, dict)]


def _as_int(value: Any, *, default: int = 0) -> int:
    parsed = _as_optional_int(value)
    return default if parsed is None else parsed


def _as_optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _as_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _as_decimal_str(value: Any) -> str:
    # JSON floats become their shortest repr: 0.1 -> "0.1".
    if value is None or isinstance(value, bool):
        return "0"
    return str(value).strip() or "0"
