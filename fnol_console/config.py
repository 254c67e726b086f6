"""Application configuration for the FNOL observability console."""

from __future__ import annotations

import os

DEFAULT_API_BASE_URL = "http://localhost:8000"
FNOLS_ENDPOINT = "/api/fnols"
FNOL_DETAIL_ENDPOINT_TEMPLATE = "/api/fnols/{fnol_id}"
LLM_METRICS_ENDPOINT = "/api/metrics/llm"
FAILURE_ANALYTICS_ENDPOINT = "/api/analytics/failures"
DASHBOARD_STATS_ENDPOINT = "/api/dashboard/stats"
FNOL_INGEST_ENDPOINT = "/api/fnol-ingest"

STALE_TIME_SECONDS = 30.0
GC_TIME_SECONDS = 300.0
REQUEST_TIMEOUT_SECONDS = 30
MAX_RETRIES = 3
RETRY_BACKOFF_SECONDS = 0.5
DEFAULT_PAGE_SIZE = 20
DASHBOARD_POLL_SECONDS = 5.0
DASHBOARD_SUBSCRIPTION_LEASE_SECONDS = 15.0
LOOP_CALL_TIMEOUT_SECONDS = 60

TRACE_STATUS_OPTIONS = ["SUCCESS", "FAILED", "PARTIAL"]
STATUS_LABELS = {
    "SUCCESS": "Success",
    "FAILED": "Failed",
    "PARTIAL": "Partial",
    "SKIPPED": "Skipped",
}
STATUS_COLORS = {
    "SUCCESS": "#16a34a",
    "FAILED": "#dc2626",
    "PARTIAL": "#ca8a04",
    "SKIPPED": "#6b7280",
}

ENV_API_URL = "FNOL_API_URL"
ENV_LOG_LEVEL = "FNOL_CONSOLE_LOG_LEVEL"


def get_api_base_url() -> str:
    return os.getenv(ENV_API_URL, "").strip() or DEFAULT_API_BASE_URL


def get_log_level() -> str:
    return os.getenv(ENV_LOG_LEVEL, "INFO").strip().upper() or "INFO"
