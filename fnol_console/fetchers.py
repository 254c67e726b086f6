"""Logical query identities and the fetchers bound to them."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from fnol_console.api_client import FNOLApiClient
from fnol_console.config import DEFAULT_PAGE_SIZE
from fnol_console.query_cache import QueryKey

FNOLS_QUERY = "fnols"
FNOL_DETAIL_QUERY = "fnol-detail"
LLM_METRICS_QUERY = "llm-metrics"
FAILURE_ANALYTICS_QUERY = "failure-analytics"
DASHBOARD_STATS_QUERY = "dashboard-stats"


@dataclass(frozen=True)
class FNOLListQuery:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    search: str = ""
    status: str | None = None
    date_from: str | None = None
    date_to: str | None = None

    def key(self) -> QueryKey:
        return (
            FNOLS_QUERY,
            self.page,
            self.page_size,
            self.search,
            self.status,
            self.date_from,
            self.date_to,
        )


@dataclass(frozen=True)
class QuerySpec:
    key: QueryKey
    fetcher: Callable[[], Awaitable[Any]]


def build_date_filter(date_from: date | None, date_to: date | None) -> tuple[str | None, str | None]:
    """Convert an inclusive date range to the ISO strings the list endpoint expects."""
    if date_from and date_to and date_from > date_to:
        raise ValueError("Start date must be before or equal to end date.")
    return (
        date_from.isoformat() if date_from else None,
        date_to.isoformat() if date_to else None,
    )


def fnol_list_spec(client: FNOLApiClient, query: FNOLListQuery) -> QuerySpec:
    async def fetch() -> Any:
        return await client.list_fnols(
            page=query.page,
            page_size=query.page_size,
            status=query.status,
            search=query.search or None,
            date_from=query.date_from,
            date_to=query.date_to,
        )

    return QuerySpec(key=query.key(), fetcher=fetch)


def fnol_detail_spec(client: FNOLApiClient, fnol_id: str) -> QuerySpec:
    async def fetch() -> Any:
        return await client.get_fnol_detail(fnol_id)

    return QuerySpec(key=(FNOL_DETAIL_QUERY, fnol_id), fetcher=fetch)


def llm_metrics_spec(client: FNOLApiClient) -> QuerySpec:
    return QuerySpec(key=(LLM_METRICS_QUERY,), fetcher=client.get_llm_metrics)


def failure_analytics_spec(client: FNOLApiClient) -> QuerySpec:
    return QuerySpec(key=(FAILURE_ANALYTICS_QUERY,), fetcher=client.get_failure_analytics)


def dashboard_stats_spec(client: FNOLApiClient) -> QuerySpec:
    return QuerySpec(key=(DASHBOARD_STATS_QUERY,), fetcher=client.get_dashboard_stats)
