"""Thin async client for the FNOL backend REST contract."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from fnol_console.config import (
    DASHBOARD_STATS_ENDPOINT,
    DEFAULT_API_BASE_URL,
    FAILURE_ANALYTICS_ENDPOINT,
    FNOL_DETAIL_ENDPOINT_TEMPLATE,
    FNOL_INGEST_ENDPOINT,
    FNOLS_ENDPOINT,
    LLM_METRICS_ENDPOINT,
    REQUEST_TIMEOUT_SECONDS,
)
from fnol_console.models import (
    DashboardStats,
    FailureAnalytics,
    FNOLDetail,
    FNOLListResponse,
    IngestPayload,
    LLMMetricsOverview,
)

logger = logging.getLogger(__name__)


@dataclass
class TransportError(Exception):
    """Represents a failed backend request."""

    message: str
    status_code: int | None = None

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status={self.status_code})"


class FNOLApiClient:
    """One coroutine per backend operation; no retries and no caching."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.session.aclose()

    async def __aenter__(self) -> "FNOLApiClient":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.aclose()

    async def list_fnols(
        self,
        *,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
        search: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> FNOLListResponse:
        params: dict[str, Any] = {"page": page, "page_size": page_size}
        # Empty filters are omitted rather than sent as blank strings.
        for name, value in (
            ("status", status),
            ("search", search),
            ("date_from", date_from),
            ("date_to", date_to),
        ):
            if value:
                params[name] = value

        payload = await self._request("GET", FNOLS_ENDPOINT, params=params)
        return FNOLListResponse.from_dict(payload)

    async def get_fnol_detail(self, fnol_id: str) -> FNOLDetail:
        if not fnol_id:
            raise ValueError("An FNOL id is required.")
        path = FNOL_DETAIL_ENDPOINT_TEMPLATE.format(fnol_id=quote(fnol_id, safe=""))
        payload = await self._request("GET", path)
        return FNOLDetail.from_dict(payload)

    async def get_llm_metrics(self) -> LLMMetricsOverview:
        payload = await self._request("GET", LLM_METRICS_ENDPOINT)
        return LLMMetricsOverview.from_dict(payload)

    async def get_failure_analytics(self) -> FailureAnalytics:
        payload = await self._request("GET", FAILURE_ANALYTICS_ENDPOINT)
        return FailureAnalytics.from_dict(payload)

    async def get_dashboard_stats(self) -> DashboardStats:
        payload = await self._request("GET", DASHBOARD_STATS_ENDPOINT)
        return DashboardStats.from_dict(payload)

    async def submit_ingest(self, payload: IngestPayload) -> dict[str, Any]:
        """Post a parsed email; the acknowledgement shape is backend-defined."""
        return await self._request("POST", FNOL_INGEST_ENDPOINT, json=payload.to_dict())

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self.session.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            raise TransportError(f"Request failed: {exc}") from exc

        if response.status_code >= 400:
            raise TransportError(
                message=self._error_message(response),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(
                "FNOL API returned non-JSON response",
                status_code=response.status_code,
            ) from exc

        if not isinstance(payload, dict):
            raise TransportError("Unexpected response payload: root is not an object")
        return payload

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
            detail = payload.get("detail") if isinstance(payload, dict) else None
            if isinstance(detail, str) and detail:
                return detail
            if detail:
                return str(detail)
        except ValueError:
            pass
        return response.text.strip() or "FNOL API request failed"
