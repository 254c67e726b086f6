"""Pagination and filter state for the FNOL processing log."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from fnol_console.api_client import FNOLApiClient
from fnol_console.config import DEFAULT_PAGE_SIZE, TRACE_STATUS_OPTIONS
from fnol_console.fetchers import FNOLListQuery, build_date_filter, fnol_list_spec
from fnol_console.models import FNOLListItem, FNOLListResponse
from fnol_console.query_cache import QueryCache, QueryKey, QueryResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListPage:
    items: tuple[FNOLListItem, ...]
    total: int
    page: int
    page_size: int
    total_pages: int

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def display_range(self) -> tuple[int, int]:
        return page_range(self.page, self.page_size, self.total)

    @property
    def page_label(self) -> str:
        return f"Page {self.page} of {max(self.total_pages, 1)}"

    @property
    def range_label(self) -> str:
        first, last = self.display_range
        return f"Showing {first} to {last} of {self.total} results"

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def compute_total_pages(total: int, page_size: int) -> int:
    """``ceil(total / page_size)`` in integer arithmetic."""
    if page_size <= 0:
        raise ValueError("page_size must be positive.")
    if total <= 0:
        return 0
    return (total + page_size - 1) // page_size


def clamp_page(page: int, total_pages: int) -> int:
    return max(1, min(page, max(total_pages, 1)))


def page_range(page: int, page_size: int, total: int) -> tuple[int, int]:
    """First and last 1-based row numbers shown on ``page``; ``(0, 0)`` when empty."""
    if total <= 0:
        return (0, 0)
    page = clamp_page(page, compute_total_pages(total, page_size))
    first = (page - 1) * page_size + 1
    last = min(page * page_size, total)
    return (first, last)


def build_list_page(
    response: FNOLListResponse,
    *,
    page: int | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ListPage:
    """Derive the page view; ``total_pages`` is recomputed rather than trusted."""
    size = response.page_size if response.page_size > 0 else page_size
    return ListPage(
        items=tuple(response.items),
        total=max(response.total, 0),
        page=response.page if page is None else page,
        page_size=size,
        total_pages=compute_total_pages(max(response.total, 0), size),
    )


class FNOLListController:
    """Holds page, search, status and date filters and drives list queries.

    Changing a filter resets the page to 1 unless
    ``reset_page_on_filter_change`` is False. Navigation is clamped to the
    last known page count.
    """

    def __init__(
        self,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        reset_page_on_filter_change: bool = True,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive.")

        self.page = 1
        self.page_size = page_size
        self.search = ""
        self.status_filter: str | None = None
        self.date_from: str | None = None
        self.date_to: str | None = None
        self.reset_page_on_filter_change = reset_page_on_filter_change
        self.total_pages: int | None = None
        self._active_key: QueryKey | None = None

    def query(self) -> FNOLListQuery:
        return FNOLListQuery(
            page=self.page,
            page_size=self.page_size,
            search=self.search,
            status=self.status_filter,
            date_from=self.date_from,
            date_to=self.date_to,
        )

    def set_search(self, search: str) -> bool:
        normalized = (search or "").strip()
        if normalized == self.search:
            return False
        self.search = normalized
        self._filters_changed()
        return True

    def set_status_filter(self, status: str | None) -> bool:
        normalized = (status or "").strip().upper() or None
        if normalized is not None and normalized not in TRACE_STATUS_OPTIONS:
            raise ValueError(f"Unknown status filter: {status!r}")
        if normalized == self.status_filter:
            return False
        self.status_filter = normalized
        self._filters_changed()
        return True

    def set_date_range(self, date_from: date | None, date_to: date | None) -> bool:
        normalized = build_date_filter(date_from, date_to)
        if normalized == (self.date_from, self.date_to):
            return False
        self.date_from, self.date_to = normalized
        self._filters_changed()
        return True

    def next_page(self) -> int:
        self.page = clamp_page(self.page + 1, self.total_pages or 1)
        return self.page

    def previous_page(self) -> int:
        self.page = clamp_page(self.page - 1, self.total_pages or 1)
        return self.page

    def go_to_page(self, page: int) -> int:
        self.page = clamp_page(page, self.total_pages or 1)
        return self.page

    async def load(self, cache: QueryCache, client: FNOLApiClient) -> QueryResult:
        """Fetch the current page through ``cache``.

        An earlier identity's fetch is cancelled unless another reader or
        subscriber still waits on it. If the controller moved on while this
        call was waiting, the snapshot for the newer identity is returned
        instead of the stale one.
        """
        spec = fnol_list_spec(client, self.query())
        if self._active_key is not None and self._active_key != spec.key:
            cache.abandon(self._active_key)
        self._active_key = spec.key

        result = await cache.fetch(spec.key, spec.fetcher)
        if self._active_key != spec.key:
            logger.debug("Discarding list result for superseded query %s", spec.key)
            return cache.peek(self._active_key)

        if result.data is not None:
            self.total_pages = compute_total_pages(result.data.total, self.page_size)
        return result

    def current_page(self, result: QueryResult) -> ListPage | None:
        if result.data is None:
            return None
        return build_list_page(result.data, page=self.page, page_size=self.page_size)

    def _filters_changed(self) -> None:
        if self.reset_page_on_filter_change:
            self.page = 1
