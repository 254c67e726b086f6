import asyncio
import math
from datetime import date

import pytest

from fnol_console.list_controller import (
    FNOLListController,
    build_list_page,
    compute_total_pages,
    page_range,
)
from fnol_console.models import FNOLListItem, FNOLListResponse
from fnol_console.query_cache import QueryCache


class FakeListClient:
    def __init__(self, total: int = 45) -> None:
        self.total = total
        self.calls: list[dict] = []
        self.gates: dict[str | None, asyncio.Event] = {}

    async def list_fnols(self, **params) -> FNOLListResponse:
        self.calls.append(params)
        gate = self.gates.get(params.get("search"))
        if gate is not None:
            await gate.wait()
        return FNOLListResponse(
            items=(FNOLListItem(fnol_id=f"F{params['page']}", status="SUCCESS"),),
            total=self.total,
            page=params["page"],
            page_size=params["page_size"],
            total_pages=compute_total_pages(self.total, params["page_size"]),
        )


def test_page_range_matches_ceiling_division() -> None:
    for page_size in range(1, 26):
        for total in range(0, 101):
            total_pages = compute_total_pages(total, page_size)
            assert total_pages == math.ceil(total / page_size)
            for page in range(1, max(total_pages, 1) + 1):
                first, last = page_range(page, page_size, total)
                if total == 0:
                    assert (first, last) == (0, 0)
                else:
                    assert 1 <= first <= last <= total
                    assert last - first + 1 <= page_size


def test_page_range_clamps_out_of_range_pages() -> None:
    assert page_range(9, 20, 45) == (41, 45)
    assert page_range(0, 20, 45) == (1, 20)


def test_compute_total_pages_rejects_non_positive_page_size() -> None:
    with pytest.raises(ValueError):
        compute_total_pages(10, 0)


def test_single_item_page_labels() -> None:
    response = FNOLListResponse(
        items=(FNOLListItem(fnol_id="F1", status="FAILED", total_duration_ms=1500),),
        total=1,
        page=1,
        page_size=20,
        total_pages=1,
    )

    page = build_list_page(response)

    assert page.page_label == "Page 1 of 1"
    assert page.range_label == "Showing 1 to 1 of 1 results"
    assert not page.has_previous
    assert not page.has_next


def test_empty_result_labels() -> None:
    page = build_list_page(FNOLListResponse(items=(), total=0, page=1, page_size=20, total_pages=0))

    assert page.is_empty
    assert page.display_range == (0, 0)
    assert page.page_label == "Page 1 of 1"


def test_server_total_pages_is_recomputed() -> None:
    page = build_list_page(FNOLListResponse(items=(), total=45, page=1, page_size=20, total_pages=7))
    assert page.total_pages == 3
    assert page.has_next


def test_navigation_is_clamped() -> None:
    controller = FNOLListController(page_size=20)
    controller.total_pages = 3

    for _ in range(10):
        controller.next_page()
    assert controller.page == 3

    for _ in range(10):
        controller.previous_page()
    assert controller.page == 1

    assert controller.go_to_page(99) == 3


def test_navigation_before_first_load_stays_on_page_one() -> None:
    controller = FNOLListController()
    assert controller.next_page() == 1


def test_filter_change_resets_page() -> None:
    controller = FNOLListController()
    controller.total_pages = 5
    controller.go_to_page(4)

    assert controller.set_search("  F12 ")
    assert controller.search == "F12"
    assert controller.page == 1

    controller.go_to_page(3)
    assert not controller.set_search("F12")
    assert controller.page == 3

    assert controller.set_status_filter("failed")
    assert controller.status_filter == "FAILED"
    assert controller.page == 1

    controller.go_to_page(2)
    assert controller.set_date_range(date(2024, 1, 1), date(2024, 1, 31))
    assert (controller.date_from, controller.date_to) == ("2024-01-01", "2024-01-31")
    assert controller.page == 1


def test_filter_change_can_keep_page() -> None:
    controller = FNOLListController(reset_page_on_filter_change=False)
    controller.total_pages = 5
    controller.go_to_page(4)

    controller.set_status_filter("PARTIAL")
    assert controller.page == 4
    assert controller.query().status == "PARTIAL"


def test_invalid_filters_are_rejected() -> None:
    controller = FNOLListController()
    with pytest.raises(ValueError):
        controller.set_status_filter("RUNNING")
    with pytest.raises(ValueError):
        controller.set_date_range(date(2024, 2, 1), date(2024, 1, 1))

    assert controller.set_status_filter("") is False
    assert controller.status_filter is None


@pytest.mark.asyncio
async def test_load_caches_pages_and_tracks_page_count() -> None:
    cache = QueryCache()
    client = FakeListClient(total=45)
    controller = FNOLListController(page_size=20)

    result = await controller.load(cache, client)
    assert result.is_success
    assert controller.total_pages == 3
    assert client.calls == [
        {
            "page": 1,
            "page_size": 20,
            "status": None,
            "search": None,
            "date_from": None,
            "date_to": None,
        }
    ]

    await controller.load(cache, client)
    assert len(client.calls) == 1

    controller.next_page()
    result = await controller.load(cache, client)
    page = controller.current_page(result)
    assert page.page == 2
    assert page.display_range == (21, 40)
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_superseded_load_returns_newer_identity() -> None:
    cache = QueryCache()
    client = FakeListClient(total=5)
    client.gates[None] = asyncio.Event()
    controller = FNOLListController()

    first_load = asyncio.create_task(controller.load(cache, client))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    stale_key = controller.query().key()

    controller.set_search("F77")
    second = await controller.load(cache, client)
    client.gates[None].set()
    first = await first_load

    assert second.is_success
    assert first.data is second.data
    assert cache.peek(stale_key).data is not None
    assert client.calls[-1]["search"] == "F77"


@pytest.mark.asyncio
async def test_moving_on_does_not_cancel_a_page_another_session_awaits() -> None:
    cache = QueryCache()
    client = FakeListClient(total=5)
    client.gates[None] = asyncio.Event()
    session_a = FNOLListController()
    session_b = FNOLListController()

    a_load = asyncio.create_task(session_a.load(cache, client))
    b_load = asyncio.create_task(session_b.load(cache, client))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    b_load.cancel()
    await asyncio.sleep(0)

    session_b.set_search("F77")
    b_result = await session_b.load(cache, client)
    client.gates[None].set()
    a_result = await a_load

    assert b_result.is_success
    assert a_result.is_success
    assert a_result.data.items[0].fnol_id == "F1"
    assert len([call for call in client.calls if call["search"] is None]) == 1


@pytest.mark.asyncio
async def test_moving_on_cancels_a_fetch_nobody_awaits() -> None:
    cache = QueryCache()
    client = FakeListClient(total=5)
    client.gates[None] = asyncio.Event()
    controller = FNOLListController()

    orphan = asyncio.create_task(controller.load(cache, client))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    stale_key = controller.query().key()
    orphan.cancel()
    await asyncio.sleep(0)

    controller.set_search("F77")
    result = await controller.load(cache, client)
    client.gates[None].set()
    await asyncio.sleep(0)

    assert result.is_success
    assert not cache.peek(stale_key).is_fetching
    assert cache.peek(stale_key).data is None


def test_current_page_without_data() -> None:
    controller = FNOLListController()
    assert controller.current_page(QueryCache().peek(controller.query().key())) is None
