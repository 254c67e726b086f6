import asyncio
import concurrent.futures

import pytest

from fnol_console.fetchers import QuerySpec
from fnol_console.ingest import build_ingest_payload
from fnol_console.list_controller import FNOLListController
from fnol_console.models import FNOLListResponse
from fnol_console.runtime import BackgroundLoop, ConsoleRuntime


class FakeRuntimeClient:
    def __init__(self) -> None:
        self.closed = False
        self.list_calls = 0

    async def list_fnols(self, **params) -> FNOLListResponse:
        self.list_calls += 1
        return FNOLListResponse(items=(), total=0, page=params["page"], page_size=params["page_size"])

    async def submit_ingest(self, payload) -> dict:
        return {"fnol_id": "F1"}

    async def aclose(self) -> None:
        self.closed = True


def test_background_loop_runs_coroutines_and_times_out() -> None:
    loop = BackgroundLoop(call_timeout=0.2)
    loop.start()
    try:
        async def answer() -> int:
            await asyncio.sleep(0)
            return 42

        assert loop.run(answer()) == 42
        assert loop.call(len, [1, 2, 3]) == 3

        with pytest.raises(concurrent.futures.TimeoutError):
            loop.run(asyncio.sleep(5))
    finally:
        loop.stop()

    assert not loop.is_running


def test_stopped_loop_rejects_work() -> None:
    loop = BackgroundLoop()

    async def never() -> None:
        return None

    with pytest.raises(RuntimeError):
        loop.run(never())


def test_runtime_serves_queries_from_its_cache() -> None:
    client = FakeRuntimeClient()
    calls = []

    async def fetcher():
        calls.append(1)
        return {"total_fnols_today": 1}

    spec = QuerySpec(key=("dashboard-stats",), fetcher=fetcher)

    with ConsoleRuntime("http://backend.test", client=client) as runtime:
        first = runtime.query(spec)
        second = runtime.query(spec)
        assert first.data == second.data == {"total_fnols_today": 1}
        assert len(calls) == 1
        assert runtime.peek(("dashboard-stats",)).is_success

        assert runtime.invalidate(("dashboard-stats",)) == 1
        runtime.query(spec)
        assert len(calls) == 2

        subscription = runtime.subscribe(spec, 60.0, lease=30.0)
        assert runtime.loop.call(runtime.cache.subscriber_count, ("dashboard-stats",)) == 1
        assert runtime.renew(subscription)
        runtime.unsubscribe(subscription)
        assert runtime.loop.call(runtime.cache.subscriber_count, ("dashboard-stats",)) == 0

        controller = FNOLListController()
        assert runtime.load_list(controller).is_success
        assert client.list_calls == 1
        payload = build_ingest_payload(subject="Hail", body="", sender="a@example.com")
        assert runtime.submit_ingest(payload) == {"fnol_id": "F1"}
        assert runtime.prune() == 0

    assert client.closed
    assert not runtime.loop.is_running
