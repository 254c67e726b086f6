"""Owns the event loop thread, query cache and API client for one process.

Streamlit reruns scripts on its own threads. The cache and the HTTP client
live on a single dedicated event loop instead, and the script thread submits
coroutines to it with ``asyncio.run_coroutine_threadsafe``.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from fnol_console.api_client import FNOLApiClient
from fnol_console.config import LOOP_CALL_TIMEOUT_SECONDS, STALE_TIME_SECONDS
from fnol_console.fetchers import QuerySpec
from fnol_console.ingest import submit_ingest
from fnol_console.list_controller import FNOLListController
from fnol_console.models import IngestPayload
from fnol_console.query_cache import QueryCache, QueryKey, QueryResult, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundLoop:
    """An asyncio event loop running forever on a daemon thread."""

    def __init__(self, *, call_timeout: float = LOOP_CALL_TIMEOUT_SECONDS) -> None:
        self.call_timeout = call_timeout
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_forever, name="fnol-console-loop", daemon=True)

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def run(self, coro: Coroutine[Any, Any, T], *, timeout: float | None = None) -> T:
        """Run ``coro`` on the loop thread and block until it finishes."""
        if not self.is_running:
            coro.close()
            raise RuntimeError("Background loop is not running.")

        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout=self.call_timeout if timeout is None else timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a plain callable on the loop thread."""

        async def _invoke() -> T:
            return fn(*args)

        return self.run(_invoke())

    def stop(self, *, timeout: float = 5.0) -> None:
        if not self.is_running:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=timeout)
        if not self._thread.is_alive():
            self._loop.close()

    def _run_forever(self) -> None:
        asyncio.set_event_loop(self._loop)
        logger.debug("Background loop started")
        self._loop.run_forever()


class ConsoleRuntime:
    """Cache service lifecycle: created at app start, closed on teardown."""

    def __init__(
        self,
        base_url: str,
        *,
        stale_time: float = STALE_TIME_SECONDS,
        client: FNOLApiClient | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self.base_url = base_url
        self.loop = BackgroundLoop()
        self.loop.start()
        self.cache = cache or QueryCache(stale_time=stale_time)
        self.client = client or FNOLApiClient(base_url=base_url)
        logger.info("Console runtime started against %s", base_url)

    def __enter__(self) -> "ConsoleRuntime":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def query(self, spec: QuerySpec) -> QueryResult:
        return self.loop.run(self.cache.fetch(spec.key, spec.fetcher))

    def peek(self, key: QueryKey) -> QueryResult:
        return self.loop.call(self.cache.peek, key)

    def subscribe(self, spec: QuerySpec, interval: float, *, lease: float | None = None) -> Subscription:
        return self.loop.run(self._subscribe(spec, interval, lease))

    def renew(self, subscription: Subscription) -> bool:
        return self.loop.call(subscription.renew)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.loop.call(subscription.unsubscribe)

    def invalidate(self, prefix: QueryKey = ()) -> int:
        return self.loop.call(self.cache.invalidate, prefix)

    def prune(self) -> int:
        return self.loop.call(self.cache.prune)

    def load_list(self, controller: FNOLListController) -> QueryResult:
        return self.loop.run(controller.load(self.cache, self.client))

    def submit_ingest(self, payload: IngestPayload) -> dict[str, Any]:
        return self.loop.run(submit_ingest(self.client, payload, cache=self.cache))

    async def _subscribe(self, spec: QuerySpec, interval: float, lease: float | None) -> Subscription:
        return self.cache.subscribe(spec.key, spec.fetcher, interval, lease=lease)

    def close(self) -> None:
        if not self.loop.is_running:
            return
        try:
            self.loop.run(self.cache.close())
            self.loop.run(self.client.aclose())
        finally:
            self.loop.stop()
        logger.info("Console runtime stopped")
