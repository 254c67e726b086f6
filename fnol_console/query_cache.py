"""Process-wide query cache with freshness, retry, dedup and polling.

A ``QueryCache`` maps a logical query identity (an ordered tuple of operation
name and parameters) to the last successful result for that identity.
Callers never see exceptions from here: every read returns a ``QueryResult``
tagged ``loading``, ``error`` or ``success``.

All methods must run on the event loop that owns the cache. There are no
locks; at most one fetch task per key ever writes to an entry, and results
from a fetch that was cancelled or invalidated before it completed are
dropped.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from fnol_console.api_client import TransportError
from fnol_console.config import (
    GC_TIME_SECONDS,
    MAX_RETRIES,
    RETRY_BACKOFF_SECONDS,
    STALE_TIME_SECONDS,
)

logger = logging.getLogger(__name__)

QueryKey = tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]

STATUS_LOADING = "loading"
STATUS_ERROR = "error"
STATUS_SUCCESS = "success"


@dataclass(frozen=True)
class QueryResult:
    """Snapshot of one cache entry.

    Attributes:
        status: ``loading`` before the first result, ``error`` when every
            attempt failed and there is no prior value, ``success`` whenever a
            value is available (including while it is being revalidated).
        data: Last successful value, or ``None``.
        error: Last failure. May be set alongside ``data`` when a background
            revalidation failed and the previous value was kept.
        updated_at: Clock reading of the last successful fetch.
        is_fetching: Whether a fetch for this key is in flight.
        failure_count: Consecutive failed fetches since the last success.
    """

    status: str = STATUS_LOADING
    data: Any = None
    error: BaseException | None = None
    updated_at: float | None = None
    is_fetching: bool = False
    failure_count: int = 0

    @property
    def is_loading(self) -> bool:
        return self.status == STATUS_LOADING

    @property
    def is_error(self) -> bool:
        return self.status == STATUS_ERROR

    @property
    def is_success(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def error_message(self) -> str:
        return "" if self.error is None else str(self.error)


@dataclass
class _Subscriber:
    interval: float
    lease: float | None = None
    expires_at: float | None = None


@dataclass
class _Entry:
    data: Any = None
    has_data: bool = False
    error: BaseException | None = None
    updated_at: float | None = None
    invalidated: bool = False
    generation: int = 0
    failure_count: int = 0
    last_accessed: float = 0.0
    fetcher: Fetcher | None = None
    task: asyncio.Task[None] | None = None
    waiters: int = 0
    poller: asyncio.Task[None] | None = None
    subscribers: dict[int, _Subscriber] = field(default_factory=dict)

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()


class Subscription:
    """Handle returned by :meth:`QueryCache.subscribe`."""

    def __init__(self, cache: "QueryCache", key: QueryKey, subscription_id: int) -> None:
        self.cache = cache
        self.key = key
        self.subscription_id = subscription_id
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.cache._remove_subscriber(self.key, self.subscription_id)

    def renew(self) -> bool:
        """Extend the lease; False once the subscription has lapsed or been removed."""
        if self.active and not self.cache._renew_subscriber(self.key, self.subscription_id):
            self.active = False
        return self.active


class QueryCache:
    def __init__(
        self,
        *,
        stale_time: float = STALE_TIME_SECONDS,
        max_retries: int = MAX_RETRIES,
        retry_backoff_seconds: float = RETRY_BACKOFF_SECONDS,
        gc_time: float = GC_TIME_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if stale_time < 0:
            raise ValueError("stale_time must be non-negative.")
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative.")

        self.stale_time = stale_time
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self.gc_time = gc_time
        self._clock = clock
        self._sleep = sleep
        self._entries: dict[QueryKey, _Entry] = {}
        self._subscription_ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        *,
        stale_time: float | None = None,
    ) -> QueryResult:
        """Return the cached value for ``key`` if fresh, otherwise fetch it.

        Concurrent calls for the same key share one in-flight fetch. Cancelling
        one caller does not cancel the shared fetch.
        """
        entry = self._touch(key)
        entry.fetcher = fetcher

        if self._is_fresh(entry, self.stale_time if stale_time is None else stale_time):
            return self._snapshot(entry)

        task = self._ensure_task(key, entry, fetcher)
        entry.waiters += 1
        try:
            await asyncio.wait({task})
            # invalidate() may have restarted the fetch this call was waiting on.
            while entry.task is not None and entry.task is not task:
                task = entry.task
                await asyncio.wait({task})
        finally:
            entry.waiters -= 1
        return self._snapshot(entry)

    def peek(self, key: QueryKey) -> QueryResult:
        entry = self._entries.get(key)
        if entry is None:
            return QueryResult()
        entry.last_accessed = self._clock()
        return self._snapshot(entry)

    def subscribe(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        interval: float,
        *,
        lease: float | None = None,
    ) -> Subscription:
        """Refetch ``key`` every ``interval`` seconds until unsubscribed.

        Polling ignores freshness. With several subscribers the shortest
        interval wins; polling stops when the last subscriber leaves. A
        subscriber with a ``lease`` is dropped once it goes ``lease`` seconds
        without :meth:`Subscription.renew`.
        """
        if interval <= 0:
            raise ValueError("Polling interval must be positive.")
        if lease is not None and lease <= 0:
            raise ValueError("Subscription lease must be positive.")

        entry = self._touch(key)
        entry.fetcher = fetcher
        subscription_id = next(self._subscription_ids)
        entry.subscribers[subscription_id] = _Subscriber(
            interval=interval,
            lease=lease,
            expires_at=None if lease is None else self._clock() + lease,
        )

        if entry.poller is None or entry.poller.done():
            entry.poller = asyncio.create_task(self._poll(key, entry))
        return Subscription(self, key, subscription_id)

    def subscriber_count(self, key: QueryKey) -> int:
        entry = self._entries.get(key)
        return 0 if entry is None else len(entry.subscribers)

    def is_polling(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.poller is not None and not entry.poller.done()

    def cancel(self, key: QueryKey) -> bool:
        """Abandon the in-flight fetch for ``key``; its result will not be applied."""
        entry = self._entries.get(key)
        if entry is None:
            return False

        entry.generation += 1
        task = entry.task
        entry.task = None
        if task is None or task.done():
            return False

        task.cancel()
        logger.debug("Cancelled in-flight fetch for %s", key)
        return True

    def abandon(self, key: QueryKey) -> bool:
        """Cancel the fetch for ``key`` only if no reader or subscriber still needs it."""
        entry = self._entries.get(key)
        if entry is None or entry.waiters or entry.subscribers:
            return False
        return self.cancel(key)

    def invalidate(self, prefix: QueryKey = ()) -> int:
        """Mark every entry whose key starts with ``prefix`` as stale.

        In-flight fetches for those keys are restarted when a reader or
        subscriber is waiting on them and dropped otherwise. Returns the number of entries
        touched.
        """
        touched = 0
        for key, entry in list(self._entries.items()):
            if key[: len(prefix)] != prefix:
                continue
            touched += 1
            entry.invalidated = True
            self.cancel(key)
            if (entry.subscribers or entry.waiters) and entry.fetcher is not None:
                self._ensure_task(key, entry, entry.fetcher)

        if touched:
            logger.info("Invalidated %d cached entries for prefix %s", touched, prefix)
        return touched

    def prune(self) -> int:
        """Drop lapsed subscribers, then evict idle entries not read for ``gc_time``."""
        now = self._clock()
        evicted = 0
        for key, entry in list(self._entries.items()):
            if self._reap_expired(key, entry) and not entry.subscribers and entry.poller is not None:
                entry.poller.cancel()
                entry.poller = None
            if entry.subscribers or entry.is_fetching:
                continue
            if now - entry.last_accessed > self.gc_time:
                del self._entries[key]
                evicted += 1

        if evicted:
            logger.debug("Pruned %d idle cache entries", evicted)
        return evicted

    async def close(self) -> None:
        """Cancel pollers and in-flight fetches, then drop every entry."""
        tasks: list[asyncio.Task[None]] = []
        for entry in self._entries.values():
            entry.subscribers.clear()
            for task in (entry.poller, entry.task):
                if task is not None and not task.done():
                    task.cancel()
                    tasks.append(task)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._entries.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _touch(self, key: QueryKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        entry.last_accessed = self._clock()
        return entry

    def _is_fresh(self, entry: _Entry, stale_time: float) -> bool:
        if not entry.has_data or entry.invalidated or entry.updated_at is None:
            return False
        return self._clock() - entry.updated_at < stale_time

    def _ensure_task(self, key: QueryKey, entry: _Entry, fetcher: Fetcher) -> asyncio.Task[None]:
        if entry.task is not None and not entry.task.done():
            return entry.task

        entry.task = asyncio.create_task(self._run_fetch(key, entry, fetcher, entry.generation))
        return entry.task

    async def _run_fetch(self, key: QueryKey, entry: _Entry, fetcher: Fetcher, generation: int) -> None:
        data: Any = None
        error: BaseException | None = None
        attempts = 0

        try:
            for attempt in range(self.max_retries + 1):
                attempts = attempt + 1
                try:
                    data = await fetcher()
                except TransportError as exc:
                    error = exc
                    if attempt == self.max_retries:
                        break
                    delay = self.retry_backoff_seconds * (2**attempt)
                    logger.info(
                        "Fetch for %s failed (%s); retry %d/%d in %.2fs",
                        key,
                        exc,
                        attempt + 1,
                        self.max_retries,
                        delay,
                    )
                    await self._sleep(delay)
                except Exception as exc:
                    # Parse and programming errors are not retried.
                    logger.exception("Fetch for %s raised an unexpected error", key)
                    error = exc
                    break
                else:
                    error = None
                    break
        finally:
            if entry.task is asyncio.current_task():
                entry.task = None

        if entry.generation != generation or self._entries.get(key) is not entry:
            logger.debug("Dropping superseded result for %s", key)
            return

        if error is None:
            entry.data = data
            entry.has_data = True
            entry.error = None
            entry.failure_count = 0
            entry.invalidated = False
            entry.updated_at = self._clock()
            return

        entry.error = error
        entry.failure_count += 1
        if entry.has_data:
            logger.warning("Revalidation of %s failed, keeping previous value: %s", key, error)
        else:
            logger.warning("Fetch for %s failed after %d attempt(s): %s", key, attempts, error)

    async def _poll(self, key: QueryKey, entry: _Entry) -> None:
        while True:
            self._reap_expired(key, entry)
            if not entry.subscribers:
                break
            await self._sleep(min(subscriber.interval for subscriber in entry.subscribers.values()))
            self._reap_expired(key, entry)
            if not entry.subscribers or entry.fetcher is None:
                break
            task = self._ensure_task(key, entry, entry.fetcher)
            await asyncio.wait({task})

        if entry.poller is asyncio.current_task():
            entry.poller = None
        logger.debug("Stopped polling %s", key)

    def _reap_expired(self, key: QueryKey, entry: _Entry) -> int:
        now = self._clock()
        expired = [
            subscription_id
            for subscription_id, subscriber in entry.subscribers.items()
            if subscriber.expires_at is not None and now >= subscriber.expires_at
        ]
        for subscription_id in expired:
            del entry.subscribers[subscription_id]
        if expired:
            logger.info("Dropped %d lapsed subscriber(s) for %s", len(expired), key)
        return len(expired)

    def _renew_subscriber(self, key: QueryKey, subscription_id: int) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        subscriber = entry.subscribers.get(subscription_id)
        if subscriber is None:
            return False
        if subscriber.lease is None:
            return True
        now = self._clock()
        if subscriber.expires_at is not None and now >= subscriber.expires_at:
            self._remove_subscriber(key, subscription_id)
            return False
        subscriber.expires_at = now + subscriber.lease
        return True

    def _remove_subscriber(self, key: QueryKey, subscription_id: int) -> None:
        entry = self._entries.get(key)
        if entry is None:
            return
        entry.subscribers.pop(subscription_id, None)
        if not entry.subscribers and entry.poller is not None:
            entry.poller.cancel()
            entry.poller = None

    def _snapshot(self, entry: _Entry) -> QueryResult:
        if entry.has_data:
            status = STATUS_SUCCESS
        elif entry.error is not None:
            status = STATUS_ERROR
        else:
            status = STATUS_LOADING

        return QueryResult(
            status=status,
            data=entry.data,
            error=entry.error,
            updated_at=entry.updated_at,
            is_fetching=entry.is_fetching,
            failure_count=entry.failure_count,
        )
