"""Time-boxed, single-flight cache for top-by-score queries."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from frictionary.store.metrics import StoreMetrics
from frictionary.store.models import Suggestion
from frictionary.store.store import SuggestionStore


logger = structlog.get_logger()

# Default lifetime of a cached top list
DEFAULT_TOP_CACHE_SECONDS = 60 * 60


@dataclass
class _CacheEntry:
    """A cached or in-flight top list.

    Attributes:
        created_at: Monotonic time the computation started.
        task: Task producing the list; shared by concurrent callers.
    """

    created_at: float
    task: "asyncio.Task[list[Suggestion]]"


class TopScoreCache:
    """Caches ``SuggestionStore.top_by_score`` per ``(site, limit)``.

    An entry lives for ``ttl_seconds`` from the moment its computation
    started. Callers that miss while a computation is in flight await the
    same task instead of issuing their own query. A computation that fails
    is dropped so the next caller retries.
    """

    def __init__(
        self,
        store: SuggestionStore,
        ttl_seconds: float = DEFAULT_TOP_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Store answering cache misses.
            ttl_seconds: Entry lifetime.
            clock: Monotonic clock, injectable for tests.
        """
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, int], _CacheEntry] = {}
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(component="store", cache="top")

    async def get(self, site: str, limit: int) -> list[Suggestion]:
        """Get the top suggestions of a site, cached.

        Args:
            site: Site identifier.
            limit: Maximum number of suggestions.

        Returns:
            Suggestions ordered by descending vote total.
        """
        key = (site, limit)
        entry = self._entries.get(key)

        if entry is not None and self._clock() - entry.created_at < self._ttl_seconds:
            self._metrics.record_top_cache(hit=True)
            return list(await asyncio.shield(entry.task))

        self._metrics.record_top_cache(hit=False)
        self._log.debug("top_cache_miss", site=site, limit=limit)

        task = asyncio.create_task(asyncio.to_thread(self._store.top_by_score, site, limit))
        entry = _CacheEntry(created_at=self._clock(), task=task)
        self._entries[key] = entry
        task.add_done_callback(lambda t: self._evict_failed(key, entry, t))

        return list(await asyncio.shield(task))

    def _evict_failed(
        self,
        key: tuple[str, int],
        entry: _CacheEntry,
        task: "asyncio.Task[list[Suggestion]]",
    ) -> None:
        """Remove an entry whose computation failed or was cancelled."""
        if task.cancelled() or task.exception() is not None:
            if self._entries.get(key) is entry:
                del self._entries[key]
            self._log.warning("top_cache_computation_failed", site=key[0], limit=key[1])
