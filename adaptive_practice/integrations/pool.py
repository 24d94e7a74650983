"""
Local supply pool of ready-to-serve items, per category.

``ItemPool`` is a cache list ``pool:{category}`` of JSON-encoded items with a
TTL refreshed on every push. ``PoolRefiller`` refills it from an
``ItemSource`` on a managed thread pool:
- at most one refill in flight per category
- each refill is a ``Future`` that can be awaited or cancelled
- failures are logged on completion and never raised to the caller
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from pydantic import ValidationError as PydanticValidationError

from adaptive_practice.cache.base import KeyValueCache
from adaptive_practice.integrations.item_source import ItemSource
from adaptive_practice.learning_engine.contracts import GeneratedItem

logger = logging.getLogger(__name__)


def pool_key(category: str) -> str:
    return f"pool:{category}"


class ItemPool:
    def __init__(self, cache: KeyValueCache, ttl_seconds: int = 1800):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def push(self, category: str, items: list[GeneratedItem]) -> int:
        """Append items and refresh the pool TTL. Returns the new pool size."""
        if not items:
            return self.size(category)
        key = pool_key(category)
        size = self.cache.rpush(key, *(item.model_dump_json() for item in items))
        self.cache.expire(key, self.ttl_seconds)
        return size

    def pop(self, category: str) -> GeneratedItem | None:
        """Take the oldest item, skipping entries that no longer decode."""
        key = pool_key(category)
        while (raw := self.cache.lpop(key)) is not None:
            try:
                return GeneratedItem.model_validate_json(raw)
            except PydanticValidationError:
                logger.warning("pool_item_corrupt", extra={"event": "pool_item_corrupt", "category": category})
        return None

    def size(self, category: str) -> int:
        return self.cache.llen(pool_key(category))


class PoolRefiller:
    def __init__(
        self,
        pool: ItemPool,
        source: ItemSource,
        batch_size: int = 20,
        low_watermark: int = 5,
        max_workers: int = 2,
    ):
        self.pool = pool
        self.source = source
        self.batch_size = batch_size
        self.low_watermark = low_watermark
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pool-refill")
        self._in_flight: dict[str, Future] = {}
        self._lock = threading.Lock()

    def _refill(self, category: str) -> int:
        items = self.source.fetch_batch(category, self.batch_size)
        size = self.pool.push(category, items)
        logger.info(
            f"Refilled pool {category} with {len(items)} items (size {size})",
            extra={"event": "pool_refilled", "category": category, "added": len(items), "size": size},
        )
        return len(items)

    def _on_done(self, category: str, future: Future) -> None:
        with self._lock:
            if self._in_flight.get(category) is future:
                del self._in_flight[category]
        if future.cancelled():
            logger.info("pool_refill_cancelled", extra={"event": "pool_refill_cancelled", "category": category})
            return
        error = future.exception()
        if error is not None:
            logger.warning(
                f"Pool refill failed for {category}: {error}",
                extra={"event": "pool_refill_failed", "category": category, "error": str(error)},
            )

    def refill(self, category: str) -> Future:
        """Start a refill, or return the one already in flight for ``category``."""
        with self._lock:
            running = self._in_flight.get(category)
            if running is not None:
                return running
            future = self._executor.submit(self._refill, category)
            self._in_flight[category] = future
        future.add_done_callback(lambda f: self._on_done(category, f))
        return future

    def maybe_refill(self, category: str) -> Future | None:
        """Refill when the pool is below the low watermark."""
        if self.pool.size(category) >= self.low_watermark:
            return None
        return self.refill(category)

    def in_flight(self, category: str) -> Future | None:
        with self._lock:
            return self._in_flight.get(category)

    def cancel(self, category: str) -> bool:
        """Cancel a refill that has not started yet."""
        future = self.in_flight(category)
        return future.cancel() if future is not None else False

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
