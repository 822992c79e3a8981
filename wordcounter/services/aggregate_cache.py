"""Cache-aside storage for sitewide aggregates.

Aggregates are only ever removed by TTL expiry or explicit invalidation.
Concurrent misses may each recompute; recomputation is idempotent, so the
last writer simply wins.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Awaitable, Callable

from wordcounter.config.logger import app_logger, log_performance
from wordcounter.models.aggregates import AggregateSnapshot
from wordcounter.services.cache import ObjectCache, make_key

DEFAULT_TTL = 3600


class AggregateKey(str, Enum):
    TOTALS = "totals"
    PAGES_NEEDING_COUNT = "pages-needing-count"

    @property
    def cache_key(self) -> str:
        return make_key("aggregate", self.value)


class AggregateCache:
    def __init__(self, cache: ObjectCache, ttl: int = DEFAULT_TTL):
        self._cache = cache
        self._ttl = ttl

    @property
    def ttl(self) -> int:
        return self._ttl

    async def get_totals(self, recompute: Callable[[], Awaitable[AggregateSnapshot]]) -> AggregateSnapshot:
        """Cached totals, recomputed from the store on a miss."""

        async def _compute() -> dict:
            started = time.perf_counter()
            snapshot = await recompute()
            log_performance("aggregate.totals", time.perf_counter() - started)
            return snapshot.model_dump(mode="json")

        data = await self._cache.get_with_set_callback(AggregateKey.TOTALS.cache_key, self._ttl, _compute)
        return AggregateSnapshot.model_validate(data)

    async def get_pending_count(self, recompute: Callable[[], Awaitable[int]]) -> int:
        return int(
            await self._cache.get_with_set_callback(AggregateKey.PAGES_NEEDING_COUNT.cache_key, self._ttl, recompute)
        )

    async def invalidate(self, key: AggregateKey) -> None:
        await self._cache.delete(key.cache_key)

    async def invalidate_all(self) -> None:
        for key in AggregateKey:
            await self._cache.delete(key.cache_key)
        app_logger.debug("Aggregate cache cleared")
