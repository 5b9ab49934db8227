# services/cache/cache_utils.py
from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from services.cache.cache_backend import CacheStore
from services.cache.inflight import InFlightCoordinator

T = TypeVar("T")

_MISS = object()


def should_cache_present(val: Any) -> bool:
    """Cache anything except None (None means 'nothing found', keep retrying)."""
    return val is not None


def should_cache_non_empty(val: Any) -> bool:
    """Cache only non-empty payloads; empty lists/series are usually a soft failure."""
    if val is None:
        return False
    if hasattr(val, "is_empty"):
        return not val.is_empty
    try:
        return len(val) > 0
    except TypeError:
        return True


async def cached_fetch(
    store: CacheStore,
    inflight: InFlightCoordinator,
    key: str,
    ttl: float,
    producer: Callable[[], Awaitable[T]],
    *,
    should_cache: Callable[[Any], bool] = should_cache_present,
) -> T:
    """
    Read-through fetch: cache -> in-flight dedupe -> producer -> write-through.

    The write happens inside the shared task, so the cache is populated even
    if every caller stopped waiting before the producer finished.
    """
    hit = store.get(key, ttl, default=_MISS)
    if hit is not _MISS:
        return hit

    async def produce_and_store() -> T:
        val = await producer()
        if should_cache(val):
            store.set(key, val)
        return val

    return await inflight.dedupe(key, produce_and_store)
