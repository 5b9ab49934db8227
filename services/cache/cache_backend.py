# services/cache/cache_backend.py
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, Tuple

from config.market_config import CACHE_TTLS

DEFAULT_TTL_SEC = 60


def _norm_key(key: str) -> str:
    return (key or "").strip()


def batch_key(prefix: str, symbols: Iterable[str]) -> str:
    """Canonical key for a multi-symbol request: same set -> same key."""
    syms = sorted({(s or "").strip().upper() for s in symbols if (s or "").strip()})
    return f"{prefix}:{','.join(syms)}"


def ttl_for(category: str) -> int:
    return int(CACHE_TTLS.get(category, DEFAULT_TTL_SEC))


class CacheStore:
    """
    In-process key -> (value, stored_at) store.

    TTL is supplied by the reader, so the same entry can be considered fresh
    by one caller and stale by another. Expired entries are treated as misses
    and left in place; nothing is evicted proactively.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        # key -> (stored_at_epoch, payload)
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str, ttl: float, default: Any = None) -> Any:
        k = _norm_key(key)
        if not k:
            return default
        hit = self._entries.get(k)
        if hit is None:
            return default
        stored_at, payload = hit
        if self._clock() - stored_at < ttl:
            return payload
        return default

    def set(self, key: str, value: Any) -> None:
        k = _norm_key(key)
        if not k:
            return
        self._entries[k] = (self._clock(), value)

    def __len__(self) -> int:
        return len(self._entries)
