# services/cache/inflight.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _consume_result(task: "asyncio.Task[Any]") -> None:
    # Waiters may all have given up; retrieve the exception so asyncio
    # doesn't report it as never retrieved.
    if not task.cancelled() and task.exception() is not None:
        logger.debug("in-flight task failed: %s", task.exception())


class InFlightCoordinator:
    """
    Collapses concurrent fetches that share a key into one upstream call.

    The first caller starts `producer()` as a task; later callers with the same
    key await that task. The marker is dropped as soon as the task settles, so
    the next call after settlement starts a fresh fetch.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, "asyncio.Task[Any]"] = {}

    async def dedupe(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, producer))
            task.add_done_callback(_consume_result)
            self._pending[key] = task
        else:
            logger.debug("joining in-flight fetch key=%s", key)
        # shield: a caller timing out must not cancel the fetch for everyone else
        return await asyncio.shield(task)

    async def _run(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        try:
            return await producer()
        finally:
            self._pending.pop(key, None)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)
