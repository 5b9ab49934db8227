# utils/async_helpers.py
"""
Bounded tasks: run an awaitable against a deadline and hand back a fallback
instead of raising when it is slow or fails.

The underlying task is shielded, not cancelled. If it finishes later its
result is simply dropped for this caller (adapters still write it to the cache).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, List, Sequence, Tuple, TypeVar

from services.errors import UpstreamTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _drain(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("late failure after timeout: %s", task.exception())


async def bounded(
    aw: Awaitable[T],
    *,
    timeout: float,
    fallback: T,
    label: str = "task",
) -> T:
    task = asyncio.ensure_future(aw)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError:
        task.add_done_callback(_drain)
        logger.warning("%s; using fallback", UpstreamTimeout(label, timeout))
        return fallback
    except Exception as e:
        logger.warning("%s failed (%s: %s); using fallback", label, type(e).__name__, e)
        return fallback


async def gather_bounded(
    calls: Sequence[Tuple[Awaitable[T], float, T, str]],
) -> List[T]:
    """Run (awaitable, timeout, fallback, label) tuples together; never raises."""
    return list(
        await asyncio.gather(
            *(bounded(aw, timeout=t, fallback=fb, label=label) for aw, t, fb, label in calls)
        )
    )
