import asyncio
import unittest

from services.cache.cache_backend import CacheStore
from services.cache.cache_utils import cached_fetch, should_cache_non_empty
from services.cache.inflight import InFlightCoordinator


class TestInFlightCoordinator(unittest.TestCase):
    def test_concurrent_callers_share_one_fetch(self):
        calls = []

        async def producer():
            calls.append(1)
            await asyncio.sleep(0.02)
            return {"price": 101.5}

        async def run():
            inflight = InFlightCoordinator()
            results = await asyncio.gather(*(inflight.dedupe("quote:AAPL", producer) for _ in range(10)))
            return inflight, results

        inflight, results = asyncio.run(run())
        self.assertEqual(len(calls), 1)
        self.assertTrue(all(r == {"price": 101.5} for r in results))
        self.assertEqual(len(inflight), 0)

    def test_failure_reaches_every_waiter_and_clears_marker(self):
        calls = []

        async def failing():
            calls.append(1)
            await asyncio.sleep(0.01)
            raise RuntimeError("upstream down")

        async def ok():
            calls.append(1)
            return 7

        async def run():
            inflight = InFlightCoordinator()
            results = await asyncio.gather(
                inflight.dedupe("k", failing),
                inflight.dedupe("k", failing),
                return_exceptions=True,
            )
            pending_after = inflight.is_pending("k")
            again = await inflight.dedupe("k", ok)
            return results, pending_after, again

        results, pending_after, again = asyncio.run(run())
        self.assertTrue(all(isinstance(r, RuntimeError) for r in results))
        self.assertFalse(pending_after)
        self.assertEqual(again, 7)
        self.assertEqual(len(calls), 2)

    def test_different_keys_do_not_share(self):
        calls = []

        async def producer():
            calls.append(1)
            await asyncio.sleep(0)
            return 1

        async def run():
            inflight = InFlightCoordinator()
            await asyncio.gather(inflight.dedupe("a", producer), inflight.dedupe("b", producer))

        asyncio.run(run())
        self.assertEqual(len(calls), 2)


class TestCachedFetch(unittest.TestCase):
    def test_read_through_and_write_through(self):
        calls = []

        async def producer():
            calls.append(1)
            return ["news"]

        async def run():
            store, inflight = CacheStore(), InFlightCoordinator()
            first = await cached_fetch(store, inflight, "news:AAPL", 300, producer)
            second = await cached_fetch(store, inflight, "news:AAPL", 300, producer)
            return first, second

        first, second = asyncio.run(run())
        self.assertEqual(first, ["news"])
        self.assertEqual(second, ["news"])
        self.assertEqual(len(calls), 1)

    def test_rejected_values_are_not_cached(self):
        calls = []

        async def producer():
            calls.append(1)
            return []

        async def run():
            store, inflight = CacheStore(), InFlightCoordinator()
            for _ in range(2):
                await cached_fetch(store, inflight, "recs:X", 60, producer, should_cache=should_cache_non_empty)
            return store

        store = asyncio.run(run())
        self.assertEqual(len(calls), 2)
        self.assertEqual(len(store), 0)


if __name__ == "__main__":
    unittest.main()
