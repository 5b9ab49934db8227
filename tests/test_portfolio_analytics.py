import asyncio
import unittest
from collections import Counter
from datetime import date, timedelta
from unittest.mock import patch

from schemas.holding import Holding
from schemas.market_data import BasicFinancials, ChartSeries, CompanyProfile, DividendInfo, RecommendationTrend
from services.market_data_service import MarketDataService
from services.portfolio.portfolio_analytics_service import analytics_cache_key, compute_portfolio_analytics

TODAY = date(2025, 10, 17)


def _weekdays(start: date, end: date):
    out, d = [], start
    while d <= end:
        if d.weekday() < 5:
            out.append(d.isoformat())
        d += timedelta(days=1)
    return out


class FakeFinnhub:
    def __init__(self):
        self.calls = Counter()

    async def basic_financials(self, symbol):
        self.calls["metrics"] += 1
        return BasicFinancials(symbol=symbol, beta=1.2)

    async def company_profile(self, symbol):
        self.calls["profile"] += 1
        return CompanyProfile(symbol=symbol, industry="Technology" if symbol == "AAPL" else "Energy")

    async def recommendations(self, symbol):
        self.calls["recs"] += 1
        return [RecommendationTrend(period="2025-10-01", buy=7, strong_buy=1, hold=2)]


class FakeYahoo:
    def __init__(self, slow_symbol=None):
        self.calls = Counter()
        self.slow_symbol = slow_symbol

    async def history(self, symbol, start):
        self.calls["history"] += 1
        if symbol == self.slow_symbol:
            await asyncio.sleep(1.0)
        dates = _weekdays(start, TODAY)
        base = {"SPY": 500.0, "AAPL": 200.0, "XOM": 100.0}[symbol]
        closes = [base * (1 + 0.001 * (i % 7)) for i in range(len(dates))]
        return ChartSeries(dates=dates, closes=closes)

    async def dividend_info(self, symbol):
        self.calls["dividend"] += 1
        if symbol == "XOM":
            return DividendInfo(ex_date="2025-11-14", payment_date="2025-12-10", dividend_rate=3.96)
        return None


HOLDINGS = [
    Holding(symbol="AAPL", lots=[{"quantity": 10, "price": 150, "date": "2025-03-03"}]),
    Holding(symbol="XOM", lots=[{"quantity": 20, "price": 110, "date": "2025-06-02"}]),
]


def _service(yahoo=None):
    finnhub = FakeFinnhub()
    yahoo = yahoo or FakeYahoo()
    return MarketDataService(finnhub=finnhub, yahoo=yahoo), finnhub, yahoo


class TestPortfolioAnalytics(unittest.TestCase):
    def test_full_result(self):
        svc, _, _ = _service()
        res = asyncio.run(compute_portfolio_analytics(HOLDINGS, svc, today=TODAY))

        self.assertIsNone(res.error)
        self.assertEqual(res.benchmark_data[0].date, "2025-03-03")
        self.assertEqual(res.benchmark_data[0].portfolio_return_pct, 0)
        self.assertEqual(res.benchmark_data[0].index_return_pct, 0)
        self.assertEqual(res.portfolio_beta, 1.2)
        self.assertEqual(res.components.sentiment, 80)
        self.assertEqual([d.symbol for d in res.dividends], ["XOM"])
        self.assertAlmostEqual(res.dividends[0].estimated_payout, 19.8)
        self.assertEqual(res.correlation_matrix.symbols, ["AAPL", "XOM"])
        self.assertEqual(res.correlation_matrix.matrix[0][0], 1)
        self.assertIsNotNone(res.last_updated)

    def test_idempotent_within_ttl(self):
        svc, finnhub, yahoo = _service()

        async def run():
            first = await compute_portfolio_analytics(HOLDINGS, svc, today=TODAY)
            second = await compute_portfolio_analytics(list(reversed(HOLDINGS)), svc, today=TODAY)
            return first, second

        first, second = asyncio.run(run())
        self.assertEqual(first, second)
        self.assertEqual(finnhub.calls["metrics"], 2)
        self.assertEqual(yahoo.calls["history"], 3)

    def test_concurrent_requests_share_one_computation(self):
        svc, finnhub, _ = _service()

        async def run():
            return await asyncio.gather(
                *(compute_portfolio_analytics(HOLDINGS, svc, today=TODAY) for _ in range(5))
            )

        results = asyncio.run(run())
        self.assertEqual(len({r.last_updated for r in results}), 1)
        self.assertEqual(finnhub.calls["profile"], 2)

    def test_failure_returns_zeroed_result_and_is_not_cached(self):
        svc, _, _ = _service()

        async def run():
            with patch(
                "services.portfolio.portfolio_analytics_service.compute_health_score",
                side_effect=ZeroDivisionError("division by zero"),
            ):
                with self.assertLogs("services.portfolio.portfolio_analytics_service", level="ERROR"):
                    failed = await compute_portfolio_analytics(HOLDINGS, svc, today=TODAY)
            cached = svc.store.get(analytics_cache_key(HOLDINGS), 3600)
            retry = await compute_portfolio_analytics(HOLDINGS, svc, today=TODAY)
            return failed, cached, retry

        failed, cached, retry = asyncio.run(run())
        self.assertIn("division by zero", failed.error)
        self.assertEqual(failed.health_score, 0)
        self.assertEqual(failed.benchmark_data, [])
        self.assertIsNone(cached)
        self.assertIsNone(retry.error)

    def test_slow_chart_degrades_to_fallback(self):
        yahoo = FakeYahoo(slow_symbol="XOM")
        svc, _, _ = _service(yahoo)

        async def run():
            with patch("services.portfolio.portfolio_analytics_service.CHART_TIMEOUT_SEC", 0.05):
                return await compute_portfolio_analytics(HOLDINGS, svc, today=TODAY)

        res = asyncio.run(run())
        self.assertIsNone(res.error)
        self.assertEqual(res.correlation_matrix.matrix[0][1], None)
        self.assertTrue(res.benchmark_data)

    def test_cache_key_counts_holdings(self):
        self.assertEqual(analytics_cache_key(HOLDINGS), "analytics:AAPL,XOM:2")
        self.assertEqual(analytics_cache_key(HOLDINGS + HOLDINGS[:1]), "analytics:AAPL,AAPL,XOM:3")


if __name__ == "__main__":
    unittest.main()
