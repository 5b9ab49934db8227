import unittest

from schemas.market_data import BasicFinancials, ChartSeries, CompanyProfile, RecommendationTrend
from services.portfolio.cost_basis import PositionBasis
from services.portfolio.portfolio_health_score_service import (
    compute_health_score,
    diversification_score,
    sentiment_score,
    volatility_score,
)


def _rec(buy=0, strong_buy=0, hold=0, sell=0, period="2025-10-01"):
    return RecommendationTrend(period=period, buy=buy, strong_buy=strong_buy, hold=hold, sell=sell)


class TestHealthScore(unittest.TestCase):
    def test_diversification_penalty_above_thirty_percent(self):
        values = {"AAPL": 60.0, "MSFT": 20.0, "XOM": 20.0}
        profiles = {
            "AAPL": CompanyProfile(symbol="AAPL", industry="Technology"),
            "MSFT": CompanyProfile(symbol="MSFT", industry="Technology"),
            "XOM": CompanyProfile(symbol="XOM", industry="Energy"),
        }
        score, max_sector = diversification_score(values, profiles)
        self.assertAlmostEqual(max_sector, 80.0)
        self.assertEqual(score, 0.0)  # 100 - 50 * 2.5 clamps at 0

    def test_missing_profile_is_unknown_sector(self):
        score, max_sector = diversification_score({"A": 35.0, "B": 65.0}, {})
        self.assertAlmostEqual(max_sector, 100.0)
        self.assertEqual(score, 0.0)

    def test_volatility(self):
        self.assertEqual(volatility_score(0.8), 100.0)
        self.assertAlmostEqual(volatility_score(1.5), 75.0)
        self.assertEqual(volatility_score(3.5), 0.0)

    def test_sentiment_skips_funds_and_unrated(self):
        recs = {
            "AAPL": [_rec(buy=6, strong_buy=2, hold=2)],  # 0.8
            "SPY": [_rec(buy=0, hold=10)],  # fund by symbol list
            "ARKB": [_rec(buy=0, hold=10)],  # fund by profile industry
            "NEW": [_rec()],  # no ratings
        }
        profiles = {"ARKB": CompanyProfile(symbol="ARKB", industry="Exchange Traded Fund")}
        self.assertAlmostEqual(sentiment_score(list(recs), recs, profiles), 80.0)

    def test_sentiment_defaults_to_neutral(self):
        self.assertEqual(sentiment_score(["SPY"], {}, {}), 50.0)

    def test_composite(self):
        positions = {
            "AAPL": PositionBasis(symbol="AAPL", quantity=10, cost=1000),
            "XOM": PositionBasis(symbol="XOM", quantity=10, cost=1000),
        }
        charts = {
            "AAPL": ChartSeries(dates=["2025-10-16"], closes=[100.0]),
            # no chart: valued at average cost (100)
        }
        profiles = {
            "AAPL": CompanyProfile(symbol="AAPL", industry="Technology"),
            "XOM": CompanyProfile(symbol="XOM", industry="Energy"),
        }
        financials = {
            "AAPL": BasicFinancials(symbol="AAPL", beta=1.6),
            "XOM": BasicFinancials(symbol="XOM", beta=None),  # treated as 1.0
        }
        recs = {"AAPL": [_rec(buy=5, hold=5)], "XOM": [_rec(buy=10)]}

        out = compute_health_score(positions, charts, profiles, financials, recs)

        # div: 100 - (50-30)*2.5 = 50 ; beta 1.3 -> vol 85 ; sentiment 75
        self.assertEqual(out.components.diversification, 50)
        self.assertEqual(out.components.volatility, 85)
        self.assertEqual(out.components.sentiment, 75)
        self.assertEqual(out.portfolio_beta, 1.3)
        self.assertEqual(out.max_sector_pct, 50.0)
        # 0.4*50 + 0.3*85 + 0.3*75
        self.assertEqual(out.health_score, 68)

    def test_empty_portfolio(self):
        out = compute_health_score({}, {}, {}, {}, {})
        self.assertEqual(out.health_score, 85)  # 0.4*100 + 0.3*100 + 0.3*50
        self.assertEqual(out.portfolio_beta, 1.0)
        self.assertEqual(out.max_sector_pct, 0.0)


if __name__ == "__main__":
    unittest.main()
