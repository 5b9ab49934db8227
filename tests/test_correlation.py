import unittest

from schemas.market_data import ChartSeries
from services.portfolio.correlation_service import correlation_matrix, daily_returns, pearson


def _chart(closes):
    return ChartSeries(dates=[f"2025-01-{i + 1:02d}" for i in range(len(closes))], closes=closes)


class TestCorrelation(unittest.TestCase):
    def test_diagonal_is_exactly_one(self):
        charts = {"A": _chart([1, 2]), "B": _chart([])}
        m = correlation_matrix(["A", "B"], charts)
        self.assertEqual(m.matrix[0][0], 1)
        self.assertEqual(m.matrix[1][1], 1)

    def test_insufficient_data_is_none(self):
        charts = {"A": _chart([10, 11, 12, 13, 14]), "B": _chart([10, 11, 12, 13, 14, 15, 16])}
        m = correlation_matrix(["A", "B"], charts)
        # A yields 4 returns (< 5)
        self.assertIsNone(m.matrix[0][1])
        self.assertIsNone(m.matrix[1][0])

    def test_perfect_positive_and_negative(self):
        up = [100, 102, 101, 105, 104, 108, 110]
        a = daily_returns(up)
        b = [r * 2 for r in a]
        c = [-r for r in a]
        self.assertEqual(pearson(a, b), 1.0)
        self.assertEqual(pearson(a, c), -1.0)

    def test_shorter_series_aligned_on_most_recent_returns(self):
        recent = [0.01, -0.02, 0.03, 0.0, 0.015, -0.01]
        longer = [0.5, -0.4, 0.9] + recent
        shorter = [r * 3 for r in recent]
        self.assertEqual(pearson(longer, shorter), 1.0)
        self.assertEqual(pearson(shorter, longer), 1.0)

    def test_zero_variance_is_zero(self):
        self.assertEqual(pearson([0.5] * 6, [0.01, 0.02, 0.0, 0.03, 0.01, 0.02]), 0.0)

    def test_uses_last_thirty_closes_and_skips_nonpositive(self):
        closes = [1.0] * 40 + [0.0, 2.0, 3.0]
        rets = daily_returns(closes)
        # 30 closes -> 29 pairs, the one after the zero close is dropped
        self.assertEqual(len(rets), 28)
        self.assertAlmostEqual(rets[-1], 0.5)

    def test_symbols_preserved_in_order(self):
        m = correlation_matrix(["MSFT", "AAPL"], {})
        self.assertEqual(m.symbols, ["MSFT", "AAPL"])
        self.assertEqual(m.matrix, [[1.0, None], [None, 1.0]])


if __name__ == "__main__":
    unittest.main()
