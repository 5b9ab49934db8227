import unittest
from datetime import date

from schemas.market_data import DividendInfo
from services.portfolio.cost_basis import PositionBasis
from services.portfolio.dividend_service import upcoming_dividends

TODAY = date(2025, 10, 17)


def _pos(symbol, qty):
    return PositionBasis(symbol=symbol, quantity=qty, cost=qty * 100)


class TestDividends(unittest.TestCase):
    def test_quarterly_amount_and_payout(self):
        out = upcoming_dividends(
            {"MSFT": _pos("MSFT", 6)},
            {"MSFT": DividendInfo(ex_date="2025-11-20", payment_date="2025-12-11", dividend_rate=3.64)},
            TODAY,
        )
        self.assertEqual(len(out), 1)
        self.assertAlmostEqual(out[0].amount, 0.91)
        self.assertAlmostEqual(out[0].estimated_payout, 5.46)
        self.assertEqual(out[0].payment_date, "2025-12-11")

    def test_window_and_current_month(self):
        infos = {
            "PAST_THIS_MONTH": DividendInfo(ex_date="2025-10-02", dividend_rate=1.0),
            "IN_WINDOW": DividendInfo(ex_date="2025-12-16", dividend_rate=1.0),
            "TOO_FAR": DividendInfo(ex_date="2025-12-17", dividend_rate=1.0),
            "LAST_MONTH": DividendInfo(ex_date="2025-09-30", dividend_rate=1.0),
        }
        positions = {s: _pos(s, 1) for s in infos}
        out = upcoming_dividends(positions, infos, TODAY)
        self.assertEqual([d.symbol for d in out], ["PAST_THIS_MONTH", "IN_WINDOW"])

    def test_sorted_by_ex_date_and_missing_info_skipped(self):
        infos = {
            "B": DividendInfo(ex_date="2025-11-05", dividend_rate=2.0),
            "A": DividendInfo(ex_date="2025-10-20", dividend_rate=2.0),
            "C": None,
        }
        positions = {s: _pos(s, 1) for s in ("B", "A", "C")}
        out = upcoming_dividends(positions, infos, TODAY)
        self.assertEqual([d.symbol for d in out], ["A", "B"])

    def test_zero_rate_still_listed(self):
        out = upcoming_dividends(
            {"X": _pos("X", 10)},
            {"X": DividendInfo(ex_date="2025-10-30", dividend_rate=0.0)},
            TODAY,
        )
        self.assertEqual(out[0].amount, 0.0)
        self.assertEqual(out[0].estimated_payout, 0.0)


if __name__ == "__main__":
    unittest.main()
