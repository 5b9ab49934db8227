import unittest
from datetime import date, datetime, timezone

from utils.common_helpers import round_half_up, safe_float
from utils.date_helpers import from_epoch_seconds, parse_acquisition_date, provider_date_iso, to_utc_date


class TestNumericHelpers(unittest.TestCase):
    def test_round_half_up(self):
        self.assertEqual(round_half_up(69.5), 70)
        self.assertEqual(round_half_up(2.5), 3)  # not banker's rounding
        self.assertEqual(round_half_up(0.125, 2), 0.13)
        self.assertEqual(round_half_up(-1.5), -1)

    def test_safe_float(self):
        self.assertEqual(safe_float("3.5"), 3.5)
        self.assertIsNone(safe_float(None))
        self.assertIsNone(safe_float(True))
        self.assertIsNone(safe_float("abc"))
        self.assertIsNone(safe_float(float("nan")))


class TestDateHelpers(unittest.TestCase):
    def test_epoch_numbers_are_milliseconds(self):
        self.assertEqual(to_utc_date(1704067200000), date(2024, 1, 1))

    def test_aware_datetime_converted_to_utc(self):
        dt = datetime(2024, 1, 1, 23, 30, tzinfo=timezone.utc)
        self.assertEqual(to_utc_date(dt), date(2024, 1, 1))

    def test_acquisition_date_rule(self):
        self.assertEqual(parse_acquisition_date("2001-01-01"), date(2001, 1, 1))
        self.assertIsNone(parse_acquisition_date("2000-12-31"))
        self.assertIsNone(parse_acquisition_date(None))
        self.assertIsNone(parse_acquisition_date(""))

    def test_provider_date_shapes(self):
        self.assertEqual(provider_date_iso({"raw": 1704067200}), "2024-01-01")
        self.assertEqual(provider_date_iso([1704067200]), "2024-01-01")
        self.assertEqual(provider_date_iso("2025-10-30 16:00:S"), "2025-10-30")
        self.assertIsNone(provider_date_iso([]))
        self.assertIsNone(provider_date_iso(None))

    def test_epoch_seconds(self):
        self.assertEqual(from_epoch_seconds(1706745600), date(2024, 2, 1))
        self.assertIsNone(from_epoch_seconds(True))
        self.assertIsNone(from_epoch_seconds("1706745600"))
        self.assertIsNone(from_epoch_seconds(float("inf")))


if __name__ == "__main__":
    unittest.main()
