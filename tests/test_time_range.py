import unittest

from dataview.period import DAILY, MONTHLY, QUARTERLY, YEARLY
from dataview.time_range import (
    ALL,
    DEFAULT_TIME_RANGE,
    limit_periods,
    limit_time_range_options,
    normalize_time_range,
    resolve_time_range,
    window_size,
)


class TestTimeRangeOptions(unittest.TestCase):
    def test_monthly_ladder_filtered_by_count(self):
        opts = limit_time_range_options({"granularity": MONTHLY, "count": 30})
        self.assertEqual([o.key for o in opts], [12, 24, ALL])
        self.assertEqual(opts[0].label, "12 months")
        self.assertEqual(opts[-1].label, "All")

    def test_ladders_per_granularity(self):
        self.assertEqual([o.key for o in limit_time_range_options({"granularity": DAILY, "count": 100})], [7, 30, 90, ALL])
        self.assertEqual(
            [o.key for o in limit_time_range_options({"nativeGranularity": QUARTERLY, "periodCount": 12})],
            [4, 8, 12, ALL],
        )
        self.assertEqual([o.key for o in limit_time_range_options({"granularity": YEARLY, "count": 3})], [ALL])

    def test_unknown_count_offers_full_ladder(self):
        self.assertEqual([o.key for o in limit_time_range_options(None)], [12, 24, 36, 60, 120, ALL])

    def test_int_coverage_is_monthly_count(self):
        self.assertEqual([o.key for o in limit_time_range_options(36)], [12, 24, 36, ALL])
        self.assertEqual(limit_time_range_options(36)[2].label, "3 years")


class TestNormalizeTimeRange(unittest.TestCase):
    def test_values(self):
        self.assertEqual(normalize_time_range(ALL), ALL)
        self.assertEqual(normalize_time_range(12), 12)
        self.assertEqual(normalize_time_range("24"), 24)
        self.assertEqual(normalize_time_range(12.0), 12)

    def test_invalid_falls_back(self):
        self.assertEqual(normalize_time_range(None), DEFAULT_TIME_RANGE)
        self.assertEqual(normalize_time_range(0), DEFAULT_TIME_RANGE)
        self.assertEqual(normalize_time_range(-4, 12), 12)
        self.assertEqual(normalize_time_range("abc", ALL), ALL)
        self.assertEqual(normalize_time_range(True), DEFAULT_TIME_RANGE)
        self.assertEqual(normalize_time_range(float("nan")), DEFAULT_TIME_RANGE)


class TestLimitPeriods(unittest.TestCase):
    PERIODS = ["2024-03", "2024-01", "2024-02", "2023-12", "2024-02"]

    def test_trailing_window(self):
        self.assertEqual(limit_periods(self.PERIODS, 2), ["2024-02", "2024-03"])

    def test_all_and_oversized(self):
        full = ["2023-12", "2024-01", "2024-02", "2024-03"]
        self.assertEqual(limit_periods(self.PERIODS, ALL), full)
        self.assertEqual(limit_periods(self.PERIODS, 50), full)
        self.assertEqual(limit_periods(self.PERIODS, None), full)

    def test_window_size(self):
        self.assertIsNone(window_size(ALL))
        self.assertIsNone(window_size(0))
        self.assertEqual(window_size("6"), 6)

    def test_resolve_time_range(self):
        window = resolve_time_range(self.PERIODS, 3)
        self.assertEqual((window.start, window.end, window.count), ("2024-01", "2024-03", 3))
        empty = resolve_time_range([], 3)
        self.assertEqual(empty.count, 0)
        self.assertIsNone(empty.start)


if __name__ == "__main__":
    unittest.main()
