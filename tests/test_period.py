import unittest

from dataview.period import (
    DAILY,
    MONTHLY,
    QUARTERLY,
    YEARLY,
    PeriodGranularityError,
    detect_granularity,
    format_period,
    get_period_formatter,
    get_period_grouping_options,
    group_period,
    periods_per_bucket,
    sort_periods,
)


class TestGroupPeriod(unittest.TestCase):
    def test_daily_to_coarser(self):
        self.assertEqual(group_period("2024-02-29", MONTHLY), "2024-02")
        self.assertEqual(group_period("2024-05-15", QUARTERLY), "2024-Q2")
        self.assertEqual(group_period("2024-12-31", YEARLY), "2024")

    def test_monthly_and_quarterly(self):
        self.assertEqual(group_period("2023-03", QUARTERLY), "2023-Q1")
        self.assertEqual(group_period("2023-10", QUARTERLY), "2023-Q4")
        self.assertEqual(group_period("2023-Q3", YEARLY), "2023")

    def test_same_granularity_is_identity(self):
        for key, gran in (("2024-01-05", DAILY), ("2024-01", MONTHLY), ("2024-Q1", QUARTERLY), ("2024", YEARLY)):
            self.assertEqual(group_period(key, gran), key)

    def test_finer_target_raises(self):
        with self.assertRaises(PeriodGranularityError):
            group_period("2024", MONTHLY)
        with self.assertRaises(ValueError):
            group_period("2024-Q2", DAILY)

    def test_unknown_key_returned_unchanged(self):
        self.assertEqual(group_period("FY24", YEARLY), "FY24")
        self.assertEqual(group_period("2024-13", QUARTERLY), "2024-13")

    def test_unknown_granularity_raises(self):
        with self.assertRaises(ValueError):
            group_period("2024-01", "weekly")


class TestPeriodHelpers(unittest.TestCase):
    def test_detect_granularity(self):
        self.assertEqual(detect_granularity("2024-01-31"), DAILY)
        self.assertEqual(detect_granularity("2024-01"), MONTHLY)
        self.assertEqual(detect_granularity("2024-Q4"), QUARTERLY)
        self.assertEqual(detect_granularity("2024"), YEARLY)
        self.assertIsNone(detect_granularity("2024-02-30"))
        self.assertIsNone(detect_granularity("Jan 2024"))

    def test_periods_per_bucket(self):
        self.assertEqual(periods_per_bucket("2024-Q1", MONTHLY), 3)
        self.assertEqual(periods_per_bucket("2024", MONTHLY), 12)
        self.assertEqual(periods_per_bucket("2024", QUARTERLY), 4)
        self.assertEqual(periods_per_bucket("2024-02", DAILY), 29)
        self.assertEqual(periods_per_bucket("2023-02", DAILY), 28)
        self.assertEqual(periods_per_bucket("2024-Q1", DAILY), 91)
        self.assertEqual(periods_per_bucket("2023", DAILY), 365)
        self.assertEqual(periods_per_bucket("2024-05", MONTHLY), 1)

    def test_sort_periods_dedupes_chronologically(self):
        self.assertEqual(sort_periods(["2024-02", "2023-12", "2024-02", "2024-01"]), ["2023-12", "2024-01", "2024-02"])

    def test_grouping_options_never_finer_than_native(self):
        keys = [o.key for o in get_period_grouping_options(MONTHLY)]
        self.assertEqual(keys, [MONTHLY, QUARTERLY, YEARLY])
        self.assertEqual([o.key for o in get_period_grouping_options(YEARLY)], [YEARLY])
        self.assertEqual(len(get_period_grouping_options(None)), 4)
        self.assertEqual(get_period_grouping_options(QUARTERLY)[0].label, "Quarterly")


class TestFormatPeriod(unittest.TestCase):
    def test_labels(self):
        self.assertEqual(format_period("2024-01-05", DAILY), "5 Jan 2024")
        self.assertEqual(format_period("2024-03", MONTHLY), "Mar 2024")
        self.assertEqual(format_period("2024-Q2", QUARTERLY), "Q2 2024")
        self.assertEqual(format_period("2024", YEARLY), "2024")

    def test_albanian_locale(self):
        self.assertEqual(format_period("2024-02", MONTHLY, locale="sq"), "Shk 2024")
        self.assertEqual(format_period("2024-Q3", QUARTERLY, locale="sq"), "T3 2024")

    def test_mismatch_uses_fallback(self):
        self.assertEqual(format_period("2024-03", QUARTERLY), "2024-03")
        self.assertEqual(format_period("garbage", MONTHLY, fallback="n/a"), "n/a")
        self.assertEqual(format_period("", MONTHLY), "")

    def test_formatter(self):
        fmt = get_period_formatter(MONTHLY)
        self.assertEqual([fmt(p) for p in ("2024-11", "2024-12")], ["Nov 2024", "Dec 2024"])


if __name__ == "__main__":
    unittest.main()
