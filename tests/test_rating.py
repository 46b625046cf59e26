"""Tests for speedcore.rating -- classification, labels, and comparison."""

import unittest

from speedcore.models import MeasurementResult, Rating
from speedcore.rating import (
    Metric,
    classify,
    compare_with_previous,
    connection_type,
    format_delta,
    rate_result,
    rating_color,
    rating_label,
)

_RANK = {Rating.POOR: 0, Rating.FAIR: 1, Rating.GOOD: 2, Rating.EXCELLENT: 3}


class TestClassifyDownload(unittest.TestCase):
    def test_boundaries(self):
        self.assertEqual(classify("download", 100), Rating.EXCELLENT)
        self.assertEqual(classify("download", 99.9), Rating.GOOD)
        self.assertEqual(classify("download", 25), Rating.GOOD)
        self.assertEqual(classify("download", 10), Rating.FAIR)
        self.assertEqual(classify("download", 9.99), Rating.POOR)
        self.assertEqual(classify("download", 0), Rating.POOR)


class TestClassifyUpload(unittest.TestCase):
    def test_boundaries(self):
        self.assertEqual(classify(Metric.UPLOAD, 20), Rating.EXCELLENT)
        self.assertEqual(classify(Metric.UPLOAD, 15), Rating.GOOD)
        self.assertEqual(classify(Metric.UPLOAD, 1), Rating.FAIR)
        self.assertEqual(classify(Metric.UPLOAD, 0.5), Rating.POOR)


class TestClassifyPing(unittest.TestCase):
    def test_lower_is_better(self):
        self.assertEqual(classify("ping", 0), Rating.EXCELLENT)
        self.assertEqual(classify("ping", 20), Rating.EXCELLENT)
        self.assertEqual(classify("ping", 21), Rating.GOOD)
        self.assertEqual(classify("ping", 50), Rating.GOOD)
        self.assertEqual(classify("ping", 100), Rating.FAIR)
        self.assertEqual(classify("ping", 101), Rating.POOR)


class TestClassifyJitter(unittest.TestCase):
    def test_lower_is_better(self):
        self.assertEqual(classify("jitter", 10), Rating.EXCELLENT)
        self.assertEqual(classify("jitter", 30), Rating.GOOD)
        self.assertEqual(classify("jitter", 50), Rating.FAIR)
        self.assertEqual(classify("jitter", 50.1), Rating.POOR)


class TestClassifyProperties(unittest.TestCase):
    def test_unknown_metric(self):
        with self.assertRaises(ValueError):
            classify("latency", 10)

    def test_monotonic(self):
        values = [v / 2 for v in range(0, 1200)]
        for metric in Metric:
            ranks = [_RANK[classify(metric, v)] for v in values]
            if metric in (Metric.PING, Metric.JITTER):
                ranks.reverse()  # better means smaller
            self.assertEqual(ranks, sorted(ranks), metric)

    def test_scenario(self):
        r = MeasurementResult(download=120, upload=15, ping=18, jitter=8)
        ratings = rate_result(r)
        self.assertEqual(
            [ratings[m] for m in (Metric.DOWNLOAD, Metric.UPLOAD, Metric.PING, Metric.JITTER)],
            [Rating.EXCELLENT, Rating.GOOD, Rating.EXCELLENT, Rating.EXCELLENT],
        )


class TestLabels(unittest.TestCase):
    def test_labels(self):
        self.assertEqual(rating_label("upload", Rating.FAIR), "Limited")
        self.assertEqual(rating_label("upload", Rating.POOR), "Very Limited")
        self.assertEqual(rating_label("ping", Rating.POOR), "High")
        self.assertEqual(rating_label("jitter", Rating.EXCELLENT), "Very Stable")
        self.assertEqual(rating_label(Metric.DOWNLOAD, Rating.GOOD), "Good")

    def test_colors(self):
        self.assertEqual(rating_color(Rating.EXCELLENT), "green")
        self.assertEqual(rating_color(Rating.POOR), "red")


class TestConnectionType(unittest.TestCase):
    def test_tiers(self):
        self.assertEqual(connection_type(940), "Fiber Gigabit")
        self.assertEqual(connection_type(100), "High-Speed Cable")
        self.assertEqual(connection_type(30), "Standard Cable")
        self.assertEqual(connection_type(12), "DSL")
        self.assertEqual(connection_type(1), "Basic Broadband")
        self.assertEqual(connection_type(0.5), "Unknown")


class TestCompareWithPrevious(unittest.TestCase):
    def test_no_previous(self):
        r = MeasurementResult(download=10, upload=1, ping=10, jitter=1)
        self.assertIsNone(compare_with_previous(r, None))

    def test_basic_delta(self):
        prev = MeasurementResult(download=90, upload=45, ping=15, jitter=3)
        cur = MeasurementResult(download=100, upload=50, ping=10, jitter=2)
        delta = compare_with_previous(cur, prev)
        self.assertAlmostEqual(delta["ping_delta"], -5.0)
        self.assertAlmostEqual(delta["jitter_delta"], -1.0)
        self.assertAlmostEqual(delta["download_delta"], 10.0)
        self.assertAlmostEqual(delta["upload_delta"], 5.0)


class TestFormatDelta(unittest.TestCase):
    def test_positive_speed(self):
        result = format_delta(10.0, "Mbps")
        self.assertIn("+10.0", result)
        self.assertIn("green", result)

    def test_negative_speed(self):
        result = format_delta(-10.0, "Mbps")
        self.assertIn("-10.0", result)
        self.assertIn("red", result)

    def test_positive_ping_is_bad(self):
        result = format_delta(5.0, "ms", invert=True)
        self.assertIn("red", result)

    def test_negative_ping_is_good(self):
        result = format_delta(-5.0, "ms", invert=True)
        self.assertIn("green", result)

    def test_zero_delta(self):
        self.assertIn("same", format_delta(0.0, "Mbps"))


if __name__ == "__main__":
    unittest.main()
