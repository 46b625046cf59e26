"""Unit tests for ui.output -- JSON creation and text formatting."""

import json
import os
import tempfile
import unittest
from datetime import datetime, timezone

from speedcore.models import MeasurementResult
from ui.output import (
    _csv_escape,
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_share_text,
    format_text_result,
    save_json,
)

_TS = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


def _result(**overrides):
    values = dict(download=120.0, upload=15.0, ping=18.0, jitter=8.0, timestamp=_TS)
    values.update(overrides)
    return MeasurementResult(**values)


class TestCreateResultJson(unittest.TestCase):
    def test_basic_structure(self):
        r = create_result_json(_result())
        for key in ("download", "upload", "ping", "jitter", "timestamp", "synthetic",
                    "ratings", "connection_type"):
            self.assertIn(key, r)
        self.assertEqual(r["timestamp"], "2025-01-15T10:30:00+00:00")

    def test_ratings(self):
        r = create_result_json(_result())
        self.assertEqual(
            r["ratings"],
            {"download": "excellent", "upload": "good", "ping": "excellent", "jitter": "excellent"},
        )
        self.assertEqual(r["connection_type"], "High-Speed Cable")

    def test_share_url(self):
        self.assertNotIn("share_url", create_result_json(_result()))
        r = create_result_json(_result(), share_url="https://x/#results=abc")
        self.assertEqual(r["share_url"], "https://x/#results=abc")

    def test_serializable(self):
        json.dumps(create_result_json(_result(synthetic=True)))


class TestSaveJson(unittest.TestCase):
    def test_roundtrip(self):
        data = {"key": "value", "number": 42}
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            path = f.name
        try:
            save_json(data, path)
            with open(path) as fh:
                loaded = json.load(fh)
            self.assertEqual(loaded, data)
        finally:
            os.unlink(path)

    def test_atomic_no_partial(self):
        # If the directory doesn't exist, it should raise, not leave a temp file
        with self.assertRaises(IOError):
            save_json({"a": 1}, "/nonexistent/dir/file.json")


class TestFormatTextResult(unittest.TestCase):
    def test_contains_values(self):
        text = format_text_result(_result())
        self.assertIn("18 ms", text)
        self.assertIn("120 Mbps", text)
        self.assertIn("15 Mbps", text)
        self.assertIn("Measured result", text)

    def test_synthetic_noted(self):
        self.assertIn("synthetic", format_text_result(_result(synthetic=True)))


class TestShareText(unittest.TestCase):
    def test_includes_link(self):
        text = format_share_text(_result(), "https://x/#results=abc")
        self.assertTrue(text.endswith("https://x/#results=abc"))
        self.assertNotIn("(estimated)", text)

    def test_estimated_marker(self):
        self.assertIn("(estimated)", format_share_text(_result(synthetic=True), "link"))


class TestCsvHelpers(unittest.TestCase):
    def test_header(self):
        h = format_csv_header()
        self.assertIn("timestamp", h)
        self.assertIn("download_mbps", h)

    def test_row(self):
        parts = format_csv_row(_result()).split(",")
        self.assertEqual(len(parts), len(format_csv_header().split(",")))
        self.assertEqual(parts[1:6], ["120", "15", "18", "8", "0"])
        self.assertEqual(parts[6], "High-Speed Cable")

    def test_escape(self):
        self.assertEqual(_csv_escape("plain"), "plain")
        self.assertEqual(_csv_escape('a,"b"'), '"a,""b"""')


if __name__ == "__main__":
    unittest.main()
