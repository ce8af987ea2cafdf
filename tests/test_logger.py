"""Tests for logging helpers."""

import logging
import unittest

from markdown_asset_pipeline.logger import REDACTED, ProgressTracker, redact_secrets, setup_logging


class TestLogger(unittest.TestCase):
    def test_secrets_are_masked(self):
        config = {'storage': {'upload_token': 'abc', 'upload_url': 'https://x'}, 'items': [{'api_key': 'k'}]}

        sanitized = redact_secrets(config)

        self.assertEqual(sanitized['storage']['upload_token'], REDACTED)
        self.assertEqual(sanitized['storage']['upload_url'], "https://x")
        self.assertEqual(sanitized['items'][0]['api_key'], REDACTED)
        self.assertEqual(config['storage']['upload_token'], "abc")

    def test_verbosity_levels(self):
        self.assertEqual(setup_logging(verbosity=0).level, logging.WARNING)
        self.assertEqual(setup_logging(verbosity=1).level, logging.INFO)
        self.assertEqual(setup_logging(verbosity=2).level, logging.DEBUG)
        self.assertEqual(setup_logging(level="error").level, logging.ERROR)
        with self.assertRaises(ValueError):
            setup_logging(level="loud")

    def test_progress_tracker_counts(self):
        with ProgressTracker(3, "documents") as tracker:
            tracker.increment(success=True)
            tracker.increment(skipped=True)
            tracker.increment(success=False)

        stats = tracker.get_stats()
        self.assertEqual(stats['processed'], 3)
        self.assertEqual(stats['succeeded'], 1)
        self.assertEqual(stats['skipped'], 1)
        self.assertEqual(stats['failed'], 1)
        self.assertEqual(stats['elapsed_time_formatted'], "00:00:00")

    def test_verbosity_is_clamped(self):
        self.assertEqual(setup_logging(verbosity=5).level, logging.DEBUG)
        self.assertEqual(len(setup_logging(verbosity=1).handlers), 1)


if __name__ == '__main__':
    unittest.main()
