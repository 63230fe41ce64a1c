"""
Unit tests for environment based configuration.
"""

import os
import unittest
from datetime import date
from pathlib import Path
from unittest import mock

from mytimetable.config import TimetableConfig, default_store_path


class TestConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            config = TimetableConfig(_env_file=None)
        self.assertEqual(config.total_weeks, 20)
        self.assertEqual(config.max_daily_slots, 12)
        self.assertIsNone(config.term_start)
        self.assertFalse(config.enforce_equal_week_count)
        self.assertEqual(config.resolved_store_path(), default_store_path())

    def test_environment_overrides(self) -> None:
        env = {
            "MYTIMETABLE_TOTAL_WEEKS": "18",
            "MYTIMETABLE_TERM_START": "2026-02-16",
            "MYTIMETABLE_HIDE_NON_CURRENT_WEEK": "true",
            "MYTIMETABLE_STORE_PATH": "/tmp/timetable.json",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            config = TimetableConfig(_env_file=None)
        self.assertEqual(config.total_weeks, 18)
        self.assertEqual(config.term_start, date(2026, 2, 16))
        self.assertTrue(config.hide_non_current_week)
        self.assertEqual(config.resolved_store_path(), Path("/tmp/timetable.json"))

    def test_invalid_value_is_rejected(self) -> None:
        with mock.patch.dict(os.environ, {"MYTIMETABLE_TOTAL_WEEKS": "0"}, clear=True):
            with self.assertRaises(ValueError):
                TimetableConfig(_env_file=None)


if __name__ == "__main__":
    unittest.main()
