"""
Tests for the interactive menu, driven by scripted answers.
"""

import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from rich.console import Console

from mytimetable import interactive
from mytimetable.config import TimetableConfig
from mytimetable.errors import InvalidRange
from mytimetable.interactive import parse_week_choice, run_interactive
from mytimetable.model import CourseOccurrence
from mytimetable.storage import OccurrenceStore
from mytimetable.weeks import Parity, expand_weeks


class TestParseWeekChoice(unittest.TestCase):
    def test_presets_are_subsets_of_the_course(self) -> None:
        available = expand_weeks(3, 10)
        self.assertEqual(parse_week_choice("odd", available), {3, 5, 7, 9})
        self.assertEqual(parse_week_choice(" EVEN ", available), {4, 6, 8, 10})
        self.assertEqual(parse_week_choice("all", available), available)

    def test_week_list(self) -> None:
        self.assertEqual(parse_week_choice("9-10,3", expand_weeks(1, 16)), {3, 9, 10})

    def test_garbage(self) -> None:
        with self.assertRaises(InvalidRange):
            parse_week_choice("soon", expand_weeks(1, 16))


class TestWizard(unittest.TestCase):
    def setUp(self) -> None:
        self._dir = tempfile.TemporaryDirectory()
        self.store = OccurrenceStore(Path(self._dir.name) / "occurrences.json")
        self.store.insert(
            CourseOccurrence(
                name="Algebra", day_of_week=2, start_slot=3, span=2, start_week=1, end_week=16, location="A101"
            )
        )
        self.config = TimetableConfig(_env_file=None)
        patcher = mock.patch("mytimetable.interactive.console")
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self._dir.cleanup()

    def run_menu(self, *answers: str) -> None:
        with mock.patch("mytimetable.interactive._prompt", side_effect=list(answers)):
            run_interactive(self.store, self.config)

    def test_reschedule_then_undo(self) -> None:
        # menu, course, weeks, target (default), day, slot, location (default), note, confirm, exit
        self.run_menu("6", "1", "9-16", "", "4", "1", "", "", "", "0")

        records = self.store.fetch()
        self.assertEqual([(o.start_week, o.end_week, o.day_of_week) for o in records], [(1, 8, 2), (9, 16, 4)])
        self.assertEqual(records[1].location, "A101")
        self.assertTrue(records[1].is_modified)

        # menu, lineage number, exit
        self.run_menu("7", "1", "0")
        records = self.store.fetch()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].segment, (1, 16, Parity.ALL))

    def test_declined_conflict_changes_nothing(self) -> None:
        self.store.insert(
            CourseOccurrence(name="Physics", day_of_week=4, start_slot=1, span=2, start_week=1, end_week=16)
        )
        before = self.store.fetch()

        self.run_menu("6", "1", "odd", "", "4", "1", "", "", "n", "0")
        self.assertEqual(self.store.fetch(), before)

    def test_engine_errors_do_not_end_the_loop(self) -> None:
        # Week 30 is not part of the course; the menu reports it and continues
        self.run_menu("6", "1", "30", "", "4", "1", "", "", "0")
        self.assertEqual(len(self.store), 1)

    def test_undo_slot_must_fit_the_daily_grid(self) -> None:
        self.run_menu("6", "1", "all", "", "4", "1", "", "", "", "0")
        before = self.store.fetch()

        # menu, lineage number, day (default), slot beyond the grid, exit
        self.run_menu("7", "1", "", "99", "0")
        self.assertEqual(self.store.fetch(), before)


class TestPromptText(unittest.TestCase):
    def setUp(self) -> None:
        self.console = Console(record=True, file=io.StringIO(), width=200)
        patcher = mock.patch.object(interactive, "console", self.console)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_bracketed_hints_are_shown(self) -> None:
        with mock.patch("builtins.input", return_value=""):
            interactive._prompt("Reschedule despite the conflict? [y/N]: ")
            interactive._prompt("Weeks to move (e.g. 9-16, all, odd, even) [blank = back]: ")
            self.assertEqual(interactive._ask_text("Weeks: all / odd / even", "all"), "all")
            interactive._ask_text("New location", "lab [b]")

        text = self.console.export_text()
        self.assertIn("[y/N]", text)
        self.assertIn("[blank = back]", text)
        self.assertIn("[all]", text)
        self.assertIn("[lab [b]]", text)


if __name__ == "__main__":
    unittest.main()
